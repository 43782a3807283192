from .docs import has_subtree, prepare_docs, unpack_subtree
from .runner import docs_invalidation_path, publish_archive, publish_release, sync_docs
from .stage import (
    stage_merge_manifests,
    stage_publish_archive,
    stage_publish_docs,
    stage_publish_release,
)

__all__ = [
    "has_subtree",
    "prepare_docs",
    "unpack_subtree",
    "docs_invalidation_path",
    "publish_archive",
    "publish_release",
    "sync_docs",
    "stage_merge_manifests",
    "stage_publish_archive",
    "stage_publish_docs",
    "stage_publish_release",
]
