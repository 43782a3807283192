from .gate import stage_gate
from .manifest import stage_discover_shipped, stage_generate_manifests
from .notify import (
    stage_blog_and_discourse,
    stage_cleanup,
    stage_invalidate,
    stage_tag_release,
)
from .publish import (
    stage_merge_manifests,
    stage_publish_archive,
    stage_publish_docs,
    stage_publish_release,
)
from .recompress import stage_recompress
from .sign import stage_sign
from .smoke import stage_smoke_test

__all__ = [
    "stage_gate",
    "stage_recompress",
    "stage_discover_shipped",
    "stage_generate_manifests",
    "stage_sign",
    "stage_smoke_test",
    "stage_merge_manifests",
    "stage_publish_archive",
    "stage_publish_docs",
    "stage_publish_release",
    "stage_invalidate",
    "stage_cleanup",
    "stage_blog_and_discourse",
    "stage_tag_release",
]
