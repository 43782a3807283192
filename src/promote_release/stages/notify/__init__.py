from .announce import (
    TAGGER_EMAIL,
    TAGGER_NAME,
    stage_blog_and_discourse,
    stage_tag_release,
    tag_repository,
)
from .blog import (
    PrereleaseSchedule,
    prerelease_post_path,
    release_blog_url,
    render_prerelease_post,
)
from .invalidate import RELEASE_PATHS, invalidate_paths, stage_cleanup, stage_invalidate

__all__ = [
    "TAGGER_EMAIL",
    "TAGGER_NAME",
    "stage_blog_and_discourse",
    "stage_tag_release",
    "tag_repository",
    "PrereleaseSchedule",
    "prerelease_post_path",
    "release_blog_url",
    "render_prerelease_post",
    "RELEASE_PATHS",
    "invalidate_paths",
    "stage_cleanup",
    "stage_invalidate",
]
