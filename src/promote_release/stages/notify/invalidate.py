from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

import structlog

from promote_release.core import Unconfigured, remove_tree_quietly
from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices

log = structlog.get_logger(__name__)

# Paths published as Fastly surrogate keys as well, so both CDNs purge them.
RELEASE_PATHS = ("/dist/*",)


def invalidate_paths(
    ctx: RunContext,
    services: ReleaseServices,
    paths: Sequence[str],
    *,
    stage: str,
) -> list[str]:
    warnings: list[str] = []
    s = ctx.settings

    if isinstance(services.cloudfront, Unconfigured):
        warnings.append(
            f"skipped CloudFront invalidation of {list(paths)}: "
            f"{services.cloudfront.describe()}"
        )
        ctx.emit(EventType.NOTIFY_SKIPPED, stage=stage, service="cloudfront")
    else:
        services.cloudfront.invalidate(s.cloudfront_static_id, list(paths))
        ctx.emit(EventType.INVALIDATE, stage=stage, service="cloudfront", paths=list(paths))

    # Fastly purges are opt-in.
    if not s.invalidate_fastly:
        return warnings
    if isinstance(services.fastly, Unconfigured):
        warnings.append(
            f"skipped Fastly invalidation of {list(paths)}: {services.fastly.describe()}"
        )
        ctx.emit(EventType.NOTIFY_SKIPPED, stage=stage, service="fastly")
        return warnings
    for path in paths:
        services.fastly.purge(path)
    ctx.emit(EventType.INVALIDATE, stage=stage, service="fastly", paths=list(paths))
    return warnings


def stage_invalidate(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    warnings = invalidate_paths(ctx, services, RELEASE_PATHS, stage="invalidate")
    return {"paths": list(RELEASE_PATHS), "_warnings": warnings}


def stage_cleanup(ctx: RunContext) -> dict[str, Any]:
    """
    Delete the download directory. Purely disk hygiene: failures are logged
    and ignored.
    """
    if ctx.settings.skip_delete_build_dir:
        return {"removed": False, "_warnings": ["keeping the download directory as requested"]}
    removed = remove_tree_quietly(ctx.layout.dl_dir())
    if not removed:
        log.warning("failed to remove download directory", path=str(ctx.layout.dl_dir()))
    return {"removed": removed}
