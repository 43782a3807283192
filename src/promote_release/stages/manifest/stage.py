from __future__ import annotations

from typing import TYPE_CHECKING, Any

from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType
from promote_release.stages.artifacts import prune_unshipped

from .runner import ManifestBuilder, ManifestExecution

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices, ReleaseState


def manifest_builder_for(ctx: RunContext, services: ReleaseServices) -> ManifestBuilder:
    facts = ctx.require_facts()
    s = ctx.settings
    if s.build_manifest_path is not None:
        return ManifestBuilder(
            tool=s.build_manifest_path,
            input_dir=ctx.layout.dl_dir(),
            date=ctx.date,
            channel=facts.channel.value,
            runner=services.runner,
        )
    return ManifestBuilder.from_tarball(
        input_dir=ctx.layout.dl_dir(),
        release=facts.release_name,
        target=s.target,
        date=ctx.date,
        channel=facts.channel.value,
        runner=services.runner,
    )


def _emit_run(ctx: RunContext, stage: str, pass_name: str, execution: ManifestExecution) -> None:
    ctx.emit(EventType.MANIFEST_RUN, stage=stage, pass_name=pass_name, **execution.to_dict())


def stage_discover_shipped(ctx: RunContext, state: ReleaseState) -> dict[str, Any]:
    """
    First manifest pass against the public URL, only to learn which files
    are shipped; everything else is pruned from the download directory.
    """
    builder = state.require_builder()
    execution = builder.run(ctx.settings.upload_base_url(), ctx.layout.real_manifest_dir())
    _emit_run(ctx, "discover", "discovery", execution)

    warnings: list[str] = []
    pruned: list[str] = []
    if execution.shipped_files is None:
        warnings.append("manifest tool did not report shipped files, not pruning")
    else:
        pruned = prune_unshipped(ctx.layout.dl_dir(), execution.shipped_files)
        for name in pruned:
            ctx.emit(EventType.PRUNE_FILE, stage="discover", file=name)

    return {
        "pruned": pruned,
        "_warnings": warnings,
        "_metrics": {"pruned": len(pruned)},
    }


def stage_generate_manifests(ctx: RunContext, state: ReleaseState) -> dict[str, Any]:
    """
    Real manifests for the public endpoint, then throwaway manifests that
    point at the local smoke test server.
    """
    builder = state.require_builder()
    smoke = state.require_smoke()

    builder.clear_checksum_cache()
    ctx.emit(EventType.MANIFEST_CACHE_CLEARED, stage="manifests")

    real = builder.run(ctx.settings.upload_base_url(), ctx.layout.real_manifest_dir())
    _emit_run(ctx, "manifests", "real", real)
    state.execution = real

    smoke_run = builder.run(smoke.dist_url(), ctx.layout.smoke_manifest_dir())
    _emit_run(ctx, "manifests", "smoke", smoke_run)

    return {
        "real": real.to_dict(),
        "smoke": smoke_run.to_dict(),
        "_metrics": {"cached_checksums": len(real.checksum_cache)},
    }
