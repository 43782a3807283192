from __future__ import annotations

from typing import TYPE_CHECKING, Any

from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType

if TYPE_CHECKING:
    from promote_release.services import ReleaseState


def stage_sign(ctx: RunContext, state: ReleaseState) -> dict[str, Any]:
    """
    Sign the artifacts and both manifest sets. Smoke manifest signatures are
    discarded together with the smoke manifests.
    """
    signer = state.require_signer()
    if state.execution is not None:
        signer.override_checksum_cache(state.execution.checksum_cache)

    batches = []
    for directory in (
        ctx.layout.dl_dir(),
        ctx.layout.real_manifest_dir(),
        ctx.layout.smoke_manifest_dir(),
    ):
        batch = signer.sign_directory(directory)
        ctx.emit(EventType.SIGN_BATCH, stage="sign", **batch.to_dict())
        batches.append(batch.to_dict())

    return {
        "batches": batches,
        "_metrics": {
            "files": sum(int(b["files"]) for b in batches),
            "cached_digests": sum(int(b["cached_digests"]) for b in batches),
        },
    }
