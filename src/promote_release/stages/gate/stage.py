from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from promote_release.core import Channel
from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType
from promote_release.stages.artifacts import assert_components_present, download_artifacts

from .channel_manifest import ChannelManifests
from .probe import probe_version
from .revision import resolve_revision
from .runner import ProbedVersions, ReleaseGate

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices


def stage_gate(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    s = ctx.settings
    dl_dir = ctx.layout.dl_dir()

    def resolve() -> str:
        rev = resolve_revision(
            channel=s.channel,
            repository=s.repository,
            override_commit=s.override_commit,
            override_branch=s.override_branch,
            runner=services.runner,
        )
        ctx.emit(EventType.GATE_REVISION, stage="gate", revision=rev)
        return rev

    downloaded: list[str] = []

    def download(revision: str) -> list[Path]:
        files = download_artifacts(
            blob=services.blob,
            bucket=s.download_bucket,
            directory=s.download_dir,
            revision=revision,
            dl_dir=dl_dir,
        )
        downloaded.extend(p.name for p in files)
        ctx.emit(EventType.DOWNLOAD_FINISH, stage="gate", revision=revision, files=len(files))
        return files

    def probe() -> ProbedVersions:
        return ProbedVersions(
            rustc=probe_version(dl_dir, "rustc", target=s.target),
            cargo=probe_version(dl_dir, "cargo", target=s.target),
        )

    def on_decision(**kw: Any) -> None:
        ctx.emit(EventType.GATE_DECISION, stage="gate", **kw)

    gate = ReleaseGate(
        channel=s.channel,
        date=ctx.date,
        bypass=s.bypass_startup_checks,
        manifests=ChannelManifests(services.http, base_url=s.upload_base_url(), channel=s.channel),
        resolve_revision=resolve,
        download=download,
        probe=probe,
        on_decision=on_decision,
    )
    facts = gate.evaluate()

    if facts.channel is Channel.NIGHTLY:
        assert_components_present(downloaded, s.target)

    ctx.set_facts(facts)
    return {"facts": facts.to_dict(), "_metrics": {"downloaded": len(downloaded)}}
