from __future__ import annotations

from typing import TYPE_CHECKING, Any

from promote_release.core import Channel, Unconfigured, move_files_into
from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType

from .docs import prepare_docs
from .runner import (
    docs_invalidation_path,
    publish_archive,
    publish_release,
    sync_docs,
)

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices


def stage_merge_manifests(ctx: RunContext) -> dict[str, Any]:
    """
    Move the real manifests (and their signatures) next to the artifacts.
    The smoke manifests never leave their own directory.
    """
    moved = move_files_into(ctx.layout.real_manifest_dir(), ctx.layout.dl_dir())
    return {"moved": moved, "_metrics": {"moved": len(moved)}}


def stage_publish_archive(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    ctx.emit(EventType.PUBLISH_START, stage="publish_archive")
    dst = publish_archive(
        services.blob, ctx.settings, dl_dir=ctx.layout.dl_dir(), date=ctx.date
    )
    ctx.emit(EventType.PUBLISH_FINISH, stage="publish_archive", dst=dst)
    return {"dst": dst}


def stage_publish_docs(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    facts = ctx.require_facts()
    s = ctx.settings
    docs_dir = ctx.layout.docs_dir()

    counts = prepare_docs(
        dl_dir=ctx.layout.dl_dir(),
        docs_dir=docs_dir,
        release=facts.release_name,
        target=s.target,
    )

    directories = [facts.channel.value]
    if facts.channel is Channel.STABLE:
        directories.append(facts.release_name)

    warnings: list[str] = []
    published: list[str] = []
    for directory in directories:
        ctx.emit(EventType.PUBLISH_START, stage="publish_docs", directory=directory)
        published.append(sync_docs(services.blob, s, docs_dir=docs_dir, directory=directory))
        ctx.emit(EventType.PUBLISH_FINISH, stage="publish_docs", directory=directory)

        path = docs_invalidation_path(directory)
        if isinstance(services.cloudfront, Unconfigured):
            warnings.append(f"skipped docs invalidation of {path}: {services.cloudfront.describe()}")
            continue
        services.cloudfront.invalidate(s.cloudfront_doc_id, [path])
        ctx.emit(EventType.INVALIDATE, stage="publish_docs", service="cloudfront", paths=[path])

    return {"published": published, "_warnings": warnings, "_metrics": counts}


def stage_publish_release(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    ctx.emit(EventType.PUBLISH_START, stage="publish_release")
    dst = publish_release(services.blob, ctx.settings, dl_dir=ctx.layout.dl_dir())
    ctx.emit(EventType.PUBLISH_FINISH, stage="publish_release", dst=dst)
    return {"dst": dst}
