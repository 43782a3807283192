from __future__ import annotations

from typing import Any

from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType

from .config import RecompressConfig
from .runner import FileOutcome, recompress_directory


def recompress_config_from(ctx: RunContext) -> RecompressConfig:
    s = ctx.settings
    return RecompressConfig(
        gz_enabled=s.recompress_gz,
        xz_enabled=s.recompress_xz,
        gz_level=s.gzip_compression_level,
        num_threads=s.num_threads,
        max_xz_dictsize=s.max_xz_dictsize,
    )


def stage_recompress(ctx: RunContext) -> dict[str, Any]:
    cfg = recompress_config_from(ctx)
    ctx.emit(EventType.RECOMPRESS_PLAN, stage="recompress", **cfg.to_dict())

    def on_done(outcome: FileOutcome) -> None:
        ctx.emit(
            EventType.RECOMPRESS_FILE,
            stage="recompress",
            file=outcome.task.src.name,
            gz=outcome.gz_written,
            xz=outcome.xz_written,
            dictsize=outcome.dictsize,
            duration_ms=outcome.duration_ms,
        )

    stats = recompress_directory(ctx.layout.dl_dir(), cfg, on_done=on_done)
    ctx.emit(EventType.RECOMPRESS_FINISH, stage="recompress", **stats.to_metrics())
    return {"_metrics": stats.to_metrics()}
