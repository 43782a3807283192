from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from promote_release.core import (
    ReleaseSkipped,
    StageError,
    format_duration_ms,
    monotonic_ms,
    utc_now_iso,
)
from promote_release.core.errors import stage_error_from_exc

from .context import RunContext
from .events import EventType

StageFn = Callable[[RunContext], dict[str, Any] | None]


@dataclass(slots=True)
class FunctionStage:
    """
    Adapter that turns a plain function into a Stage.
    """

    stage_id: str
    fn: StageFn
    best_effort: bool = False

    def run(self, ctx: RunContext) -> dict[str, Any] | None:
        return self.fn(ctx)


@dataclass(slots=True)
class StageResult:
    stage: str
    status: str  # "success" | "failed" | "skipped"
    started_at_utc: str
    finished_at_utc: str
    duration_ms: int

    outputs: dict[str, Any] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    skip_reason: Optional[str] = None
    error: Optional[StageError] = None


class Stage(Protocol):
    stage_id: str
    best_effort: bool

    def run(self, ctx: RunContext) -> dict[str, Any] | None: ...


def run_stage(
    *,
    ctx: RunContext,
    stage: Stage,
    index: int | None = None,
    total: int | None = None,
) -> StageResult:
    stage_id = stage.stage_id
    log = ctx.stage_logger(stage_id)

    t0 = monotonic_ms()
    started_at = utc_now_iso()
    position = f"{index}/{total}" if index is not None and total is not None else None

    ctx.emit(EventType.STAGE_START, stage=stage_id)
    log.info("Stage starting", position=position)

    warnings: list[str] = []
    metrics: dict[str, Any] = {}

    try:
        out = stage.run(ctx) or {}
        if not isinstance(out, dict):
            raise TypeError(
                f"Stage {stage_id} returned {type(out).__name__}, expected dict or None"
            )

        if "_warnings" in out:
            w = out.pop("_warnings")
            if isinstance(w, list):
                warnings.extend(str(x) for x in w)

        if "_metrics" in out:
            m = out.pop("_metrics")
            if isinstance(m, dict):
                metrics.update(m)

        for w in warnings:
            ctx.emit(EventType.STAGE_WARN, stage=stage_id, message=w)
            log.warning(w)

        if metrics:
            ctx.emit(EventType.STAGE_METRICS, stage=stage_id, metrics=metrics)

        finished_at = utc_now_iso()
        duration = monotonic_ms() - t0

        ctx.emit(EventType.STAGE_SUCCESS, stage=stage_id, duration_ms=duration)
        log.info(
            "Stage succeeded",
            position=position,
            duration=format_duration_ms(duration),
            warnings=len(warnings),
            outputs=sorted(out.keys()) if out else [],
        )

        return StageResult(
            stage=stage_id,
            status="success",
            started_at_utc=started_at,
            finished_at_utc=finished_at,
            duration_ms=duration,
            outputs=out,
            metrics=metrics,
            warnings=warnings,
        )

    except ReleaseSkipped as skip:
        finished_at = utc_now_iso()
        duration = monotonic_ms() - t0

        ctx.emit(EventType.STAGE_SKIPPED, stage=stage_id, reason=skip.reason)
        log.info(skip.reason, position=position)
        if skip.hint:
            log.info(skip.hint)

        return StageResult(
            stage=stage_id,
            status="skipped",
            started_at_utc=started_at,
            finished_at_utc=finished_at,
            duration_ms=duration,
            metrics=metrics,
            warnings=warnings,
            skip_reason=skip.reason,
        )

    except Exception as e:
        finished_at = utc_now_iso()
        duration = monotonic_ms() - t0
        err = stage_error_from_exc(e)

        ctx.emit(
            EventType.STAGE_FAILED,
            stage=stage_id,
            duration_ms=duration,
            exc_type=err.exc_type,
            message=err.message,
        )
        log.error(
            "Stage failed",
            position=position,
            duration=format_duration_ms(duration),
            best_effort=stage.best_effort,
            error=err.message,
        )
        log.exception("Stage exception")

        return StageResult(
            stage=stage_id,
            status="failed",
            started_at_utc=started_at,
            finished_at_utc=finished_at,
            duration_ms=duration,
            metrics=metrics,
            warnings=warnings,
            error=err,
        )
