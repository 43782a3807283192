from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Sequence

from promote_release.core import (
    ILogger,
    RunProvenance,
    Settings,
    WorkLayout,
    configure_logging,
    format_duration_ms,
    get_logger,
    monotonic_ms,
    utc_now_iso,
    utc_today,
)

from .context import RunContext
from .events import EventSink, EventType, make_event
from .report import RunReport, build_run_report
from .stage import FunctionStage, Stage, StageFn, StageResult, run_stage


@dataclass(slots=True)
class RunnerConfig:
    stop_on_failure: bool = True


def default_logger() -> ILogger:
    """
    Provide a structlog BoundLogger that satisfies ILogger.
    """
    configure_logging()
    return get_logger("pipeline")


class PipelineRunner:
    def __init__(
        self,
        *,
        stages: Sequence[Stage],
        cfg: RunnerConfig | None = None,
        logger: ILogger | None = None,
    ) -> None:
        self.stages = list(stages)
        self.cfg = cfg or RunnerConfig()
        self.logger: ILogger = logger or default_logger()

        ids = [s.stage_id for s in self.stages]
        if len(ids) != len(set(ids)):
            dupes = sorted({x for x in ids if ids.count(x) > 1})
            raise ValueError(f"Duplicate stage_id(s): {dupes}")

    @staticmethod
    def fn(stage_id: str, fn: StageFn, *, best_effort: bool = False) -> Stage:
        return FunctionStage(stage_id=stage_id, fn=fn, best_effort=best_effort)

    def new_context(
        self,
        *,
        layout: WorkLayout,
        settings: Settings,
        run_id: str | None = None,
        date: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> RunContext:
        rid = run_id or uuid.uuid4().hex
        run_root = layout.runs_root() / rid
        run_root.mkdir(parents=True, exist_ok=True)
        return RunContext(
            run_id=rid,
            layout=layout,
            settings=settings,
            date=date or utc_today(),
            logger=self.logger,
            events=EventSink(run_root / "events.jsonl"),
            meta=dict(meta or {}),
        )

    def run(self, ctx: RunContext) -> RunReport:
        """
        Execute the stages in order and write `run_report.json` next to
        `events.jsonl`.

        A skipped stage ends the run successfully; a failed stage ends it
        unless the stage is best-effort.
        """
        run_root = ctx.layout.runs_root() / ctx.run_id
        started_at = utc_now_iso()
        t0 = monotonic_ms()

        self.logger.info(
            "Pipeline starting",
            run_id=ctx.run_id,
            stages=[s.stage_id for s in self.stages],
            work=str(ctx.layout.root),
            date=ctx.date,
        )
        ctx.events.emit(
            make_event(
                event_type=EventType.RUN_START,
                run_id=ctx.run_id,
                stage=None,
                **ctx.meta,
            )
        )

        results: list[StageResult] = []

        total = len(self.stages)
        for idx, st in enumerate(self.stages, start=1):
            res = run_stage(ctx=ctx, stage=st, index=idx, total=total)
            results.append(res)

            if res.status == "skipped":
                self.logger.info("Nothing to release", stage=st.stage_id)
                break

            if res.status == "failed" and not st.best_effort and self.cfg.stop_on_failure:
                self.logger.error("Stopping on first failure", stage=st.stage_id)
                break

        finished_at = utc_now_iso()
        duration = monotonic_ms() - t0

        meta = dict(ctx.meta)
        meta["provenance"] = RunProvenance(run_id=ctx.run_id, started_at_utc=started_at).to_dict()
        if ctx.facts is not None:
            meta["facts"] = ctx.facts.to_dict()

        report = build_run_report(
            run_id=ctx.run_id,
            started_at_utc=started_at,
            finished_at_utc=finished_at,
            duration_ms=duration,
            stage_results=results,
            events_jsonl=str(ctx.events.path),
            meta=meta,
        )

        report_json = run_root / "run_report.json"
        report.write_json(report_json)

        ctx.events.emit(
            make_event(
                event_type=EventType.RUN_FINISH,
                run_id=ctx.run_id,
                stage=None,
                status=report.status,
                duration_ms=duration,
                report_json=str(report_json),
            )
        )
        ctx.events.close()

        self.logger.info(
            "Run Complete",
            duration=format_duration_ms(duration),
            report=str(report_json),
            status=report.status,
        )
        return report
