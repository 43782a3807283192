from dataclasses import dataclass, field
from typing import Any

from promote_release.core import ILogger, Settings, WorkLayout

from .events import EventSink, EventType, make_event
from .types import ReleaseFacts


@dataclass(slots=True)
class RunContext:
    """
    Context shared across stages for a single pipeline run.
    """

    run_id: str
    layout: WorkLayout
    settings: Settings
    date: str
    logger: ILogger
    events: EventSink

    # Set exactly once, by the gate stage.
    facts: ReleaseFacts | None = None

    # optional free-form metadata
    meta: dict[str, Any] = field(default_factory=dict)

    def stage_logger(self, stage: str) -> ILogger:
        return self.logger.bind(stage=stage)

    def emit(self, event: EventType | str, **kw: object) -> None:
        # Keep event chatter at debug level to leave console logs readable.
        event_value = event.value if isinstance(event, EventType) else str(event)
        self.logger.debug(event_value, event_type=event_value, **kw)
        stage = kw.pop("stage", None)
        self.events.emit(
            make_event(
                event_type=event_value,
                run_id=self.run_id,
                stage=str(stage) if stage is not None else None,
                **kw,
            )
        )

    def set_facts(self, facts: ReleaseFacts) -> None:
        if self.facts is not None:
            raise RuntimeError("release facts are already set for this run")
        self.facts = facts

    def require_facts(self) -> ReleaseFacts:
        if self.facts is None:
            raise RuntimeError("release facts requested before the gate ran")
        return self.facts
