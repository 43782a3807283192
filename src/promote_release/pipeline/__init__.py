from .context import RunContext
from .events import EventSink, EventType
from .report import RunReport
from .runner import PipelineRunner, RunnerConfig
from .stage import FunctionStage, Stage, StageResult
from .types import ReleaseFacts

__all__ = [
    "RunContext",
    "EventSink",
    "EventType",
    "RunReport",
    "PipelineRunner",
    "RunnerConfig",
    "FunctionStage",
    "Stage",
    "StageResult",
    "ReleaseFacts",
]
