from __future__ import annotations

import json
import os
import socket
import threading
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from promote_release.core import utc_now_iso

from .types import Event


class EventType(str, Enum):
    RUN_ENV = "run.env"
    RUN_START = "run.start"
    RUN_FINISH = "run.finish"

    STAGE_START = "stage.start"
    STAGE_WARN = "stage.warn"
    STAGE_METRICS = "stage.metrics"
    STAGE_SUCCESS = "stage.success"
    STAGE_SKIPPED = "stage.skipped"
    STAGE_FAILED = "stage.failed"

    GATE_REVISION = "gate.revision"
    GATE_DECISION = "gate.decision"

    DOWNLOAD_FINISH = "download.finish"
    PRUNE_FILE = "prune.file"

    RECOMPRESS_PLAN = "recompress.plan"
    RECOMPRESS_FILE = "recompress.file"
    RECOMPRESS_FINISH = "recompress.finish"

    MANIFEST_RUN = "manifest.run"
    MANIFEST_CACHE_CLEARED = "manifest.cache_cleared"

    SIGN_BATCH = "sign.batch"

    SMOKE_START = "smoke.start"
    SMOKE_FINISH = "smoke.finish"

    PUBLISH_START = "publish.start"
    PUBLISH_FINISH = "publish.finish"

    INVALIDATE = "invalidate"
    NOTIFY_SKIPPED = "notify.skipped"
    TAG_CREATED = "tag.created"
    TOPIC_CREATED = "topic.created"


class EventSink:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        self.emit(
            Event(
                type=EventType.RUN_ENV.value,
                ts_utc=utc_now_iso(),
                run_id="__init__",
                data={
                    "hostname": socket.gethostname(),
                    "pid": os.getpid(),
                    "cwd": str(Path.cwd()),
                },
            )
        )

    def emit(self, event: Event) -> None:
        line = json.dumps(asdict(event), ensure_ascii=False, default=str)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")

    def close(self) -> None:
        return


def make_event(
    *,
    event_type: EventType | str,
    run_id: str,
    stage: Optional[str] = None,
    **data: Any,
) -> Event:
    type_value = (
        event_type.value if isinstance(event_type, EventType) else str(event_type)
    )
    return Event(
        type=type_value,
        ts_utc=utc_now_iso(),
        run_id=run_id,
        stage=stage,
        data=dict(data),
    )
