from __future__ import annotations

import os
import platform
import uuid
from dataclasses import asdict, dataclass, field
from importlib import metadata
from typing import Any

from .time import utc_now_iso

DISTRIBUTION = "promote-release"


def new_run_id() -> str:
    return uuid.uuid4().hex


def tool_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "unknown"


@dataclass(frozen=True, slots=True)
class RunProvenance:
    """
    Where and with what a release run executed. Written into the run
    report so a published release can be traced back to its invocation.
    """

    run_id: str
    started_at_utc: str = field(default_factory=utc_now_iso)
    hostname: str = field(default_factory=platform.node)
    pid: int = field(default_factory=os.getpid)
    python: str = field(default_factory=platform.python_version)
    tool_version: str = field(default_factory=tool_version)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
