from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from promote_release.core import Channel


@dataclass(frozen=True, slots=True)
class ReleaseFacts:
    """
    Everything the gate learned about the release, computed once and handed
    to every later stage.
    """

    channel: Channel
    revision: str
    date: str
    previous_version: str
    current_version: Optional[str] = None
    current_cargo_version: Optional[str] = None

    @property
    def short_revision(self) -> str:
        return self.revision[:7]

    @property
    def release_name(self) -> str:
        """
        Name used inside artifact file names: the version number on stable,
        the channel name elsewhere.
        """
        if self.channel is Channel.STABLE:
            if not self.current_version:
                raise ValueError("stable release without a probed rustc version")
            return self.current_version
        return self.channel.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "revision": self.revision,
            "date": self.date,
            "previous_version": self.previous_version,
            "current_version": self.current_version,
            "current_cargo_version": self.current_cargo_version,
        }


@dataclass(frozen=True, slots=True)
class Event:
    """
    Structured event emitted by the pipeline.
    """

    type: str
    ts_utc: str
    run_id: str
    stage: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
