from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

import structlog

from promote_release.core import (
    Channel,
    DataConsistencyError,
    ReleaseSkipped,
)
from promote_release.core.config import ENV_PREFIX
from promote_release.pipeline.types import ReleaseFacts

log = structlog.get_logger(__name__)

BYPASS_HINT = f"set {ENV_PREFIX}BYPASS_STARTUP_CHECKS=1 to bypass the check"


class ManifestSource(Protocol):
    def previous_version(self) -> str: ...
    def dated_exists(self, date: str) -> bool: ...


def first_word(version: str) -> str:
    return version.split(" ", 1)[0]


def check_channel_switch(previous: str, current: str) -> None:
    """
    Right after a branch is cut the new branch still builds the old
    channel's artifacts until its channel bump lands. Releasing in that
    window would publish the wrong toolchain.
    """
    if ("nightly" in current and "nightly" not in previous) or (
        "beta" in current and "beta" not in previous
    ):
        raise DataConsistencyError(
            "looks like channels are being switched -- was this branch just "
            "created and has a pending PR to change the release channel? "
            f"(previous: {previous!r}, current: {current!r})"
        )


@dataclass(frozen=True, slots=True)
class ProbedVersions:
    rustc: str
    cargo: str


class ReleaseGate:
    """
    Decides whether a release is due. `evaluate` returns the facts for a
    release that should proceed and raises ReleaseSkipped otherwise.

    Checks run in a fixed order: the revision is already released, a
    release already happened today, then (after downloading) the version
    did not change. Downloading is a side effect the rest of the pipeline
    relies on, so it happens even when the version check is bypassed.
    """

    def __init__(
        self,
        *,
        channel: Channel,
        date: str,
        bypass: bool,
        manifests: ManifestSource,
        resolve_revision: Callable[[], str],
        download: Callable[[str], list[Path]],
        probe: Callable[[], ProbedVersions],
        on_decision: Callable[..., None] | None = None,
    ) -> None:
        self.channel = channel
        self.date = date
        self.bypass = bypass
        self.manifests = manifests
        self._resolve_revision = resolve_revision
        self._download = download
        self._probe = probe
        self._on_decision = on_decision

    def _decide(self, check: str, fired: bool, reason: str) -> None:
        if self._on_decision is not None:
            self._on_decision(check=check, fired=fired, bypassed=fired and self.bypass)
        if not fired:
            return
        if self.bypass:
            log.warning("startup check bypassed", check=check, reason=reason)
            return
        raise ReleaseSkipped(reason, hint=BYPASS_HINT)

    def evaluate(self) -> ReleaseFacts:
        revision = self._resolve_revision()
        log.info("resolved revision", channel=str(self.channel), rev=revision)

        previous = self.manifests.previous_version()
        log.info("previous version", version=previous)

        self._decide(
            "revision",
            revision[:7] in previous,
            "found rev in previous version, skipping",
        )
        self._decide(
            "same_day",
            self.manifests.dated_exists(self.date),
            f"another release on the {self.channel} channel was done today "
            f"({self.date}), skipping",
        )

        self._download(revision)

        current: str | None = None
        cargo: str | None = None
        if self.channel is not Channel.NIGHTLY:
            probed = self._probe()
            log.info("current version", rustc=probed.rustc, cargo=probed.cargo)
            current = first_word(probed.rustc)
            cargo = first_word(probed.cargo)

            self._decide(
                "version",
                first_word(previous) == current,
                "version hasn't changed, skipping",
            )
            check_channel_switch(previous, probed.rustc)

        return ReleaseFacts(
            channel=self.channel,
            revision=revision,
            date=self.date,
            previous_version=previous,
            current_version=current,
            current_cargo_version=cargo,
        )
