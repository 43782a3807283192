from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Sequence


class ReleaseError(RuntimeError):
    """Base error"""


@dataclass(frozen=True, slots=True)
class StageError:
    """
    A normalized error record for stage failures.
    """

    exc_type: str
    message: str
    traceback: str
    chain: list[str] = field(default_factory=list)


def error_chain(exc: BaseException) -> list[str]:
    """
    Flatten `raise ... from ...` links into outermost-first messages.
    """
    out: list[str] = []
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        out.append(f"{type(cur).__name__}: {cur}")
        cur = cur.__cause__ or cur.__context__
    return out


def stage_error_from_exc(exc: BaseException) -> StageError:
    return StageError(
        exc_type=type(exc).__name__,
        message=str(exc),
        traceback=traceback.format_exc(),
        chain=error_chain(exc),
    )


class ReleaseSkipped(Exception):
    """
    Not an error: a gate decided there is nothing to release.
    """

    def __init__(self, reason: str, *, hint: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


class ConfigError(ReleaseError):
    """Missing or malformed environment configuration"""


class LockHeldError(ReleaseError):
    """Another run holds the work directory lock"""


class ExternalCommandError(ReleaseError):
    """
    An external process exited non-zero (or could not be started).
    """

    def __init__(self, *, argv: Sequence[str], status: int | None, detail: str = "") -> None:
        cmd = " ".join(str(a) for a in argv)
        msg = f"failed command: {cmd} (status={status})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.argv = [str(a) for a in argv]
        self.status = status


class HttpStatusError(ReleaseError):
    """
    Unexpected HTTP status from a remote service.
    """

    def __init__(
        self,
        *,
        method: str,
        url: str,
        status_code: int,
        body_snippet: str | None = None,
    ) -> None:
        msg = f"unexpected status code {status_code} for {method} {url}"
        if body_snippet:
            msg += f" (body: {body_snippet})"
        super().__init__(msg)
        self.method = method
        self.url = url
        self.status_code = status_code


class VersionProbeError(ReleaseError):
    """No archive carried a readable version file"""


class RecompressionError(ReleaseError):
    """Recompressing an artifact failed"""


class ManifestToolError(ReleaseError):
    """The manifest generation tool failed or could not be located"""


class SigningError(ReleaseError):
    """Key material or per-file signing failure"""


class SmokeTestError(ReleaseError):
    """The local install test failed"""


class DataConsistencyError(ReleaseError):
    """
    The release is in an inconsistent transitional state (channel switch in
    progress, missing components, empty artifact set). Never auto-resolved.
    """


class RemoteServiceError(ReleaseError):
    """A remote service returned something we cannot work with"""
