from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Mapping, Protocol, Sequence

import structlog

from .errors import ExternalCommandError

log = structlog.get_logger(__name__)


class CommandRunner(Protocol):
    def __call__(
        self,
        argv: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> str: ...


def run_command(
    argv: Sequence[str | os.PathLike[str]],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = False,
) -> str:
    """
    Run an external program to completion. No timeout: a hung tool hangs the
    release, the supervisor's outer timeout owns that case.

    `env` entries are layered over the current process environment.
    Returns captured stdout when `capture` is set, otherwise "".
    """
    args = [str(a) for a in argv]
    log.info("running command", argv=args, cwd=str(cwd) if cwd else None)

    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)

    try:
        proc = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            env=full_env,
            stdout=subprocess.PIPE if capture else None,
            text=True,
            check=False,
        )
    except OSError as e:
        raise ExternalCommandError(argv=args, status=None, detail=str(e)) from e

    if proc.returncode != 0:
        raise ExternalCommandError(argv=args, status=proc.returncode)
    return (proc.stdout or "") if capture else ""
