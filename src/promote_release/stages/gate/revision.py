from __future__ import annotations

import structlog

from promote_release.core import Channel, CommandRunner, ReleaseError, run_command

log = structlog.get_logger(__name__)


def tracked_ref(channel: Channel, override_branch: str | None = None) -> str:
    if override_branch:
        return f"refs/heads/{override_branch}"
    return channel.tracked_ref


def parse_ls_remote(output: str, ref: str) -> str | None:
    for line in output.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1] == ref:
            return parts[0]
    return None


def resolve_revision(
    *,
    channel: Channel,
    repository: str,
    override_commit: str | None = None,
    override_branch: str | None = None,
    runner: CommandRunner = run_command,
) -> str:
    """
    Commit to release: the explicit override, else the tip of the channel's
    tracked branch on `repository`.
    """
    if override_commit:
        return override_commit

    ref = tracked_ref(channel, override_branch)
    out = runner(["git", "ls-remote", repository, ref], capture=True)
    sha = parse_ls_remote(out, ref)
    if sha is None:
        raise ReleaseError(f"missing git ref in {repository}: {ref}")
    return sha
