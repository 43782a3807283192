from __future__ import annotations

from typing import TYPE_CHECKING, Any

from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType

if TYPE_CHECKING:
    from promote_release.services import ReleaseState


def stage_smoke_test(ctx: RunContext, state: ReleaseState) -> dict[str, Any]:
    smoke = state.require_smoke()
    channel = ctx.require_facts().channel.value

    ctx.emit(EventType.SMOKE_START, stage="smoke_test", addr=smoke.server_addr, channel=channel)
    smoke.test(channel)
    ctx.emit(EventType.SMOKE_FINISH, stage="smoke_test", channel=channel)
    return {"server": smoke.server_addr}
