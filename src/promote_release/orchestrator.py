from __future__ import annotations

from functools import partial
from typing import Any, Callable

from promote_release.core import (
    Action,
    ILogger,
    Settings,
    WorkDirLock,
    WorkLayout,
)
from promote_release.pipeline import PipelineRunner, RunContext, RunnerConfig, RunReport, Stage
from promote_release.services import ReleaseServices, ReleaseState
from promote_release.stages import (
    stage_blog_and_discourse,
    stage_cleanup,
    stage_discover_shipped,
    stage_gate,
    stage_generate_manifests,
    stage_invalidate,
    stage_merge_manifests,
    stage_publish_archive,
    stage_publish_docs,
    stage_publish_release,
    stage_recompress,
    stage_sign,
    stage_smoke_test,
    stage_tag_release,
)
from promote_release.stages.manifest import manifest_builder_for
from promote_release.stages.sign import Signer
from promote_release.stages.smoke import SmokeTester


def stage_prepare(ctx: RunContext, services: ReleaseServices, state: ReleaseState) -> dict[str, Any]:
    """
    Create the helpers shared by the manifest, signing and smoke test
    stages. Key material is loaded here, after the gate, so a run with
    nothing to release never touches it.
    """
    state.signer = Signer(services.signing_backend(), num_threads=ctx.settings.num_threads)
    state.builder = manifest_builder_for(ctx, services)
    state.smoke = SmokeTester(
        [ctx.layout.smoke_manifest_dir(), ctx.layout.dl_dir()],
        runner=services.runner,
    )
    return {"manifest_tool": str(state.builder.tool), "smoke_server": state.smoke.server_addr}


def release_stages(services: ReleaseServices, state: ReleaseState) -> list[Stage]:
    """
    The promote-release pipeline. Everything up to `publish_release`
    aborts the run on failure; later stages only notify and clean up, so
    they run best-effort once the release is public.
    """
    fn = PipelineRunner.fn

    def with_services(f: Callable[..., dict[str, Any]]) -> Callable[[RunContext], dict[str, Any]]:
        return partial(f, services=services)

    def with_state(f: Callable[..., dict[str, Any]]) -> Callable[[RunContext], dict[str, Any]]:
        return partial(f, state=state)

    return [
        fn("gate", with_services(stage_gate)),
        fn("recompress", stage_recompress),
        fn("prepare", partial(stage_prepare, services=services, state=state)),
        fn("discover", with_state(stage_discover_shipped)),
        fn("manifests", with_state(stage_generate_manifests)),
        fn("sign", with_state(stage_sign)),
        fn("smoke_test", with_state(stage_smoke_test)),
        fn("merge_manifests", stage_merge_manifests),
        fn("publish_archive", with_services(stage_publish_archive)),
        fn("publish_docs", with_services(stage_publish_docs)),
        fn("publish_release", with_services(stage_publish_release)),
        fn("invalidate", with_services(stage_invalidate), best_effort=True),
        fn("cleanup", stage_cleanup, best_effort=True),
        fn("blog_and_discourse", with_services(stage_blog_and_discourse), best_effort=True),
        fn(
            "tag_release",
            partial(stage_tag_release, services=services, state=state),
            best_effort=True,
        ),
    ]


def action_stages(action: Action, services: ReleaseServices, state: ReleaseState) -> list[Stage]:
    if action is Action.PROMOTE_RELEASE:
        return release_stages(services, state)

    from promote_release.actions import stage_promote_branches, stage_promote_rustup

    single: dict[Action, Callable[..., dict[str, Any]]] = {
        Action.PROMOTE_BRANCHES: stage_promote_branches,
        Action.PROMOTE_RUSTUP: stage_promote_rustup,
    }
    stage_fn = single[action]
    return [PipelineRunner.fn(action.value.replace("-", "_"), partial(stage_fn, services=services))]


class ReleaseOrchestrator:
    """
    One invocation of the tool: holds the work directory lock for the
    whole run and tears down every helper it created, whatever the outcome.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        layout: WorkLayout,
        services: ReleaseServices | None = None,
        logger: ILogger | None = None,
        date: str | None = None,
    ) -> None:
        self.settings = settings
        self.layout = layout
        self.services = services
        self.logger = logger
        self.date = date
        self.state = ReleaseState()

    def run(self, *, run_id: str | None = None, meta: dict[str, Any] | None = None) -> RunReport:
        self.layout.ensure_dirs()
        with WorkDirLock(self.layout.lock_file()):
            services = self.services or ReleaseServices.from_settings(self.settings, self.layout)
            try:
                runner = PipelineRunner(
                    stages=action_stages(self.settings.action, services, self.state),
                    cfg=RunnerConfig(stop_on_failure=True),
                    logger=self.logger,
                )
                ctx = runner.new_context(
                    layout=self.layout,
                    settings=self.settings,
                    run_id=run_id,
                    date=self.date,
                    meta=meta,
                )
                return runner.run(ctx)
            finally:
                self.state.close()
                services.close()
