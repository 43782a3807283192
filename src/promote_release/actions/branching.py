from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from promote_release.core import ReleaseError, Unconfigured
from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices

log = structlog.get_logger(__name__)

RUST_REPOSITORY = "rust-lang/rust"
CARGO_REPOSITORY = "rust-lang/cargo"
VERSION_FILE = "src/version"


def stage_promote_branches(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    """
    Start a release cycle:

      * stable := beta's tip
      * beta := master just before the last version bump
      * cargo gets `rust-<new beta>` at the submodule commit of that master

    Refuses to run twice: before promotion stable, beta and pre-bump master
    all carry different versions.
    """
    if isinstance(services.github, Unconfigured):
        reason = f"Skipping branching -- {services.github.describe()}"
        log.warning(reason)
        ctx.emit(EventType.NOTIFY_SKIPPED, stage="promote_branches", reason=reason)
        return {"skipped": reason}

    rust = services.github.token(RUST_REPOSITORY)
    bump = rust.last_commit_for_file(VERSION_FILE)
    if not bump.parents:
        raise ReleaseError(f"version bump commit {bump.sha} has no parents")
    prebump_sha = bump.parents[0]
    beta_sha = rust.get_ref("heads/beta")

    stable_version = rust.read_file("stable", VERSION_FILE).text().strip()
    beta_version = rust.read_file("beta", VERSION_FILE).text().strip()
    future_beta = rust.read_file(prebump_sha, VERSION_FILE).text().strip()
    log.info(
        "branch versions",
        stable=stable_version,
        beta=beta_version,
        prebump=future_beta,
        prebump_sha=prebump_sha,
    )

    if stable_version == beta_version:
        raise ReleaseError(
            f"Stable and beta have the same version: {stable_version}; "
            "refusing to promote branches."
        )
    if beta_version == future_beta:
        raise ReleaseError(
            f"Beta and pre-bump master ({prebump_sha}) have the same version: "
            f"{beta_version}; refusing to promote branches."
        )

    # The app may force-push these branches without lifting protection.
    rust.update_ref("heads/stable", beta_sha, force=True)
    rust.update_ref("heads/beta", prebump_sha, force=True)

    cargo_sha = rust.read_file(prebump_sha, "src/tools/cargo").require_submodule()
    branch = f"refs/heads/rust-{future_beta}"
    services.github.token(CARGO_REPOSITORY).create_ref(branch, cargo_sha)

    return {
        "stable": beta_sha,
        "beta": prebump_sha,
        "cargo_branch": branch,
        "cargo_sha": cargo_sha,
    }
