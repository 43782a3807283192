from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from promote_release.core import Channel, ReleaseError, Unconfigured
from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType
from promote_release.remote import CreateTag, GithubApp

from .blog import (
    ANNOUNCEMENTS_CATEGORY,
    BLOG_PRIMARY_BRANCH,
    INTERNALS_CATEGORY,
    PrereleaseSchedule,
    prerelease_post_path,
    release_blog_url,
    render_prerelease_post,
)

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices, ReleaseState
    from promote_release.stages.sign import Signer

log = structlog.get_logger(__name__)

TAGGER_NAME = "rust-lang/promote-release"
TAGGER_EMAIL = "release-team@rust-lang.org"
THANKS_REPOSITORY = "rust-lang/thanks"
PAGES_POLL_SECONDS = 33.0


def _skip(ctx: RunContext, stage: str, reason: str) -> dict[str, Any]:
    log.warning(reason)
    ctx.emit(EventType.NOTIFY_SKIPPED, stage=stage, reason=reason)
    return {"skipped": reason}


def stage_blog_and_discourse(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    """
    Stable only. With a scheduled release date: post the pre-release testing
    thread and the inside-rust blog post. With a blog PR: merge it, wait
    for the blog to redeploy, then announce the release.
    """
    stage = "blog_and_discourse"
    facts = ctx.require_facts()
    s = ctx.settings

    if facts.channel is not Channel.STABLE:
        return _skip(ctx, stage, "Skipping blogging -- not on stable")
    if isinstance(services.github, Unconfigured):
        return _skip(ctx, stage, f"Skipping blogging - {services.github.describe()}")
    if isinstance(services.discourse, Unconfigured):
        return _skip(ctx, stage, f"Skipping blogging - {services.discourse.describe()}")
    if not s.blog_repository:
        return _skip(ctx, stage, "Skipping blogging - blog repository not configured")

    github = services.github
    discourse = services.discourse
    version = facts.release_name

    if s.scheduled_release_date is not None:
        schedule = PrereleaseSchedule(s.scheduled_release_date, s.scheduled_release_time)
        internals = render_prerelease_post(
            s.blog_contents, version=version, today=ctx.date, schedule=schedule, for_blog=False
        )
        if internals is None:
            return _skip(ctx, stage, "Skipping internals - insufficient information to create post")

        internals_url = discourse.create_topic(
            INTERNALS_CATEGORY, f"Rust {version} pre-release testing", internals
        )
        ctx.emit(EventType.TOPIC_CREATED, stage=stage, url=internals_url)

        blog = render_prerelease_post(
            s.blog_contents,
            version=version,
            today=ctx.date,
            schedule=schedule,
            for_blog=True,
            internals_url=internals_url,
        )
        if blog is None:
            return _skip(ctx, stage, "Skipping blogging - insufficient information to create post")

        path = prerelease_post_path(ctx.date, version)
        github.token(s.blog_repository).create_file(BLOG_PRIMARY_BRANCH, path, blog)
        return {"internals_url": internals_url, "blog_post": path}

    if s.blog_pr is not None:
        repo = github.token(s.blog_repository)
        before = repo.latest_github_pages()

        try:
            repo.merge_pr(s.blog_pr)
        except ReleaseError as e:
            log.error("failed to merge blog PR", pr=s.blog_pr, error=str(e))
            return {"merged": False, "_warnings": [f"failed to merge PR #{s.blog_pr}: {e}"]}

        while True:
            now = repo.latest_github_pages()
            if now is not None and now != before:
                break
            log.info("waiting for GitHub pages deployment of blog", latest=str(now))
            services.sleep(PAGES_POLL_SECONDS)

        url = discourse.create_topic(
            ANNOUNCEMENTS_CATEGORY, f"Rust {version}", release_blog_url(ctx.date, version)
        )
        ctx.emit(EventType.TOPIC_CREATED, stage=stage, url=url)
        return {"merged": True, "announcement_url": url}

    return _skip(ctx, stage, "Skipping blogging - neither a release date nor a blog PR is set")


def tag_repository(
    signer: Signer,
    github: GithubApp,
    *,
    repository: str,
    commit: str,
    version: str,
) -> str:
    message = signer.git_signed_tag(
        commit=commit,
        tag=version,
        username=TAGGER_NAME,
        email=TAGGER_EMAIL,
        message=f"{version} release",
    )
    github.token(repository).tag(
        CreateTag(
            commit=commit,
            tag_name=version,
            message=message,
            tagger_name=TAGGER_NAME,
            tagger_email=TAGGER_EMAIL,
        )
    )
    log.info("tagged release", repository=repository, tag=version, commit=commit)
    return version


def stage_tag_release(
    ctx: RunContext, services: ReleaseServices, state: ReleaseState
) -> dict[str, Any]:
    """
    Stable only: tag rustc at the released commit, kick off the thanks
    workflow, then tag cargo at the submodule commit rustc pins.
    """
    stage = "tag_release"
    facts = ctx.require_facts()
    s = ctx.settings

    if facts.channel is not Channel.STABLE:
        return _skip(ctx, stage, "Skipping tagging -- not on stable")
    if isinstance(services.github, Unconfigured):
        return _skip(ctx, stage, f"Skipping tagging - {services.github.describe()}")
    if not s.rustc_tag_repository:
        return _skip(ctx, stage, "Skipping tagging - rustc tag repository not configured")

    github = services.github
    signer = state.require_signer()
    tags: list[dict[str, str]] = []

    rustc_version = facts.release_name
    tag_repository(
        signer,
        github,
        repository=s.rustc_tag_repository,
        commit=facts.revision,
        version=rustc_version,
    )
    ctx.emit(EventType.TAG_CREATED, stage=stage, repository=s.rustc_tag_repository, tag=rustc_version)
    tags.append({"repository": s.rustc_tag_repository, "tag": rustc_version})

    github.token(THANKS_REPOSITORY).workflow_dispatch("ci.yml", "master")

    if s.cargo_tag_repository:
        if not facts.current_cargo_version:
            raise ReleaseError("stable release without a probed cargo version")
        cargo_commit = (
            github.token(s.rustc_tag_repository)
            .read_file(facts.revision, "src/tools/cargo")
            .require_submodule()
        )
        tag_repository(
            signer,
            github,
            repository=s.cargo_tag_repository,
            commit=cargo_commit,
            version=facts.current_cargo_version,
        )
        ctx.emit(
            EventType.TAG_CREATED,
            stage=stage,
            repository=s.cargo_tag_repository,
            tag=facts.current_cargo_version,
        )
        tags.append({"repository": s.cargo_tag_repository, "tag": facts.current_cargo_version})

    return {"tags": tags}
