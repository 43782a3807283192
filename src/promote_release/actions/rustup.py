from __future__ import annotations

import tomllib
from typing import TYPE_CHECKING, Any

import structlog

from promote_release.core import (
    Channel,
    ConfigError,
    ReleaseError,
    Unconfigured,
    atomic_write_text,
    reset_dir,
)
from promote_release.pipeline import RunContext
from promote_release.pipeline.events import EventType
from promote_release.storage import s3_url

if TYPE_CHECKING:
    from promote_release.services import ReleaseServices

log = structlog.get_logger(__name__)

RUSTUP_REPOSITORY = "rust-lang/rustup"


def release_manifest(version: str) -> str:
    return f"schema-version = '1'\nversion = '{version}'\n"


def rustup_version(ctx: RunContext, services: ReleaseServices) -> str:
    """
    Version being promoted: the override when set, else the `version` of
    `Cargo.toml` at the tip of rustup's stable branch.
    """
    if ctx.settings.rustup_override_version:
        return ctx.settings.rustup_override_version
    if isinstance(services.github, Unconfigured):
        raise ConfigError(f"cannot determine the rustup version: {services.github.describe()}")

    repo = services.github.token(RUSTUP_REPOSITORY)
    head = repo.get_ref("heads/stable")
    text = repo.read_file(head, "Cargo.toml").text()
    try:
        version = tomllib.loads(text)["package"]["version"]
    except (tomllib.TOMLDecodeError, KeyError) as e:
        raise ReleaseError(f"no package version in rustup's Cargo.toml at {head}") from e
    return str(version)


def stage_promote_rustup(ctx: RunContext, services: ReleaseServices) -> dict[str, Any]:
    """
    Copy the rustup build from the artifact bucket to `archive/<version>/`,
    to `dist/` on stable, then point `release-stable.toml` at the version.
    """
    s = ctx.settings
    if s.channel not in (Channel.STABLE, Channel.BETA):
        raise ConfigError("promoting rustup is only supported for the stable and beta channels")

    version = rustup_version(ctx, services)
    log.info("promoting rustup", version=version, channel=str(s.channel))

    dist_dir = ctx.layout.dl_dir() / "dist"
    reset_dir(dist_dir)
    services.blob.copy_recursive(s3_url(s.download_bucket, f"{s.download_dir}/dist"), f"{dist_dir}/")

    published: list[str] = []
    archive = s3_url(s.upload_bucket, f"{s.upload_dir}/archive/{version}")
    services.blob.copy_recursive(f"{dist_dir}/", archive)
    published.append(archive)
    ctx.emit(EventType.PUBLISH_FINISH, stage="promote_rustup", dst=archive)

    if s.channel is Channel.STABLE:
        dist = s3_url(s.upload_bucket, f"{s.upload_dir}/dist")
        services.blob.copy_recursive(f"{dist_dir}/", dist)
        published.append(dist)
        ctx.emit(EventType.PUBLISH_FINISH, stage="promote_rustup", dst=dist)

    manifest_path = ctx.layout.dl_dir() / "release-stable.toml"
    atomic_write_text(manifest_path, release_manifest(version))
    manifest_dst = s3_url(s.upload_bucket, s.upload_dir) + "release-stable.toml"
    services.blob.put_file(manifest_path, manifest_dst)
    published.append(manifest_dst)

    return {"version": version, "published": published}
