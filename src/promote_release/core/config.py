from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

if TYPE_CHECKING:
    from promote_release.remote.cloudfront import CloudFront
    from promote_release.remote.discourse import Discourse
    from promote_release.remote.fastly import Fastly
    from promote_release.remote.github import Github

ENV_PREFIX = "PROMOTE_RELEASE_"

LogFormat = Literal["json", "console"]

# xz only accepts dictionary sizes up to 1.5 GiB.
XZ_DICTSIZE_LIMIT = (1024 + 512) * 1024 * 1024


class Channel(str, Enum):
    NIGHTLY = "nightly"
    BETA = "beta"
    STABLE = "stable"

    def __str__(self) -> str:
        return self.value

    @property
    def tracked_ref(self) -> str:
        return {
            Channel.NIGHTLY: "refs/heads/master",
            Channel.BETA: "refs/heads/beta",
            Channel.STABLE: "refs/heads/stable",
        }[self]


class Action(str, Enum):
    PROMOTE_RELEASE = "promote-release"
    PROMOTE_BRANCHES = "promote-branches"
    PROMOTE_RUSTUP = "promote-rustup"


@dataclass(frozen=True, slots=True)
class Unconfigured:
    """
    A credential-gated collaborator whose settings are absent.
    """

    service: str
    missing: list[str] = field(default_factory=list)
    reason: str | None = None

    def describe(self) -> str:
        if self.reason:
            return f"{self.service} disabled: {self.reason}"
        names = ", ".join(ENV_PREFIX + m.upper() for m in self.missing)
        return f"{self.service} not configured (set {names})"


_REQUIRED_FOR: dict[Action, tuple[str, ...]] = {
    Action.PROMOTE_RELEASE: (
        "download_bucket",
        "download_dir",
        "upload_addr",
        "upload_bucket",
        "upload_dir",
        "gpg_key_file",
        "gpg_password_file",
    ),
    Action.PROMOTE_RUSTUP: (
        "download_bucket",
        "download_dir",
        "upload_bucket",
        "upload_dir",
    ),
    Action.PROMOTE_BRANCHES: (),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="ignore",
        frozen=True,
    )

    action: Action = Field(default=Action.PROMOTE_RELEASE)
    channel: Channel

    override_commit: str | None = None
    override_branch: str | None = None
    repository: str = Field(default="https://github.com/rust-lang/rust.git")

    download_bucket: str = ""
    download_dir: str = ""
    upload_addr: str = ""
    upload_bucket: str = ""
    upload_dir: str = ""
    upload_storage_class: str = Field(default="INTELLIGENT_TIERING")
    s3_endpoint_url: str | None = None

    gpg_key_file: Path | None = None
    gpg_password_file: Path | None = None

    num_threads: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)
    recompress_gz: bool = False
    recompress_xz: bool = False
    gzip_compression_level: int = Field(default=9, ge=0, le=9)
    max_xz_dictsize: int = Field(default=128 * 1024 * 1024, ge=4096, le=XZ_DICTSIZE_LIMIT)

    bypass_startup_checks: bool = False
    skip_cloudfront_invalidations: bool = False
    skip_delete_build_dir: bool = False
    invalidate_fastly: bool = False

    cloudfront_doc_id: str = ""
    cloudfront_static_id: str = ""
    fastly_api_token: str | None = None
    fastly_service_id: str | None = None

    github_app_key: str | None = None
    github_app_id: int | None = None
    discourse_api_key: str | None = None
    discourse_api_user: str | None = None
    discourse_url: str | None = None
    blog_repository: str | None = None
    blog_pr: int | None = None
    blog_contents: str | None = None
    scheduled_release_date: date | None = None
    scheduled_release_time: str | None = None
    rustc_tag_repository: str | None = None
    cargo_tag_repository: str | None = None

    build_manifest_path: Path | None = None
    target: str = Field(default="x86_64-unknown-linux-gnu")
    rustup_override_version: str | None = None

    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="console")

    @field_validator("max_xz_dictsize")
    @classmethod
    def _check_xz_dictsize_form(cls, v: int) -> int:
        hi = 1 << (v.bit_length() - 1)
        if v not in (hi, hi | (hi >> 1)):
            raise ValueError(
                f"max_xz_dictsize must be 2^n or 2^n + 2^(n-1) bytes, got {v}"
            )
        return v

    @model_validator(mode="after")
    def _check_required_for_action(self) -> "Settings":
        missing = [
            name for name in _REQUIRED_FOR[self.action] if not getattr(self, name)
        ]
        if missing:
            names = ", ".join(ENV_PREFIX + m.upper() for m in missing)
            raise ValueError(f"{self.action.value} requires: {names}")
        return self

    def upload_base_url(self) -> str:
        return f"{self.upload_addr}/{self.upload_dir}"

    def github(self) -> Github | Unconfigured:
        missing = [
            n for n in ("github_app_key", "github_app_id") if getattr(self, n) is None
        ]
        if missing:
            return Unconfigured("GitHub", missing)

        from promote_release.remote.github import Github

        assert self.github_app_key is not None and self.github_app_id is not None
        return Github(key_pem=self.github_app_key, app_id=self.github_app_id)

    def discourse(self) -> Discourse | Unconfigured:
        missing = [
            n
            for n in ("discourse_url", "discourse_api_user", "discourse_api_key")
            if not getattr(self, n)
        ]
        if missing:
            return Unconfigured("Discourse", missing)

        from promote_release.remote.discourse import Discourse

        return Discourse(
            root=str(self.discourse_url),
            api_username=str(self.discourse_api_user),
            api_key=str(self.discourse_api_key),
        )

    def fastly(self) -> Fastly | Unconfigured:
        missing = [
            n for n in ("fastly_api_token", "fastly_service_id") if not getattr(self, n)
        ]
        if missing:
            return Unconfigured("Fastly", missing)

        from promote_release.remote.fastly import Fastly

        return Fastly(
            api_token=str(self.fastly_api_token),
            service_id=str(self.fastly_service_id),
        )

    def cloudfront(self, *, payload_path: Path) -> CloudFront | Unconfigured:
        if self.skip_cloudfront_invalidations:
            return Unconfigured(
                "CloudFront",
                reason=f"{ENV_PREFIX}SKIP_CLOUDFRONT_INVALIDATIONS is set",
            )

        from promote_release.remote.cloudfront import CloudFront

        return CloudFront(payload_path=payload_path)


def settings_from_env() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        raise ConfigError(f"invalid {ENV_PREFIX}* environment: {e}") from e


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return settings_from_env()
