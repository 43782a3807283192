from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

import httpx

from promote_release.core import (
    CommandRunner,
    ConfigError,
    Settings,
    Unconfigured,
    WorkLayout,
    run_command,
)
from promote_release.remote import (
    CachePurger,
    DistributionInvalidator,
    ForumPoster,
    GithubApp,
    make_http_client,
)
from promote_release.storage import AwsCliBlobStore, BlobStore

if TYPE_CHECKING:
    from promote_release.stages.manifest import ManifestBuilder, ManifestExecution
    from promote_release.stages.sign import Signer, SigningBackend
    from promote_release.stages.smoke import SmokeTester


@dataclass(slots=True)
class ReleaseServices:
    """
    External collaborators of one run. Tests replace any of them with fakes.
    """

    runner: CommandRunner
    blob: BlobStore
    http: httpx.Client
    signing_backend: Callable[[], "SigningBackend"]
    github: GithubApp | Unconfigured
    discourse: ForumPoster | Unconfigured
    fastly: CachePurger | Unconfigured
    cloudfront: DistributionInvalidator | Unconfigured
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def from_settings(cls, settings: Settings, layout: WorkLayout) -> "ReleaseServices":
        def gnupg_backend() -> "SigningBackend":
            from promote_release.stages.sign import GnupgBackend

            if settings.gpg_key_file is None or settings.gpg_password_file is None:
                raise ConfigError("signing requires GPG_KEY_FILE and GPG_PASSWORD_FILE")
            return GnupgBackend(
                key_file=settings.gpg_key_file,
                password_file=settings.gpg_password_file,
            )

        return cls(
            runner=run_command,
            blob=AwsCliBlobStore(endpoint_url=settings.s3_endpoint_url, runner=run_command),
            http=make_http_client(),
            signing_backend=gnupg_backend,
            github=settings.github(),
            discourse=settings.discourse(),
            fastly=settings.fastly(),
            cloudfront=settings.cloudfront(payload_path=layout.invalidation_payload()),
        )

    def close(self) -> None:
        self.http.close()
        for client in (self.github, self.discourse, self.fastly):
            close = getattr(client, "close", None)
            if callable(close):
                close()


@dataclass(slots=True)
class ReleaseState:
    """
    Long-lived helpers created after the gate and shared by later stages.
    """

    signer: "Signer | None" = None
    builder: "ManifestBuilder | None" = None
    smoke: "SmokeTester | None" = None
    execution: "ManifestExecution | None" = None

    def require_signer(self) -> "Signer":
        if self.signer is None:
            raise RuntimeError("signer requested before it was created")
        return self.signer

    def require_builder(self) -> "ManifestBuilder":
        if self.builder is None:
            raise RuntimeError("manifest builder requested before it was created")
        return self.builder

    def require_smoke(self) -> "SmokeTester":
        if self.smoke is None:
            raise RuntimeError("smoke tester requested before it was created")
        return self.smoke

    def close(self) -> None:
        if self.smoke is not None:
            self.smoke.close()
        if self.builder is not None:
            self.builder.close()
        if self.signer is not None:
            close = getattr(self.signer.backend, "close", None)
            if callable(close):
                close()
