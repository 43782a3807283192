from __future__ import annotations

import secrets
from pathlib import Path
from typing import Protocol, Sequence

import structlog

from promote_release.core import CommandRunner, atomic_write_json, run_command

log = structlog.get_logger(__name__)


class DistributionInvalidator(Protocol):
    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> None: ...


class CloudFront:
    """
    Invalidates CloudFront distributions through the `aws` CLI.

    The invalidation batch is written to `payload_path` and passed with
    `file://`, matching the CLI's `--invalidation-batch` input.
    """

    def __init__(self, *, payload_path: Path, runner: CommandRunner = run_command) -> None:
        self.payload_path = payload_path
        self._run = runner

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> None:
        if not distribution_id:
            log.warning("no distribution id configured, skipping invalidation", paths=list(paths))
            return

        payload = {
            "Paths": {"Items": list(paths), "Quantity": len(paths)},
            "CallerReference": f"rct-{secrets.randbelow(10**12)}",
        }
        atomic_write_json(self.payload_path, payload)

        log.info("invalidating cloudfront", distribution=distribution_id, paths=list(paths))
        self._run(
            [
                "aws",
                "cloudfront",
                "create-invalidation",
                "--invalidation-batch",
                f"file://{self.payload_path}",
                "--distribution-id",
                distribution_id,
            ]
        )
