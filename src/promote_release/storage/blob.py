from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

import structlog

from promote_release.core import CommandRunner, run_command

log = structlog.get_logger(__name__)

Location = str | os.PathLike[str]


def s3_url(bucket: str, path: str = "") -> str:
    """
    `s3_url("static-rust-lang-org", "dist/2024-01-01")` ->
    `s3://static-rust-lang-org/dist/2024-01-01/`

    Prefixes always end with a slash so recursive copies address the
    directory and never a same-named sibling object.
    """
    path = path.strip("/")
    if not path:
        return f"s3://{bucket}/"
    return f"s3://{bucket}/{path}/"


@dataclass(frozen=True, slots=True)
class CopyOptions:
    storage_class: str | None = None
    cache_control: str | None = None
    metadata_directive: str | None = None

    def to_args(self) -> list[str]:
        args: list[str] = []
        if self.storage_class:
            args += ["--storage-class", self.storage_class]
        if self.cache_control:
            args += ["--cache-control", self.cache_control]
        if self.metadata_directive:
            args += ["--metadata-directive", self.metadata_directive]
        return args


class BlobStore(Protocol):
    def list(self, prefix: str) -> list[str]: ...

    def copy_recursive(
        self, src: Location, dst: Location, options: CopyOptions = CopyOptions()
    ) -> None: ...

    def sync(
        self,
        src: Location,
        dst: Location,
        *,
        delete: bool = False,
        options: CopyOptions = CopyOptions(),
    ) -> None: ...

    def put_file(self, src: Path, dst: str, options: CopyOptions = CopyOptions()) -> None: ...


class AwsCliBlobStore:
    """
    Object storage through the `aws s3` CLI.

    The CLI already handles multipart uploads, parallel transfers and
    credential discovery, so every operation is a single blocking command.
    """

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self.endpoint_url = endpoint_url
        self._run = runner

    def _s3(self, *args: str) -> list[str]:
        argv = ["aws"]
        if self.endpoint_url:
            argv += ["--endpoint-url", self.endpoint_url]
        return argv + ["s3", *args]

    def list(self, prefix: str) -> list[str]:
        out = self._run(self._s3("ls", "--recursive", prefix), capture=True)
        keys: list[str] = []
        for line in out.splitlines():
            # "<date> <time> <size> <key>"; keys never contain the leading columns.
            parts = line.split(maxsplit=3)
            if len(parts) == 4:
                keys.append(parts[3])
        return keys

    def copy_recursive(
        self, src: Location, dst: Location, options: CopyOptions = CopyOptions()
    ) -> None:
        log.info("copying objects", src=str(src), dst=str(dst))
        self._run(
            self._s3(
                "cp",
                "--recursive",
                "--only-show-errors",
                *options.to_args(),
                str(src),
                str(dst),
            )
        )

    def sync(
        self,
        src: Location,
        dst: Location,
        *,
        delete: bool = False,
        options: CopyOptions = CopyOptions(),
    ) -> None:
        args: Sequence[str] = ["sync", "--only-show-errors"]
        if delete:
            args = [*args, "--delete"]
        log.info("syncing objects", src=str(src), dst=str(dst), delete=delete)
        self._run(self._s3(*args, *options.to_args(), str(src), str(dst)))

    def put_file(self, src: Path, dst: str, options: CopyOptions = CopyOptions()) -> None:
        log.info("uploading file", src=str(src), dst=dst)
        self._run(self._s3("cp", "--only-show-errors", *options.to_args(), str(src), dst))
