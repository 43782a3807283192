from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import structlog

from promote_release.core import (
    SigningError,
    add_suffix,
    list_files,
    monotonic_ms,
    sha256_bytes,
    sha256_sum_line,
    unix_timestamp,
)
from promote_release.stages.manifest.checksums import ChecksumCache

from .backend import SigningBackend

log = structlog.get_logger(__name__)

SIDECAR_SUFFIXES = (".asc", ".sha256")


def should_exclude(path: Path) -> bool:
    return path.suffix in SIDECAR_SUFFIXES


@dataclass(slots=True)
class SignBatch:
    directory: str
    files: int
    cached_digests: int
    duration_ms: int

    def to_dict(self) -> dict[str, object]:
        return {
            "directory": self.directory,
            "files": self.files,
            "cached_digests": self.cached_digests,
            "duration_ms": self.duration_ms,
        }


class Signer:
    """
    Writes `<file>.sha256` and `<file>.asc` for every file of a directory
    and produces signed tag messages.

    Both sidecars are rewritten together for every file; a file is never
    left with one fresh and one stale sidecar by a successful batch.
    """

    def __init__(self, backend: SigningBackend, *, num_threads: int = 1) -> None:
        self.backend = backend
        self.num_threads = max(1, num_threads)
        self._cache = ChecksumCache.empty()

    def override_checksum_cache(self, cache: ChecksumCache) -> None:
        self._cache = cache

    def sign_file(self, path: Path) -> bool:
        """
        Returns True when the digest came from the checksum cache.
        """
        data = path.read_bytes()
        digest = self._cache.lookup(path)
        cached = digest is not None
        if digest is None:
            digest = sha256_bytes(data)

        signature = self.backend.detached_signature(data)

        add_suffix(path, ".sha256").write_text(
            sha256_sum_line(digest, path.name), encoding="utf-8"
        )
        add_suffix(path, ".asc").write_text(signature, encoding="utf-8")
        return cached

    def sign_batch(self, paths: Sequence[Path]) -> int:
        """
        Sign every path, then raise the first failure if any occurred.
        """
        if not paths:
            return 0
        workers = min(self.num_threads, len(paths))
        log.info("hashing and signing", files=len(paths), threads=workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sign") as pool:
            futures = [(p, pool.submit(self.sign_file, p)) for p in paths]

        cached = 0
        first_error: tuple[Path, BaseException] | None = None
        for p, fut in futures:
            exc = fut.exception()
            if exc is not None:
                if first_error is None:
                    first_error = (p, exc)
                continue
            cached += int(fut.result())

        if first_error is not None:
            p, exc = first_error
            if isinstance(exc, SigningError):
                raise exc
            raise SigningError(f"failed to sign {p}: {exc}") from exc
        return cached

    def sign_directory(self, directory: Path) -> SignBatch:
        t0 = monotonic_ms()
        paths = [p for p in list_files(directory) if not should_exclude(p)]
        cached = self.sign_batch(paths)
        batch = SignBatch(
            directory=str(directory),
            files=len(paths),
            cached_digests=cached,
            duration_ms=monotonic_ms() - t0,
        )
        log.info("signed directory", **batch.to_dict())
        return batch

    def git_signed_tag(
        self,
        *,
        commit: str,
        tag: str,
        username: str,
        email: str,
        message: str,
        timestamp: int | None = None,
    ) -> str:
        """
        Message for a signed annotated tag: `message`, a newline, then the
        armored signature over the git tag object payload.
        """
        ts = unix_timestamp() if timestamp is None else timestamp
        body = f"{message}\n"
        payload = (
            f"object {commit}\n"
            f"type commit\n"
            f"tag {tag}\n"
            f"tagger {username} <{email}> {ts} +0000\n"
            f"\n"
            f"{body}"
        )
        signature = self.backend.detached_signature(payload.encode("utf-8"))
        return body + signature
