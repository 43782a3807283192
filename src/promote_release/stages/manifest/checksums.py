from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping

from promote_release.core import list_files


@dataclass(frozen=True, slots=True)
class CachedDigest:
    sha256: str
    size: int
    mtime_ns: int


def canonical_key(path: Path) -> str:
    return str(Path(path).resolve())


class ChecksumCache:
    """
    SHA-256 digests keyed by canonical path, each bound to the size and
    mtime the file had when the digest was recorded. A file rewritten
    since then (recompression, regeneration) misses the cache.
    """

    def __init__(self, entries: Mapping[str, CachedDigest] | None = None) -> None:
        self._entries: dict[str, CachedDigest] = dict(entries or {})

    @classmethod
    def empty(cls) -> "ChecksumCache":
        return cls()

    @classmethod
    def from_digests(cls, digests: Mapping[str, str]) -> "ChecksumCache":
        """
        Bind raw `path -> hex` pairs to the files' current stats. Paths that
        no longer exist are dropped.
        """
        entries: dict[str, CachedDigest] = {}
        for raw_path, digest in digests.items():
            key = canonical_key(Path(raw_path))
            try:
                st = os.stat(key)
            except OSError:
                continue
            entries[key] = CachedDigest(
                sha256=str(digest).lower(), size=st.st_size, mtime_ns=st.st_mtime_ns
            )
        return cls(entries)

    def lookup(self, path: Path) -> str | None:
        key = canonical_key(path)
        entry = self._entries.get(key)
        if entry is None:
            return None
        try:
            st = os.stat(key)
        except OSError:
            return None
        if st.st_size != entry.size or st.st_mtime_ns != entry.mtime_ns:
            return None
        return entry.sha256

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


def directory_fingerprint(directory: Path) -> str:
    """
    Digest over (name, size, mtime) of every file in `directory`. Changes
    whenever a file is added, removed or rewritten.
    """
    h = hashlib.sha256()
    if directory.is_dir():
        for p in list_files(directory):
            st = p.stat()
            h.update(f"{p.name}\0{st.st_size}\0{st.st_mtime_ns}\n".encode("utf-8"))
    return h.hexdigest()
