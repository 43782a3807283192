from __future__ import annotations

import tarfile
from pathlib import Path

import structlog

from promote_release.core import VersionProbeError, list_files

log = structlog.get_logger(__name__)


def read_version_file(archive: Path) -> str | None:
    """
    Stream `archive` and return the contents of `<top-dir>/version`, the
    second path component being exactly `version`. Stops at the first hit.
    """
    with tarfile.open(archive, "r|xz") as tar:
        for member in tar:
            parts = member.name.lstrip("./").split("/")
            if len(parts) == 2 and parts[1] == "version" and member.isfile():
                f = tar.extractfile(member)
                if f is None:
                    return None
                with f:
                    return f.read().decode("utf-8")
    return None


def probe_version(directory: Path, prefix: str, *, target: str | None = None) -> str:
    """
    Version string (e.g. `1.61.0 (fe5b13d68 2022-05-18)`) found in the first
    `<prefix>-*.tar.xz` archive of `directory` that carries one. Archives for
    `target` are tried first.
    """
    candidates = [
        p
        for p in list_files(directory)
        if p.name.startswith(f"{prefix}-") and p.name.endswith(".tar.xz")
    ]
    if target:
        candidates.sort(key=lambda p: target not in p.name)

    for archive in candidates:
        log.info("looking inside archive for a version", archive=archive.name)
        try:
            version = read_version_file(archive)
        except (tarfile.TarError, OSError, EOFError) as e:
            raise VersionProbeError(f"failed to read {archive.name}: {e}") from e
        if version is not None:
            return version.strip()

    raise VersionProbeError(f"no {prefix}- archives with a version in {directory}")
