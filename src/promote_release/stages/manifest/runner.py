from __future__ import annotations

import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from promote_release.core import (
    CommandRunner,
    ExternalCommandError,
    ManifestToolError,
    reset_dir,
    run_command,
    read_json_object,
    safe_unlink,
)

from .checksums import ChecksumCache, directory_fingerprint

log = structlog.get_logger(__name__)

SHIPPED_FILES_ENV = "BUILD_MANIFEST_SHIPPED_FILES_PATH"
CHECKSUM_CACHE_ENV = "BUILD_MANIFEST_CHECKSUM_CACHE"


def tool_tarball_name(release: str, target: str) -> str:
    return f"build-manifest-{release}-{target}"


@dataclass(frozen=True, slots=True)
class ManifestExecution:
    """
    Side-channel outputs of one manifest tool run.

    `shipped_files` is None when the tool is too old to report which files
    the manifests reference; pruning must be skipped in that case.
    """

    output_dir: Path
    upload_base_url: str
    shipped_files: frozenset[str] | None
    checksum_cache: ChecksumCache

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "upload_base_url": self.upload_base_url,
            "shipped_files": (
                None if self.shipped_files is None else len(self.shipped_files)
            ),
            "cached_checksums": len(self.checksum_cache),
        }


def read_shipped_files(path: Path) -> frozenset[str] | None:
    if not path.is_file():
        return None
    lines = path.read_text(encoding="utf-8").splitlines()
    return frozenset(line.strip() for line in lines if line.strip())


def read_checksum_cache(path: Path) -> ChecksumCache:
    if not path.is_file():
        return ChecksumCache.empty()
    try:
        raw = read_json_object(path)
    except ValueError as e:
        raise ManifestToolError(f"malformed checksum cache at {path}") from e
    return ChecksumCache.from_digests({str(k): str(v) for k, v in raw.items()})


def extract_tool(tarball: Path, tarball_name: str, dest: Path) -> Path:
    """
    Pull `<tarball_name>/build-manifest/bin/build-manifest` out of the
    tarball into `dest` and make it executable.
    """
    member_name = f"{tarball_name}/build-manifest/bin/build-manifest"
    if not tarball.is_file():
        raise ManifestToolError(f"missing manifest tool tarball: {tarball}")

    with tarfile.open(tarball, "r|xz") as tar:
        for member in tar:
            if member.name.lstrip("./") != member_name or not member.isfile():
                continue
            src = tar.extractfile(member)
            if src is None:
                break
            with src, dest.open("wb") as out:
                shutil.copyfileobj(src, out)
            os.chmod(dest, 0o755)
            return dest

    raise ManifestToolError(f"missing build-manifest binary inside {tarball.name}")


class ManifestBuilder:
    """
    Runs the external manifest tool:

        build-manifest <input-dir> <output-dir> <date> <upload-base-url> <channel>

    The tool writes the list of referenced files to the path named by
    BUILD_MANIFEST_SHIPPED_FILES_PATH and its `path -> sha256` table to
    the path named by BUILD_MANIFEST_CHECKSUM_CACHE. The table persists
    across runs of one builder and is dropped automatically when the
    input directory changed since it was written.
    """

    def __init__(
        self,
        *,
        tool: Path,
        input_dir: Path,
        date: str,
        channel: str,
        runner: CommandRunner = run_command,
        metadata_dir: Path | None = None,
    ) -> None:
        self.tool = tool
        self.input_dir = input_dir
        self.date = date
        self.channel = channel
        self._run = runner

        self._tmp: tempfile.TemporaryDirectory[str] | None = None
        if metadata_dir is None:
            self._tmp = tempfile.TemporaryDirectory(prefix="build-manifest-")
            metadata_dir = Path(self._tmp.name)
        self.metadata_dir = metadata_dir
        self.metadata_dir.mkdir(parents=True, exist_ok=True)

        self.checksum_cache_path = self.metadata_dir / "checksum-cache.json"
        self._cache_fingerprint: str | None = None
        self.runs = 0

    @classmethod
    def from_tarball(
        cls,
        *,
        input_dir: Path,
        release: str,
        target: str,
        date: str,
        channel: str,
        runner: CommandRunner = run_command,
    ) -> "ManifestBuilder":
        name = tool_tarball_name(release, target)
        builder = cls(
            tool=Path("build-manifest"),
            input_dir=input_dir,
            date=date,
            channel=channel,
            runner=runner,
        )
        try:
            builder.tool = extract_tool(
                input_dir / f"{name}.tar.xz", name, builder.metadata_dir / "build-manifest"
            )
        except (OSError, tarfile.TarError) as e:
            builder.close()
            raise ManifestToolError("failed to extract build-manifest from the tarball") from e
        except ManifestToolError:
            builder.close()
            raise
        return builder

    def clear_checksum_cache(self) -> None:
        safe_unlink(self.checksum_cache_path)
        self._cache_fingerprint = None

    def _invalidate_stale_cache(self) -> bool:
        if self._cache_fingerprint is None:
            return False
        if self._cache_fingerprint == directory_fingerprint(self.input_dir):
            return False
        log.info("input files changed since the last run, dropping checksum cache")
        self.clear_checksum_cache()
        return True

    def run(self, upload_base_url: str, output_dir: Path) -> ManifestExecution:
        self._invalidate_stale_cache()
        reset_dir(output_dir)

        with tempfile.TemporaryDirectory(prefix="manifest-run-", dir=self.metadata_dir) as tmp:
            shipped_files_path = Path(tmp) / "shipped-files.txt"
            env = {
                SHIPPED_FILES_ENV: str(shipped_files_path),
                CHECKSUM_CACHE_ENV: str(self.checksum_cache_path),
            }
            log.info(
                "running build-manifest",
                upload_base_url=upload_base_url,
                output_dir=str(output_dir),
            )
            try:
                self._run(
                    [
                        self.tool,
                        self.input_dir,
                        output_dir,
                        self.date,
                        upload_base_url,
                        self.channel,
                    ],
                    env=env,
                )
            except ExternalCommandError as e:
                raise ManifestToolError(f"build-manifest failed with status {e.status}") from e

            shipped = read_shipped_files(shipped_files_path)

        cache = read_checksum_cache(self.checksum_cache_path)
        self._cache_fingerprint = directory_fingerprint(self.input_dir)
        self.runs += 1

        return ManifestExecution(
            output_dir=output_dir,
            upload_base_url=upload_base_url,
            shipped_files=shipped,
            checksum_cache=cache,
        )

    def close(self) -> None:
        if self._tmp is not None:
            self._tmp.cleanup()
            self._tmp = None

    def __enter__(self) -> "ManifestBuilder":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
