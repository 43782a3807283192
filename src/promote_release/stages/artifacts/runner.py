from __future__ import annotations

from pathlib import Path
from typing import Iterable

import structlog

from promote_release.core import DataConsistencyError, list_files, reset_dir
from promote_release.storage import BlobStore, s3_url

log = structlog.get_logger(__name__)

SIDECAR_SUFFIXES = (".asc", ".sha256")

# Components every nightly must ship for the primary target.
REQUIRED_NIGHTLY_COMPONENTS = ("rustc-", "rust-std-", "cargo-")


def artifacts_url(bucket: str, directory: str, revision: str) -> str:
    return s3_url(bucket, f"{directory}/{revision}")


def remove_sidecars(directory: Path) -> list[str]:
    """
    Drop `.asc`/`.sha256` residue: leftovers of an interrupted run, or dev
    signatures that must be replaced by production ones.
    """
    removed: list[str] = []
    for p in list_files(directory):
        if p.suffix in SIDECAR_SUFFIXES:
            p.unlink()
            removed.append(p.name)
    return removed


def download_artifacts(
    *,
    blob: BlobStore,
    bucket: str,
    directory: str,
    revision: str,
    dl_dir: Path,
) -> list[Path]:
    src = artifacts_url(bucket, directory, revision)
    no_artifacts = (
        f"rev {revision} doesn't have any artifacts, "
        "is this a stable/beta branch awaiting a PR?"
    )
    if not blob.list(src):
        raise DataConsistencyError(no_artifacts)

    reset_dir(dl_dir)
    blob.copy_recursive(src, f"{dl_dir}/")

    if not list_files(dl_dir):
        raise DataConsistencyError(no_artifacts)

    removed = remove_sidecars(dl_dir)
    if removed:
        log.info("removed stale signature files", count=len(removed))
    return list_files(dl_dir)


def assert_components_present(files: Iterable[Path | str], target: str) -> None:
    names = [Path(f).name for f in files]
    for_target = [n for n in names if target in n]
    missing = [
        prefix
        for prefix in REQUIRED_NIGHTLY_COMPONENTS
        if not any(n.startswith(prefix) for n in for_target)
    ]
    if missing:
        raise DataConsistencyError(
            f"release is missing required components for {target}: {', '.join(missing)}"
        )


def prune_unshipped(directory: Path, shipped_files: Iterable[str]) -> list[str]:
    """
    Delete every file of `directory` whose name the manifests do not
    reference. Referenced files are left untouched.
    """
    keep = {Path(s).name for s in shipped_files}
    pruned: list[str] = []
    for p in list_files(directory):
        if p.name not in keep:
            p.unlink()
            pruned.append(p.name)
            log.info("pruned unused file", file=p.name)
    return pruned
