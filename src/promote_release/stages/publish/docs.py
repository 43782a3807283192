from __future__ import annotations

import shutil
import tarfile
from pathlib import Path, PurePosixPath

import structlog

from promote_release.core import ReleaseError, reset_dir

log = structlog.get_logger(__name__)


def _member_parts(name: str) -> tuple[str, ...]:
    return PurePosixPath(name.lstrip("./")).parts if name not in (".", "./") else ()


def has_subtree(tarball: Path, subtree: str) -> bool:
    prefix = PurePosixPath(subtree).parts
    with tarfile.open(tarball, "r:*") as tar:
        for name in tar.getnames():
            if _member_parts(name)[: len(prefix)] == prefix:
                return True
    return False


def unpack_subtree(tarball: Path, subtree: str, dest: Path) -> int:
    """
    Extract the contents of `subtree` (not the subtree directory itself)
    into `dest`, like `tar xf --strip-components=N <subtree>`. Regular
    files and directories only.
    """
    prefix = PurePosixPath(subtree).parts
    written = 0
    dest.mkdir(parents=True, exist_ok=True)
    with tarfile.open(tarball, "r:*") as tar:
        for member in tar:
            parts = _member_parts(member.name)
            if parts[: len(prefix)] != prefix:
                continue
            rel = parts[len(prefix):]
            if not rel:
                continue
            if any(p in ("..", "") for p in rel):
                raise ReleaseError(f"refusing unsafe path {member.name!r} in {tarball.name}")

            out = dest.joinpath(*rel)
            if member.isdir():
                out.mkdir(parents=True, exist_ok=True)
                continue
            if not member.isfile():
                continue
            src = tar.extractfile(member)
            if src is None:
                continue
            out.parent.mkdir(parents=True, exist_ok=True)
            with src, out.open("wb") as f:
                shutil.copyfileobj(src, f)
            written += 1

    if written == 0:
        raise ReleaseError(f"{tarball.name} has no files under {subtree}")
    return written


def prepare_docs(*, dl_dir: Path, docs_dir: Path, release: str, target: str) -> dict[str, int]:
    """
    Unpack the HTML docs of `rust-docs-<release>-<target>.tar.gz` into
    `docs_dir`, and the compiler docs (when shipped) into
    `docs_dir/nightly-rustc`.
    """
    reset_dir(docs_dir)

    prefix = f"rust-docs-{release}-{target}"
    files = unpack_subtree(
        dl_dir / f"{prefix}.tar.gz",
        f"{prefix}/rust-docs/share/doc/rust/html",
        docs_dir,
    )
    counts = {"docs": files, "rustc_docs": 0}

    rustc_prefix = f"rustc-docs-{release}-{target}"
    rustc_tarball = dl_dir / f"{rustc_prefix}.tar.gz"
    if rustc_tarball.is_file():
        html = f"{rustc_prefix}/rustc-docs/share/doc/rust/html"
        # Newer tarballs nest everything under html/rustc.
        if has_subtree(rustc_tarball, f"{html}/rustc"):
            html = f"{html}/rustc"
        counts["rustc_docs"] = unpack_subtree(rustc_tarball, html, docs_dir / "nightly-rustc")

    log.info("unpacked documentation", **counts)
    return counts
