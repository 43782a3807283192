from __future__ import annotations

import hashlib
import io
import os
import tarfile
from pathlib import Path
from typing import Callable

import pytest
from promote_release.core import ManifestToolError
from promote_release.stages.manifest import ManifestBuilder
from promote_release.stages.manifest.checksums import ChecksumCache, directory_fingerprint


def _artifacts(tmp_path: Path) -> Path:
    dl = tmp_path / "dl"
    dl.mkdir()
    (dl / "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz").write_bytes(b"rustc")
    (dl / "cargo-nightly-x86_64-unknown-linux-gnu.tar.xz").write_bytes(b"cargo")
    (dl / "unshipped-nightly.tar.xz").write_bytes(b"junk")
    return dl


def _builder(tool: Path, dl: Path, tmp_path: Path) -> ManifestBuilder:
    return ManifestBuilder(
        tool=tool,
        input_dir=dl,
        date="2022-05-19",
        channel="nightly",
        metadata_dir=tmp_path / "meta",
    )


def test_run_reports_shipped_files_and_checksums(fake_tool: Path, tmp_path: Path) -> None:
    dl = _artifacts(tmp_path)
    out = tmp_path / "manifests"

    with _builder(fake_tool, dl, tmp_path) as builder:
        execution = builder.run("https://static.example.org/dist", out)

    manifest = (out / "channel-rust-nightly.toml").read_text()
    assert "date = '2022-05-19'" in manifest
    assert "url = 'https://static.example.org/dist'" in manifest

    assert execution.shipped_files == frozenset(
        {
            "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz",
            "cargo-nightly-x86_64-unknown-linux-gnu.tar.xz",
        }
    )
    rustc = dl / "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz"
    assert execution.checksum_cache.lookup(rustc) == hashlib.sha256(b"rustc").hexdigest()
    assert len(execution.checksum_cache) == 3
    assert execution.to_dict()["shipped_files"] == 2


def test_old_tool_without_shipped_files(
    fake_tool: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_TOOL_OLD", "1")
    dl = _artifacts(tmp_path)
    execution = _builder(fake_tool, dl, tmp_path).run("https://x", tmp_path / "out")
    assert execution.shipped_files is None


def test_cache_reused_while_inputs_unchanged(
    fake_tool: Path, tmp_path: Path, hashed: Callable[[], list[str]]
) -> None:
    dl = _artifacts(tmp_path)
    builder = _builder(fake_tool, dl, tmp_path)

    builder.run("https://real", tmp_path / "manifests")
    builder.run("http://127.0.0.1:1/dist", tmp_path / "manifests-smoke")

    assert sorted(hashed()) == sorted(p.name for p in dl.iterdir())
    assert builder.runs == 2


def test_cache_dropped_when_inputs_change(
    fake_tool: Path, tmp_path: Path, hashed: Callable[[], list[str]]
) -> None:
    dl = _artifacts(tmp_path)
    builder = _builder(fake_tool, dl, tmp_path)
    builder.run("https://real", tmp_path / "manifests")

    rustc = dl / "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz"
    rustc.write_bytes(b"recompressed rustc")
    (dl / "unshipped-nightly.tar.xz").unlink()

    execution = builder.run("https://real", tmp_path / "manifests")

    assert hashed().count("cargo-nightly-x86_64-unknown-linux-gnu.tar.xz") == 2
    assert execution.checksum_cache.lookup(rustc) == hashlib.sha256(b"recompressed rustc").hexdigest()


def test_explicit_clear_forces_rehash(
    fake_tool: Path, tmp_path: Path, hashed: Callable[[], list[str]]
) -> None:
    dl = _artifacts(tmp_path)
    builder = _builder(fake_tool, dl, tmp_path)
    builder.run("https://real", tmp_path / "manifests")
    builder.clear_checksum_cache()
    builder.run("https://real", tmp_path / "manifests")
    assert len(hashed()) == 6


def test_output_dir_is_emptied_before_each_run(fake_tool: Path, tmp_path: Path) -> None:
    dl = _artifacts(tmp_path)
    out = tmp_path / "manifests"
    out.mkdir()
    (out / "stale.toml").write_text("old")
    _builder(fake_tool, dl, tmp_path).run("https://real", out)
    assert not (out / "stale.toml").exists()


def test_tool_failure(fake_tool: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FAKE_TOOL_FAIL", "1")
    dl = _artifacts(tmp_path)
    with pytest.raises(ManifestToolError) as ei:
        _builder(fake_tool, dl, tmp_path).run("https://real", tmp_path / "out")
    assert "status 3" in str(ei.value)


def test_from_tarball_extracts_tool(tmp_path: Path) -> None:
    dl = tmp_path / "dl"
    dl.mkdir()
    name = "build-manifest-nightly-x86_64-unknown-linux-gnu"
    payload = b"#!/bin/sh\nexit 0\n"
    with tarfile.open(dl / f"{name}.tar.xz", "w:xz") as tar:
        info = tarfile.TarInfo(f"{name}/build-manifest/bin/build-manifest")
        info.size = len(payload)
        tar.addfile(info, io.BytesIO(payload))

    builder = ManifestBuilder.from_tarball(
        input_dir=dl,
        release="nightly",
        target="x86_64-unknown-linux-gnu",
        date="2022-05-19",
        channel="nightly",
    )
    try:
        assert builder.tool.read_bytes() == payload
        assert os.access(builder.tool, os.X_OK)
    finally:
        builder.close()
    assert not builder.metadata_dir.exists()


def test_from_tarball_missing(tmp_path: Path) -> None:
    with pytest.raises(ManifestToolError):
        ManifestBuilder.from_tarball(
            input_dir=tmp_path,
            release="1.61.0",
            target="x86_64-unknown-linux-gnu",
            date="2022-05-19",
            channel="stable",
        )


def test_checksum_cache_misses_rewritten_files(tmp_path: Path) -> None:
    f = tmp_path / "a.tar.xz"
    f.write_bytes(b"one")
    cache = ChecksumCache.from_digests({str(f): "AA", str(tmp_path / "gone"): "bb"})
    assert len(cache) == 1
    assert cache.lookup(f) == "aa"

    f.write_bytes(b"three")
    assert cache.lookup(f) is None

    before = directory_fingerprint(tmp_path)
    (tmp_path / "b").write_bytes(b"x")
    assert directory_fingerprint(tmp_path) != before
