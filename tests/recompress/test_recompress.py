from __future__ import annotations

import gzip
import lzma
import os
from pathlib import Path

import pytest
from promote_release.core import RecompressionError
from promote_release.stages.recompress import (
    RecompressConfig,
    RecompressionTask,
    WorkQueue,
    collect_tasks,
    recompress,
    recompress_directory,
)
from promote_release.stages.recompress.xzindex import xz_uncompressed_size


def _xz(path: Path, data: bytes) -> Path:
    path.write_bytes(lzma.compress(data, format=lzma.FORMAT_XZ, preset=0))
    return path


def _cfg(**kw: object) -> RecompressConfig:
    base: dict[str, object] = {
        "gz_enabled": False,
        "xz_enabled": False,
        "gz_level": 6,
        "num_threads": 2,
        "max_xz_dictsize": 128 * 1024 * 1024,
    }
    base.update(kw)
    return RecompressConfig(**base)  # type: ignore[arg-type]


def test_xz_index_reports_uncompressed_size(tmp_path: Path) -> None:
    data = os.urandom(1000) * 70
    p = _xz(tmp_path / "a.tar.xz", data)
    assert xz_uncompressed_size(p) == len(data)

    (tmp_path / "junk.xz").write_bytes(b"definitely not xz")
    assert xz_uncompressed_size(tmp_path / "junk.xz") is None


def test_task_paths_are_derived_from_extension(tmp_path: Path) -> None:
    p = _xz(tmp_path / "rustc-nightly-x86_64-unknown-linux-gnu.tar.xz", b"x")
    task = RecompressionTask.for_file(p)
    assert task.gz_path == tmp_path / "rustc-nightly-x86_64-unknown-linux-gnu.tar.gz"
    assert task.xz_path == p
    assert task.size_hint == p.stat().st_size

    with pytest.raises(ValueError):
        RecompressionTask.for_file(tmp_path / "foo.tar.gz")


def test_work_queue_pops_largest_first(tmp_path: Path) -> None:
    tasks = [
        RecompressionTask(src=tmp_path / n, gz_path=tmp_path / n, xz_path=tmp_path / n, size_hint=s)
        for n, s in [("small.xz", 1), ("big.xz", 300), ("mid.xz", 20)]
    ]
    q = WorkQueue(tasks)
    assert len(q) == 3
    order = []
    while (t := q.pop()) is not None:
        order.append(t.src.name)
    assert order == ["big.xz", "mid.xz", "small.xz"]


def test_missing_gz_is_generated_and_xz_left_alone(tmp_path: Path) -> None:
    data = b"hello world\n" * 5000
    xz = _xz(tmp_path / "cargo-1.61.0-x86_64-unknown-linux-gnu.tar.xz", data)
    before = xz.read_bytes()

    stats = recompress_directory(tmp_path, _cfg())

    gz = tmp_path / "cargo-1.61.0-x86_64-unknown-linux-gnu.tar.gz"
    assert gzip.decompress(gz.read_bytes()) == data
    assert xz.read_bytes() == before
    assert stats.files == 1
    assert stats.gz_written == 1
    assert stats.xz_written == 0
    assert not list(tmp_path.glob("*.tmp"))


def test_existing_gz_kept_unless_forced(tmp_path: Path) -> None:
    data = b"payload" * 100
    _xz(tmp_path / "a.tar.xz", data)
    (tmp_path / "a.tar.gz").write_bytes(b"ci gzip")

    stats = recompress_directory(tmp_path, _cfg())
    assert (tmp_path / "a.tar.gz").read_bytes() == b"ci gzip"
    assert stats.gz_written == 0

    stats = recompress_directory(tmp_path, _cfg(gz_enabled=True))
    assert gzip.decompress((tmp_path / "a.tar.gz").read_bytes()) == data
    assert stats.gz_deleted == 1
    assert stats.gz_written == 1


def test_xz_recompression_replaces_in_place(tmp_path: Path) -> None:
    data = os.urandom(64) * 4000
    xz = _xz(tmp_path / "rust-std-beta-x86_64-unknown-linux-gnu.tar.xz", data)
    (tmp_path / "rust-std-beta-x86_64-unknown-linux-gnu.tar.gz").write_bytes(b"keep")

    seen = []
    stats = recompress_directory(tmp_path, _cfg(xz_enabled=True), on_done=seen.append)

    assert lzma.decompress(xz.read_bytes()) == data
    assert stats.xz_written == 1
    assert len(seen) == 1
    assert seen[0].dictsize == 256 * 1024
    assert seen[0].uncompressed_bytes == len(data)
    assert not list(tmp_path.glob("*_recompressed"))
    assert (tmp_path / "rust-std-beta-x86_64-unknown-linux-gnu.tar.gz").read_bytes() == b"keep"


def test_collect_tasks_ignores_other_files(tmp_path: Path) -> None:
    _xz(tmp_path / "a.tar.xz", b"a")
    (tmp_path / "a.tar.gz").write_bytes(b"g")
    (tmp_path / "channel-rust-nightly.toml").write_text("")

    tasks, deleted = collect_tasks(tmp_path, gz_enabled=False)
    assert [t.src.name for t in tasks] == ["a.tar.xz"]
    assert deleted == 0
    assert (tmp_path / "a.tar.gz").exists()


def test_failure_stops_queue_and_raises(tmp_path: Path) -> None:
    good = [_xz(tmp_path / f"ok{i}.tar.xz", b"fine" * 10) for i in range(3)]
    bad = tmp_path / "bad.tar.xz"
    bad.write_bytes(b"\xfd7zXZ\x00 this is truncated" * 1000)

    tasks = [RecompressionTask.for_file(p) for p in [*good, bad]]
    with pytest.raises(RecompressionError):
        recompress(tasks, _cfg(num_threads=1))

    # the biggest task (the corrupt one) went first and nothing was started after it
    assert not list(tmp_path.glob("*.gz"))
    assert not list(tmp_path.glob("*.tmp"))
