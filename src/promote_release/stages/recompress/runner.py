from __future__ import annotations

import gzip
import lzma
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Sequence

import structlog

from promote_release.core import (
    RecompressionError,
    file_size,
    list_files,
    monotonic_ms,
    safe_unlink,
)

from .config import CHUNK_BYTES, RecompressConfig
from .dictsize import choose_xz_dictsize, format_dictsize
from .xzindex import xz_uncompressed_size

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RecompressionTask:
    src: Path
    gz_path: Path
    xz_path: Path
    size_hint: int

    @classmethod
    def for_file(cls, src: Path) -> "RecompressionTask":
        if src.suffix != ".xz":
            raise ValueError(f"not an xz artifact: {src}")
        return cls(
            src=src,
            gz_path=src.with_suffix(".gz"),
            xz_path=src,
            size_hint=file_size(src),
        )


def by_size(task: RecompressionTask) -> int:
    return task.size_hint


class WorkQueue:
    """
    Mutex-guarded pending list. Tasks are sorted ascending by `key` and
    popped from the end, so the largest go first and the run does not end
    on a single-threaded tail of big files.
    """

    def __init__(
        self,
        tasks: Iterable[RecompressionTask],
        *,
        key: Callable[[RecompressionTask], int] = by_size,
    ) -> None:
        self._items = sorted(tasks, key=key)
        self._lock = threading.Lock()

    def pop(self) -> RecompressionTask | None:
        with self._lock:
            if not self._items:
                return None
            return self._items.pop()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


@dataclass(slots=True)
class FileOutcome:
    task: RecompressionTask
    gz_written: bool
    xz_written: bool
    uncompressed_bytes: int | None
    dictsize: int | None
    duration_ms: int


@dataclass(slots=True)
class RecompressStats:
    files: int = 0
    gz_written: int = 0
    xz_written: int = 0
    gz_deleted: int = 0
    outcomes: list[FileOutcome] = field(default_factory=list)

    def to_metrics(self) -> dict[str, int]:
        return {
            "files": self.files,
            "gz_written": self.gz_written,
            "xz_written": self.xz_written,
            "gz_deleted": self.gz_deleted,
        }


def xz_filters(dictsize: int) -> list[dict[str, int]]:
    """
    LZMA2 tuned for ratio over speed: preset 9 with the binary-tree match
    finder, the longest nice length and a deep match search.
    """
    return [
        {
            "id": lzma.FILTER_LZMA2,
            "preset": 9,
            "dict_size": dictsize,
            "mf": lzma.MF_BT4,
            "mode": lzma.MODE_NORMAL,
            "nice_len": 273,
            "depth": 1000,
            "lc": 3,
            "lp": 0,
            "pb": 2,
        }
    ]


def _pump(src: Path, sinks: Sequence[BinaryIO]) -> int:
    """
    Decompress `src` once, handing every chunk to each sink. Returns the
    uncompressed length.
    """
    total = 0
    try:
        with lzma.open(src, "rb") as dec:
            while True:
                chunk = dec.read(CHUNK_BYTES)
                if not chunk:
                    break
                total += len(chunk)
                for s in sinks:
                    s.write(chunk)
    except lzma.LZMAError as e:
        raise RecompressionError(f"xz decompression failed for {src}: {e}") from e
    return total


def recompress_file(
    task: RecompressionTask,
    *,
    gz_enabled: bool,
    xz_enabled: bool,
    gz_level: int,
    max_dictsize: int,
) -> FileOutcome:
    """
    Produce the .gz sibling (when forced or missing) and, when enabled, a
    recompressed .xz that replaces the original only after a complete write.
    """
    t0 = monotonic_ms()
    want_gz = gz_enabled or not task.gz_path.is_file()
    want_xz = xz_enabled

    if not (want_gz or want_xz):
        return FileOutcome(task, False, False, None, None, 0)

    dictsize: int | None = None
    if want_xz:
        size = xz_uncompressed_size(task.src)
        if size is None:
            size = _pump(task.src, [])
        dictsize = choose_xz_dictsize(size, max_dictsize)

    gz_tmp = task.gz_path.with_name(task.gz_path.name + ".tmp")
    xz_tmp = task.xz_path.with_name(task.xz_path.name + "_recompressed")

    gz_raw: BinaryIO | None = None
    gz_enc: gzip.GzipFile | None = None
    xz_enc: lzma.LZMAFile | None = None
    ok = False
    try:
        sinks: list[BinaryIO] = []
        if want_gz:
            gz_raw = open(gz_tmp, "wb")
            gz_enc = gzip.GzipFile(
                filename="", mode="wb", fileobj=gz_raw, compresslevel=gz_level, mtime=0
            )
            sinks.append(gz_enc)  # type: ignore[arg-type]
        if want_xz:
            assert dictsize is not None
            xz_enc = lzma.LZMAFile(
                xz_tmp,
                "wb",
                format=lzma.FORMAT_XZ,
                check=lzma.CHECK_NONE,
                filters=xz_filters(dictsize),
            )
            sinks.append(xz_enc)  # type: ignore[arg-type]

        total = _pump(task.src, sinks)

        if gz_enc is not None:
            gz_enc.close()
        if gz_raw is not None:
            gz_raw.close()
        if xz_enc is not None:
            xz_enc.close()
        ok = True
    except OSError as e:
        raise RecompressionError(f"failed to recompress {task.src}: {e}") from e
    finally:
        if not ok:
            for handle in (gz_enc, gz_raw, xz_enc):
                if handle is not None:
                    try:
                        handle.close()
                    except OSError:
                        pass
            safe_unlink(gz_tmp)
            safe_unlink(xz_tmp)

    if want_gz:
        os.replace(gz_tmp, task.gz_path)
    if want_xz:
        os.replace(xz_tmp, task.xz_path)

    duration = monotonic_ms() - t0
    log.info(
        "recompressed",
        file=task.src.name,
        gz=want_gz,
        xz=want_xz,
        dictionary=format_dictsize(dictsize) if dictsize else None,
        duration_ms=duration,
    )
    return FileOutcome(task, want_gz, want_xz, total, dictsize, duration)


def collect_tasks(directory: Path, *, gz_enabled: bool) -> tuple[list[RecompressionTask], int]:
    """
    One task per .xz artifact. When gzip recompression is forced, existing
    .gz files are removed up front so none survive from the CI build.
    """
    tasks: list[RecompressionTask] = []
    deleted = 0
    for p in list_files(directory):
        if p.suffix == ".xz":
            tasks.append(RecompressionTask.for_file(p))
        elif p.suffix == ".gz" and gz_enabled:
            p.unlink()
            deleted += 1
    return tasks, deleted


def recompress(
    tasks: Sequence[RecompressionTask],
    cfg: RecompressConfig,
    *,
    key: Callable[[RecompressionTask], int] = by_size,
    on_done: Callable[[FileOutcome], None] | None = None,
) -> RecompressStats:
    """
    Run every task on `cfg.num_threads` workers pulling from one WorkQueue.

    The first failure stops workers from taking new tasks; tasks already
    running finish, then the failure is raised.
    """
    queue = WorkQueue(tasks, key=key)
    stats = RecompressStats(files=len(tasks))
    stats_lock = threading.Lock()
    failed = threading.Event()
    errors: list[BaseException] = []

    def worker() -> None:
        while not failed.is_set():
            task = queue.pop()
            if task is None:
                return
            try:
                outcome = recompress_file(
                    task,
                    gz_enabled=cfg.gz_enabled,
                    xz_enabled=cfg.xz_enabled,
                    gz_level=cfg.gz_level,
                    max_dictsize=cfg.max_xz_dictsize,
                )
            except BaseException as e:
                with stats_lock:
                    errors.append(e)
                failed.set()
                return
            with stats_lock:
                stats.outcomes.append(outcome)
                stats.gz_written += int(outcome.gz_written)
                stats.xz_written += int(outcome.xz_written)
            if on_done is not None:
                on_done(outcome)

    n = max(1, min(cfg.num_threads, len(tasks) or 1))
    threads = [
        threading.Thread(target=worker, name=f"recompress-{i}", daemon=True)
        for i in range(n)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    if errors:
        first = errors[0]
        if isinstance(first, RecompressionError):
            raise first
        raise RecompressionError(f"recompression failed: {first}") from first
    return stats


def recompress_directory(
    directory: Path,
    cfg: RecompressConfig,
    *,
    on_done: Callable[[FileOutcome], None] | None = None,
) -> RecompressStats:
    tasks, deleted = collect_tasks(directory, gz_enabled=cfg.gz_enabled)
    log.info("recompressing", files=len(tasks), threads=cfg.num_threads, **cfg.to_dict())
    stats = recompress(tasks, cfg, on_done=on_done)
    stats.gz_deleted = deleted
    return stats
