import os
import shutil
import tempfile
from pathlib import Path


def safe_unlink(path: os.PathLike[str] | str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        return


def file_size(path: Path) -> int:
    return int(path.stat().st_size)


def add_suffix(path: Path, suffix: str) -> Path:
    """
    `foo.tar.xz` + `.sha256` -> `foo.tar.xz.sha256`
    """
    return path.with_name(path.name + suffix)


def fsync_dir(parent: Path) -> None:
    """
    Ensure directory entry durability after atomic rename.
    """
    fd: int | None = None
    try:
        fd = os.open(parent, os.O_RDONLY)
        os.fsync(fd)
    finally:
        if fd is not None:
            os.close(fd)


def list_files(directory: Path) -> list[Path]:
    """
    Regular files directly inside `directory`, sorted by name.
    """
    return sorted(p for p in Path(directory).iterdir() if p.is_file())


def reset_dir(path: Path) -> None:
    """
    Remove `path` (if present) and recreate it empty.
    """
    path = Path(path)
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True, exist_ok=True)


def remove_tree_quietly(path: Path) -> bool:
    try:
        shutil.rmtree(path)
    except OSError:
        return False
    return True


def atomic_write_text(
    path: Path,
    text: str,
    *,
    encoding: str = "utf-8",
    newline: str = "\n",
    mode: int = 0o644,
) -> None:
    """
    Atomically write text to `path`.

    Guarantees:
      - readers either see the old complete file or the new complete file
      - no partial/truncated file on crash
      - temp file written in the same directory (atomic replace works)
      - file contents are fsync()'d before replace
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd: int | None = None
    tmp_path: Path | None = None

    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
            text=True,
        )
        tmp_path = Path(tmp_name)

        # Write, Flush, FSync process
        with os.fdopen(fd, "w", encoding=encoding, newline=newline) as f:
            fd = None
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        try:
            os.chmod(tmp_path, mode)
        except OSError:
            pass

        os.replace(tmp_path, path)

        fsync_dir(path.parent)

    finally:
        if fd is not None:
            try:
                os.close(fd)
            except OSError:
                pass
        if tmp_path is not None and tmp_path.exists():
            safe_unlink(tmp_path)


def move_files_into(src_dir: Path, dst_dir: Path) -> list[str]:
    """
    Move every regular file of `src_dir` into `dst_dir` (overwriting).
    Subdirectories are left behind.
    """
    moved: list[str] = []
    dst_dir.mkdir(parents=True, exist_ok=True)
    for p in list_files(src_dir):
        os.replace(p, dst_dir / p.name)
        moved.append(p.name)
    return moved
