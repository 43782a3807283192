from .config import DEFAULT_MAX_XZ_DICTSIZE, MIN_XZ_DICTSIZE, RecompressConfig
from .dictsize import choose_xz_dictsize, floor_xz_dictsize, format_dictsize, is_xz_dictsize
from .runner import (
    RecompressionTask,
    RecompressStats,
    WorkQueue,
    collect_tasks,
    recompress,
    recompress_directory,
    recompress_file,
)
from .stage import stage_recompress

__all__ = [
    "DEFAULT_MAX_XZ_DICTSIZE",
    "MIN_XZ_DICTSIZE",
    "RecompressConfig",
    "choose_xz_dictsize",
    "floor_xz_dictsize",
    "is_xz_dictsize",
    "format_dictsize",
    "RecompressionTask",
    "RecompressStats",
    "WorkQueue",
    "collect_tasks",
    "recompress",
    "recompress_directory",
    "recompress_file",
    "stage_recompress",
]
