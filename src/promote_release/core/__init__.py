from .config import Action, Channel, Settings, Unconfigured, load_settings
from .errors import (
    ConfigError,
    DataConsistencyError,
    ExternalCommandError,
    HttpStatusError,
    LockHeldError,
    ManifestToolError,
    RecompressionError,
    ReleaseError,
    ReleaseSkipped,
    RemoteServiceError,
    SigningError,
    SmokeTestError,
    StageError,
    VersionProbeError,
)
from .fs import (
    add_suffix,
    atomic_write_text,
    file_size,
    list_files,
    move_files_into,
    remove_tree_quietly,
    reset_dir,
    safe_unlink,
)
from .hashing import sha256_bytes, sha256_sum_line
from .json import atomic_write_json, read_json_object
from .lock import WorkDirLock
from .logging import ILogger, bind, configure_logging, get_logger
from .paths import WorkLayout
from .process import CommandRunner, run_command
from .provenance import RunProvenance, new_run_id, tool_version
from .time import format_duration_ms, monotonic_ms, unix_timestamp, utc_now_iso, utc_today

__all__ = [
    "Action",
    "Channel",
    "Settings",
    "Unconfigured",
    "load_settings",
    "ConfigError",
    "DataConsistencyError",
    "ExternalCommandError",
    "HttpStatusError",
    "LockHeldError",
    "ManifestToolError",
    "RecompressionError",
    "ReleaseError",
    "ReleaseSkipped",
    "RemoteServiceError",
    "SigningError",
    "SmokeTestError",
    "StageError",
    "VersionProbeError",
    "add_suffix",
    "atomic_write_text",
    "file_size",
    "list_files",
    "move_files_into",
    "remove_tree_quietly",
    "reset_dir",
    "safe_unlink",
    "sha256_bytes",
    "sha256_sum_line",
    "atomic_write_json",
    "read_json_object",
    "WorkDirLock",
    "ILogger",
    "bind",
    "configure_logging",
    "get_logger",
    "WorkLayout",
    "CommandRunner",
    "run_command",
    "RunProvenance",
    "tool_version",
    "new_run_id",
    "format_duration_ms",
    "monotonic_ms",
    "unix_timestamp",
    "utc_now_iso",
    "utc_today",
]
