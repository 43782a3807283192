from .channel_manifest import ChannelManifests, manifest_name, previous_version_from
from .probe import probe_version, read_version_file
from .revision import parse_ls_remote, resolve_revision, tracked_ref
from .runner import (
    BYPASS_HINT,
    ManifestSource,
    ProbedVersions,
    ReleaseGate,
    check_channel_switch,
    first_word,
)
from .stage import stage_gate

__all__ = [
    "ChannelManifests",
    "manifest_name",
    "previous_version_from",
    "probe_version",
    "read_version_file",
    "parse_ls_remote",
    "resolve_revision",
    "tracked_ref",
    "BYPASS_HINT",
    "ManifestSource",
    "ProbedVersions",
    "ReleaseGate",
    "check_channel_switch",
    "first_word",
    "stage_gate",
]
