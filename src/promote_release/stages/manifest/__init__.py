from .checksums import CachedDigest, ChecksumCache, directory_fingerprint
from .runner import (
    CHECKSUM_CACHE_ENV,
    SHIPPED_FILES_ENV,
    ManifestBuilder,
    ManifestExecution,
    extract_tool,
    read_shipped_files,
    tool_tarball_name,
)
from .stage import manifest_builder_for, stage_discover_shipped, stage_generate_manifests

__all__ = [
    "CachedDigest",
    "ChecksumCache",
    "directory_fingerprint",
    "CHECKSUM_CACHE_ENV",
    "SHIPPED_FILES_ENV",
    "ManifestBuilder",
    "ManifestExecution",
    "extract_tool",
    "read_shipped_files",
    "tool_tarball_name",
    "manifest_builder_for",
    "stage_discover_shipped",
    "stage_generate_manifests",
]
