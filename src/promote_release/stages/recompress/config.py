from __future__ import annotations

from dataclasses import dataclass

# xz's smallest dictionary size.
MIN_XZ_DICTSIZE = 4096

# Users need at least this much free memory to unpack an archive.
DEFAULT_MAX_XZ_DICTSIZE = 128 * 1024 * 1024

# Decompressed bytes handed to the compressors per read.
CHUNK_BYTES = 4 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class RecompressConfig:
    gz_enabled: bool = False
    xz_enabled: bool = False
    gz_level: int = 9
    num_threads: int = 1
    max_xz_dictsize: int = DEFAULT_MAX_XZ_DICTSIZE

    def to_dict(self) -> dict[str, object]:
        return {
            "gz_enabled": self.gz_enabled,
            "xz_enabled": self.xz_enabled,
            "gz_level": self.gz_level,
            "num_threads": self.num_threads,
            "max_xz_dictsize": self.max_xz_dictsize,
        }
