from __future__ import annotations

import os
import struct
from pathlib import Path

_FOOTER_MAGIC = b"YZ"
_FOOTER_SIZE = 12


def _read_varint(buf: bytes, pos: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if pos >= len(buf) or shift > 63:
            raise ValueError("truncated multibyte integer")
        b = buf[pos]
        pos += 1
        value |= (b & 0x7F) << shift
        if b & 0x80 == 0:
            return value, pos
        shift += 7


def xz_uncompressed_size(path: Path) -> int | None:
    """
    Uncompressed size recorded in the index of a single-stream .xz file.

    Returns None for anything unusual (stream padding, concatenated
    streams, a damaged index); callers then measure by decompressing.
    """
    try:
        with path.open("rb") as f:
            f.seek(0, os.SEEK_END)
            end = f.tell()
            if end < _FOOTER_SIZE * 2:
                return None
            f.seek(end - _FOOTER_SIZE)
            footer = f.read(_FOOTER_SIZE)
            if footer[10:12] != _FOOTER_MAGIC:
                return None

            (backward_size,) = struct.unpack("<I", footer[4:8])
            index_size = (backward_size + 1) * 4
            index_start = end - _FOOTER_SIZE - index_size
            if index_start < _FOOTER_SIZE:
                return None
            f.seek(index_start)
            index = f.read(index_size)
    except OSError:
        return None

    try:
        if index[0] != 0x00:
            return None
        records, pos = _read_varint(index, 1)
        total = 0
        for _ in range(records):
            _, pos = _read_varint(index, pos)
            uncompressed, pos = _read_varint(index, pos)
            total += uncompressed
    except (ValueError, IndexError):
        return None
    return total
