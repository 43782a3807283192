from __future__ import annotations

from promote_release.core.config import XZ_DICTSIZE_LIMIT

from .config import DEFAULT_MAX_XZ_DICTSIZE, MIN_XZ_DICTSIZE


def is_xz_dictsize(size: int) -> bool:
    """
    True for 2^n and 2^n + 2^(n-1), the sizes xz keeps as given.
    """
    if size <= 0:
        return False
    hi = 1 << (size.bit_length() - 1)
    return size == hi or size == hi | (hi >> 1)


def floor_xz_dictsize(size: int) -> int:
    """
    Largest size of the form 2^n or 2^n + 2^(n-1) that does not exceed `size`.
    """
    hi = 1 << (size.bit_length() - 1)
    twin = hi | (hi >> 1)
    return twin if twin <= size else hi


def choose_xz_dictsize(sz: int, max_dictsize: int = DEFAULT_MAX_XZ_DICTSIZE) -> int:
    """
    Smallest xz dictionary size that covers `sz` bytes and that xz will not
    round up on its own.

    xz dictionary sizes have the form 2^n or 2^n + 2^(n-1). A `max_dictsize`
    of another form is first rounded down to one. The result:
      - has one of those forms
      - lies within [4 KiB, max_dictsize]
      - is >= sz whenever sz <= the rounded-down max_dictsize
      - is returned unchanged when fed back in
    """
    if max_dictsize > XZ_DICTSIZE_LIMIT:
        raise ValueError("xz dictionary size only goes up to 1.5 GiB")
    if max_dictsize < MIN_XZ_DICTSIZE:
        raise ValueError(f"xz dictionary size must be at least {MIN_XZ_DICTSIZE}")

    cap = floor_xz_dictsize(max_dictsize)
    sz = min(max(sz, MIN_XZ_DICTSIZE), cap)
    if sz & (sz - 1) == 0:
        return sz

    hi = 1 << (sz.bit_length() - 1)

    # 0b0110...0: for 17M (16M + 1M) this is 24M and fits, for 25M it does not.
    # Both candidates stay <= cap since cap is itself a valid size >= sz.
    twin = hi | (hi >> 1)
    if twin >= sz:
        return twin
    return hi << 1


def format_dictsize(size: int) -> str:
    """
    `4096` -> `4 KiB`, `100663296` -> `96 MiB`, `5000` -> `5000 B`
    """
    prefix = 0
    while prefix < 2 and size % 1024 == 0:
        prefix += 1
        size //= 1024
    return f"{size} {['', 'Ki', 'Mi'][prefix]}B"
