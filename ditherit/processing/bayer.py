"""Recursive Bayer matrices for ordered dithering.

Rank matrices are built by the usual self-similar expansion: every cell of
the ``k x k`` matrix becomes a ``2 x 2`` block of the ``2k x 2k`` matrix, so
each rank in ``0 .. size**2 - 1`` appears exactly once. Thresholds spread the
ranks evenly over the byte range.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

from ..errors import InvalidSize

BAYER_SIZES: Tuple[int, ...] = (2, 4, 8, 16)

Matrix = Tuple[Tuple[int, ...], ...]

_BASE_RANKS: Matrix = (
    (0, 2),
    (3, 1),
)


def _check_size(size: int) -> None:
    if size not in BAYER_SIZES:
        raise InvalidSize(f"Bayer size must be one of {BAYER_SIZES}, got {size!r}")


@lru_cache(maxsize=None)
def build_rank_matrix(size: int) -> Matrix:
    _check_size(size)
    if size == 2:
        return _BASE_RANKS

    half = build_rank_matrix(size // 2)
    rows = [[0] * size for _ in range(size)]
    for i, row in enumerate(half):
        for j, value in enumerate(row):
            rows[2 * i][2 * j] = 4 * value
            rows[2 * i][2 * j + 1] = 4 * value + 2
            rows[2 * i + 1][2 * j] = 4 * value + 3
            rows[2 * i + 1][2 * j + 1] = 4 * value + 1
    return tuple(tuple(row) for row in rows)


@lru_cache(maxsize=None)
def build_threshold_matrix(size: int) -> Matrix:
    """Return the ``size x size`` threshold table with values in 0..255.

    The result is immutable and shared by every caller, including worker
    processes, which each hold their own copy of the cache.
    """

    ranks = build_rank_matrix(size)
    cells = size * size
    return tuple(
        tuple(int((rank + 0.5) / cells * 256) for rank in row)
        for row in ranks
    )
