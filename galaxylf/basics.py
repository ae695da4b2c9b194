"""Numerical helpers: interpolation, random numbers and table output."""

from __future__ import annotations

import random
from bisect import bisect_left, bisect_right
from collections.abc import Sequence
from os import PathLike
from typing import Union

__all__ = [
    "to_string_prec",
    "random_real",
    "interpolate",
    "interpolaten",
    "lin",
    "interpolate2",
    "write_column",
    "write_matrix",
    "write_stacked",
    "write_grid2",
    "write_grid3",
]

PathType = Union[str, "PathLike[str]"]
Table = Sequence[Sequence[float]]

_SEPARATOR = "   "


def to_string_prec(a: float, n: int) -> str:
    """Format ``a`` in fixed notation with ``n`` digits after the point."""
    return f"{a:.{n}f}"


def random_real(x1: float, x2: float, rng=None) -> float:
    """Uniform random number between ``x1`` and ``x2``.

    ``rng`` is any object with a ``random()`` method (``random.Random`` or a
    ``numpy.random.Generator``); the module-level generator is used if omitted.
    """
    r01 = rng.random() if rng is not None else random.random()
    return x1 + (x2 - x1) * r01


def _bracket(x: float, table: Table) -> int:
    """Index of the first row past ``x`` along column 0 (increasing or decreasing)."""
    if not table:
        raise ValueError("cannot interpolate in an empty table")
    if table[0][0] < table[-1][0]:
        return bisect_left(table, x, key=lambda row: row[0])
    # For a decreasing column, count the leading rows whose key is >= x.
    return bisect_right(table, -x, key=lambda row: -row[0])


def interpolate(x: float, table: Table) -> float:
    """Linearly interpolate column 1 of ``table`` at ``x`` in column 0.

    Column 0 must be strictly monotonic; outside its range the end values
    are returned.
    """
    jx = _bracket(x, table)
    if jx <= 0:
        return table[0][1]
    if jx >= len(table):
        return table[-1][1]
    lo, hi = table[jx - 1], table[jx]
    return lo[1] + (x - lo[0]) / (hi[0] - lo[0]) * (hi[1] - lo[1])


def interpolaten(x: float, table: Table) -> list[float]:
    """Linearly interpolate every column of ``table`` at ``x`` in column 0.

    Returns a full row ``[x, y1, y2, ...]``; outside the range of column 0 the
    first or last row is returned unchanged.
    """
    jx = _bracket(x, table)
    if jx <= 0:
        return list(table[0])
    if jx >= len(table):
        return list(table[-1])
    lo, hi = table[jx - 1], table[jx]
    t = (x - lo[0]) / (hi[0] - lo[0])
    return [x] + [a + t * (b - a) for a, b in zip(lo[1:], hi[1:])]


def lin(y1: float, y2: float, x1: float, x2: float, x: float) -> float:
    """Value at ``x`` of the line through ``(x1, y1)`` and ``(x2, y2)``."""
    return y1 + (x - x1) / (x2 - x1) * (y2 - y1)


def interpolate2(
    x0: float,
    y0: float,
    xs: Sequence[float],
    ys: Sequence[float],
    grid: Sequence[Sequence[Sequence[float]]],
) -> list[float]:
    """Bilinear interpolation of the vectors ``grid[ix][iy]`` at ``(x0, y0)``.

    ``xs`` and ``ys`` must be increasing; each axis is clamped to its ends.
    """
    nx, ny = len(xs), len(ys)
    if nx == 0 or ny == 0:
        raise ValueError("cannot interpolate on an empty grid")
    jx = bisect_left(xs, x0)
    jy = bisect_left(ys, y0)

    def along_x(iy: int) -> list[float]:
        if jx <= 0:
            return list(grid[0][iy])
        if jx >= nx:
            return list(grid[nx - 1][iy])
        return [
            lin(a, b, xs[jx - 1], xs[jx], x0)
            for a, b in zip(grid[jx - 1][iy], grid[jx][iy])
        ]

    if jy <= 0:
        return along_x(0)
    if jy >= ny:
        return along_x(ny - 1)
    low, up = along_x(jy - 1), along_x(jy)
    return [lin(a, b, ys[jy - 1], ys[jy], y0) for a, b in zip(low, up)]


def _fmt(value: float) -> str:
    return format(value, "g")


def write_column(values: Sequence[float], path: PathType) -> None:
    """Write one value per line, without a trailing newline."""
    with open(path, "w", encoding="utf-8") as out:
        out.write("\n".join(_fmt(v) for v in values))


def write_matrix(rows: Table, path: PathType) -> None:
    """Write each row on its own line, values separated by three spaces."""
    with open(path, "w", encoding="utf-8") as out:
        for row in rows:
            out.write(_SEPARATOR.join(_fmt(v) for v in row) + "\n")


def write_stacked(
    keys: Sequence[float], blocks: Sequence[Table], path: PathType
) -> None:
    """Write the rows of each block prefixed with the block's key."""
    with open(path, "w", encoding="utf-8") as out:
        for key, block in zip(keys, blocks):
            for row in block:
                fields = [_fmt(key), *(_fmt(v) for v in row)]
                out.write(_SEPARATOR.join(fields) + "\n")


def write_grid2(
    xs: Sequence[float],
    ys: Sequence[float],
    grid: Sequence[Sequence[Sequence[float]]],
    path: PathType,
) -> None:
    """Write ``x y f...`` lines for every point of a two-dimensional grid."""
    with open(path, "w", encoding="utf-8") as out:
        for x, plane in zip(xs, grid):
            for y, values in zip(ys, plane):
                line = _fmt(x) + _SEPARATOR + _fmt(y) + _SEPARATOR
                line += "".join(_fmt(v) + _SEPARATOR for v in values)
                out.write(line + "\n")


def write_grid3(
    xs: Sequence[float],
    ys: Sequence[float],
    zs: Sequence[float],
    grid: Sequence[Sequence[Sequence[Sequence[float]]]],
    path: PathType,
) -> None:
    """Write ``x y z f...`` lines for every point of a three-dimensional grid."""
    with open(path, "w", encoding="utf-8") as out:
        for x, cube in zip(xs, grid):
            for y, plane in zip(ys, cube):
                for z, values in zip(zs, plane):
                    line = _SEPARATOR.join((_fmt(x), _fmt(y), _fmt(z))) + _SEPARATOR
                    line += "".join(_fmt(v) + _SEPARATOR for v in values)
                    out.write(line + "\n")