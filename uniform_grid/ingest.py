# ingest.py
from __future__ import annotations
import numpy as np
import pandas as pd

from .grid import UniformGrid
from .kinds import VORTON

POSITION_COLS = ("x", "y", "z")
VORTICITY_COLS = ("wx", "wy", "wz")


def _require(df: pd.DataFrame, cols) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise KeyError(f"columns {missing} not found (have {list(df.columns)})")


def _inside(grid: UniformGrid, pos: np.ndarray) -> np.ndarray:
    geo = grid.geometry
    return (np.isfinite(pos).all(axis=1)
            & (pos >= geo.min_corner).all(axis=1)
            & (pos <= geo.max_corner).all(axis=1))


def data_bounds(df: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    """Min and max corner of the finite x/y/z positions in *df*."""
    return fit_bounds([df])


def fit_bounds(frames) -> tuple[np.ndarray, np.ndarray]:
    """
    Min and max corner of the finite positions over a stream of frames.

    Frames without a single finite position are skipped; only a stream
    that yields none at all is an error.
    """
    lo, hi = np.full(3, np.inf), np.full(3, -np.inf)
    for df in frames:
        _require(df, POSITION_COLS)
        pos = df[list(POSITION_COLS)].to_numpy(dtype=np.float64)
        pos = pos[np.isfinite(pos).all(axis=1)]
        if len(pos):
            lo, hi = np.minimum(lo, pos.min(axis=0)), np.maximum(hi, pos.max(axis=0))
    if not np.all(lo <= hi):
        raise ValueError("no finite positions to bound")
    return lo, hi


class VortonAccumulator:
    """
    Bins vortex particles into the cells of a vorton grid.

    Per cell the vorticity of every particle is summed and the position is
    the vorticity-magnitude weighted mean (plain mean when every particle
    in the cell is irrotational).  Cells no particle reached keep zero
    vorticity and sit at the centre of the cell that starts at their vertex,
    clamped to the maximum corner on the last vertex of each axis.

    Rows may arrive in several chunks; call ``finish()`` once at the end.
    """

    # ------------------------------------------------------------------
    def __init__(self, grid: UniformGrid):
        if grid.kind is not VORTON:
            raise ValueError(f"VortonAccumulator needs a vorton grid, got {grid.kind.name}")
        self.grid = grid
        n = grid.geometry.capacity
        self._vort = np.zeros((n, 3))
        self._wpos = np.zeros((n, 3))
        self._pos = np.zeros((n, 3))
        self._weight = np.zeros(n)
        self._count = np.zeros(n, dtype=np.int64)

    # ------------------------------------------------------------------
    def accumulate(self, df: pd.DataFrame) -> int:
        """Add the rows of *df*; returns how many landed inside the grid."""
        _require(df, POSITION_COLS + VORTICITY_COLS)
        pos = df[list(POSITION_COLS)].to_numpy(dtype=np.float64)
        vort = df[list(VORTICITY_COLS)].to_numpy(dtype=np.float64)

        ok = _inside(self.grid, pos) & np.isfinite(vort).all(axis=1)
        pos, vort = pos[ok], vort[ok]
        off = self.grid.geometry.offset_of_position(pos)
        mag = np.sqrt(np.sum(vort * vort, axis=1))

        np.add.at(self._vort, off, vort)
        np.add.at(self._wpos, off, pos * mag[:, None])
        np.add.at(self._pos, off, pos)
        np.add.at(self._weight, off, mag)
        np.add.at(self._count, off, 1)
        return int(ok.sum())

    def finish(self) -> UniformGrid:
        geo = self.grid.geometry
        # centre of the cell starting at each vertex, pulled inside the box
        centres = np.minimum(geo.vertex_positions() + 0.5 * geo.cell_spacing, geo.max_corner)

        visited = self._count > 0
        weighted = self._weight > 0
        with np.errstate(divide="ignore", invalid="ignore"):
            position = np.where(visited[:, None], self._pos / self._count[:, None], centres)
            position = np.where(weighted[:, None], self._wpos / self._weight[:, None], position)

        self.grid.contents["position"] = position
        self.grid.contents["vorticity"] = self._vort
        return self.grid

    @property
    def counts(self) -> np.ndarray:
        """Particles binned per cell, in offset order."""
        return self._count


class ScalarAccumulator:
    """Mean of one numeric column per cell; unvisited cells keep their value."""

    def __init__(self, grid: UniformGrid, column: str):
        if grid.kind.item_shape != () or grid.kind.dtype.kind != "f":
            raise ValueError(f"ScalarAccumulator needs a floating-point scalar grid, "
                             f"got {grid.kind.name}")
        self.grid = grid
        self.column = column
        self._sum = np.zeros(grid.geometry.capacity)
        self._count = np.zeros(grid.geometry.capacity, dtype=np.int64)

    def accumulate(self, df: pd.DataFrame) -> int:
        _require(df, POSITION_COLS + (self.column,))
        pos = df[list(POSITION_COLS)].to_numpy(dtype=np.float64)
        values = pd.to_numeric(df[self.column], errors="coerce").to_numpy(dtype=np.float64)

        ok = _inside(self.grid, pos) & np.isfinite(values)
        off = self.grid.geometry.offset_of_position(pos[ok])
        np.add.at(self._sum, off, values[ok])
        np.add.at(self._count, off, 1)
        return int(ok.sum())

    def finish(self) -> UniformGrid:
        m = self._count > 0
        self.grid.contents[m] = self._sum[m] / self._count[m]
        return self.grid
