# geometry.py
from __future__ import annotations
import warnings
import numpy as np

from .config import GridSpec


def _vec3(value, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must be a 3-vector, got shape {arr.shape}")
    return arr


def _nearest_power_of_two(n: np.ndarray) -> np.ndarray:
    return (2 ** np.floor(np.log2(n) + 0.5)).astype(np.int64)


class GridGeometry:
    """
    Shape of a point-sampled (vertex-centred) uniform grid.

    Values live at the ``num_points`` vertices along each axis, so there are
    ``num_points - 1`` cells per axis and

        cell_spacing = (max_corner - min_corner) / (num_points - 1)

    Vertices are flattened into a single offset with X varying fastest:

        offset = ix + nx * (iy + ny * iz)

    Every index/offset routine accepts either one item (a 3-vector or an int)
    or a batch (an ``(N, 3)`` array or an ``(N,)`` array of offsets).
    """

    # ------------------------------------------------------------------
    def __init__(self, min_corner, max_corner, num_points):
        self.min_corner = _vec3(min_corner, "min_corner")
        self.max_corner = _vec3(max_corner, "max_corner")
        if np.any(self.max_corner < self.min_corner):
            raise ValueError(
                f"inverted bounding box: min={self.min_corner} max={self.max_corner}")

        n = np.asarray(num_points)
        if n.shape != (3,) or not np.issubdtype(n.dtype, np.integer):
            raise ValueError(f"num_points must be 3 integers, got {num_points!r}")
        if np.any(n < 2):
            raise ValueError(f"each axis needs at least 2 points, got {n.tolist()}")
        self.num_points = n.astype(np.int64)
        self._precompute_spacing()

    # ------------------------------------------------------------------
    @classmethod
    def from_bounds(cls, min_corner, max_corner, approx_points: int,
                    power_of_two: bool = False) -> GridGeometry:
        """
        Choose per-axis counts so that cells are as close to cubic as integer
        counts allow and the total is roughly *approx_points*.

        Axes of zero extent are given a single cell of zero width.
        """
        vmin = _vec3(min_corner, "min_corner")
        vmax = _vec3(max_corner, "max_corner")
        if approx_points < 1:
            raise ValueError(f"approx_points must be >= 1, got {approx_points}")
        extent = vmax - vmin
        if np.any(extent < 0):
            raise ValueError(f"inverted bounding box: min={vmin} max={vmax}")

        degenerate = extent == 0
        if degenerate.any():
            warnings.warn(
                f"bounding box has zero extent along axes {np.flatnonzero(degenerate).tolist()}; "
                "using a single cell there", stacklevel=2)

        ndims = 3 - int(degenerate.sum())
        if ndims == 0:
            num_cells = np.ones(3, dtype=np.int64)
        else:
            volume = float(np.prod(np.where(degenerate, 1.0, extent)))
            cell = (volume / float(approx_points)) ** (1.0 / ndims)
            num_cells = np.maximum(1, np.floor(extent / cell + 0.5)).astype(np.int64)

        if power_of_two:
            num_cells = _nearest_power_of_two(num_cells)

        # rounding up on every axis can overshoot badly for thin boxes
        while np.prod(num_cells) >= 8 * approx_points:
            num_cells = np.maximum(1, num_cells // 2)

        return cls(vmin, vmax, num_cells + 1)

    @classmethod
    def from_spec(cls, spec: GridSpec) -> GridGeometry:
        return cls.from_bounds(spec.min_corner, spec.max_corner,
                               spec.approx_points, spec.power_of_two)

    @classmethod
    def like(cls, other: GridGeometry) -> GridGeometry:
        return cls(other.min_corner, other.max_corner, other.num_points)

    def copy(self) -> GridGeometry:
        return GridGeometry.like(self)

    def _precompute_spacing(self) -> None:
        self.extent = self.max_corner - self.min_corner
        self.cell_spacing = self.extent / self.num_cells
        # zero-width axes map every position to index 0
        self._cells_per_extent = np.divide(
            self.num_cells, self.extent,
            out=np.zeros(3, dtype=np.float64), where=self.extent > 0)

    # ------------------------------------------------------------------
    @property
    def num_cells(self) -> np.ndarray:
        return self.num_points - 1

    @property
    def capacity(self) -> int:
        return int(np.prod(self.num_points))

    @property
    def shape(self) -> tuple[int, int, int]:
        nx, ny, nz = (int(n) for n in self.num_points)
        return nx, ny, nz

    def decimated(self, factor: int) -> GridGeometry:
        """Coarser geometry over the same box with ``num_cells // factor`` cells."""
        factor = int(factor)
        if factor < 1:
            raise ValueError(f"decimation factor must be >= 1, got {factor}")
        if np.any(self.num_cells % factor):
            warnings.warn(
                f"factor {factor} does not divide cell counts {self.num_cells.tolist()}",
                stacklevel=2)
        num_cells = np.maximum(1, self.num_cells // factor)
        return GridGeometry(self.min_corner, self.max_corner, num_cells + 1)

    # ------------------------------------------------------------------
    def indices_of_position(self, position):
        """Indices of the cell containing *position*, clamped onto the grid."""
        pos = np.asarray(position, dtype=np.float64)
        if pos.shape[-1:] != (3,):
            raise ValueError(f"position must end in a 3-vector axis, got shape {pos.shape}")
        rel = (pos - self.min_corner) * self._cells_per_extent
        idx = np.clip(np.floor(rel).astype(np.int64), 0, self.num_points - 1)
        if idx.ndim == 1:
            return tuple(int(i) for i in idx)
        return idx

    def offset_from_indices(self, indices):
        idx = np.asarray(indices, dtype=np.int64)
        if idx.shape[-1:] != (3,):
            raise ValueError(f"indices must end in a 3-vector axis, got shape {idx.shape}")
        if np.any(idx < 0) or np.any(idx >= self.num_points):
            raise ValueError(f"indices out of range for grid {self.shape}")
        nx, ny, _ = self.shape
        offset = idx[..., 0] + nx * (idx[..., 1] + ny * idx[..., 2])
        if offset.ndim == 0:
            return int(offset)
        return offset

    def indices_from_offset(self, offset):
        off = np.asarray(offset, dtype=np.int64)
        if np.any(off < 0) or np.any(off >= self.capacity):
            raise ValueError(f"offset out of range [0, {self.capacity})")
        nx, ny, _ = self.shape
        iz, rem = np.divmod(off, nx * ny)
        iy, ix = np.divmod(rem, nx)
        if off.ndim == 0:
            return int(ix), int(iy), int(iz)
        return np.stack((ix, iy, iz), axis=-1)

    def offset_of_position(self, position):
        return self.offset_from_indices(self.indices_of_position(position))

    def position_from_offset(self, offset) -> np.ndarray:
        """Position of the minimal corner of the cell at *offset* (not its centre)."""
        idx = np.asarray(self.indices_from_offset(offset), dtype=np.float64)
        return self.min_corner + idx * self.cell_spacing

    def vertex_positions(self) -> np.ndarray:
        """(capacity, 3) positions of every vertex, in offset order."""
        return self.position_from_offset(np.arange(self.capacity))

    # ------------------------------------------------------------------
    def __eq__(self, other) -> bool:
        if not isinstance(other, GridGeometry):
            return NotImplemented
        return (np.array_equal(self.num_points, other.num_points)
                and np.array_equal(self.min_corner, other.min_corner)
                and np.array_equal(self.max_corner, other.max_corner))

    def __repr__(self) -> str:
        nx, ny, nz = self.shape
        return (f"GridGeometry({nx}x{ny}x{nz}, min={self.min_corner.tolist()}, "
                f"max={self.max_corner.tolist()})")
