# grid.py
from __future__ import annotations
from pathlib import Path
import numpy as np

from .geometry import GridGeometry
from .kinds import SCALAR, ValueKind, kind_for


class UniformGrid:
    """
    Dense storage of one value per vertex of a GridGeometry.

    Contents are a single contiguous array indexed by flat offset
    (X fastest, then Y, then Z):

    - ``grid[offset]`` / ``grid[offset] = v``  access by offset
    - ``grid.at_position(p)`` / ``grid.set_at_position(p, v)``  access by position

    Position access clamps onto the grid; callers inserting by position are
    expected to keep positions inside the bounding box.  Reads of vector and
    vorton values return views into the contents.
    """

    # ------------------------------------------------------------------
    def __init__(self, geometry: GridGeometry, kind: ValueKind = SCALAR, fill=0):
        self.kind = kind
        self.geometry = geometry
        self.contents = kind.allocate(geometry.capacity, fill)

    @classmethod
    def like(cls, other: UniformGrid, kind: ValueKind | None = None, fill=0) -> UniformGrid:
        """Empty grid with the same shape as *other*, e.g. an offset map."""
        return cls(GridGeometry.like(other.geometry), kind or other.kind, fill)

    def resize(self, geometry: GridGeometry, fill=0) -> None:
        """Adopt a new shape.  Prior contents are discarded, not resampled."""
        self.geometry = geometry
        self.contents = self.kind.allocate(geometry.capacity, fill)

    def clear(self, fill=0) -> None:
        self.contents[...] = fill

    # ------------------------------------------------------------------
    def size(self) -> int:
        return len(self.contents)

    def __len__(self) -> int:
        return len(self.contents)

    def __getitem__(self, offset):
        return self.contents[self._check_offset(offset)]

    def __setitem__(self, offset, value) -> None:
        self.contents[self._check_offset(offset)] = value

    def at_position(self, position):
        return self.contents[self.geometry.offset_of_position(position)]

    def set_at_position(self, position, value) -> None:
        self.contents[self.geometry.offset_of_position(position)] = value

    def _check_offset(self, offset):
        off = np.asarray(offset)
        if not np.issubdtype(off.dtype, np.integer):
            raise ValueError(f"offsets must be integers, got {off.dtype}")
        if np.any(off < 0) or np.any(off >= len(self.contents)):
            raise ValueError(f"offset out of range [0, {len(self.contents)})")
        return offset

    # ------------------------------------------------------------------
    def statistics(self):
        """(min, max) over all values, component by component."""
        return self.kind.reduce(self.contents)

    def as_volume(self) -> np.ndarray:
        """View of the contents shaped (nz, ny, nx, ...)."""
        nx, ny, nz = self.geometry.shape
        return self.contents.reshape((nz, ny, nx) + self.contents.shape[1:])

    # ------------------------------------------------------------------
    def save(self, path) -> Path:
        path = Path(path)
        np.savez_compressed(
            path, contents=self.contents, kind=self.kind.name,
            min_corner=self.geometry.min_corner,
            max_corner=self.geometry.max_corner,
            num_points=self.geometry.num_points)
        # numpy appends .npz when missing
        return path if path.suffix == ".npz" else path.with_name(path.name + ".npz")

    @classmethod
    def load(cls, path) -> UniformGrid:
        with np.load(path, allow_pickle=False) as data:
            geometry = GridGeometry(data["min_corner"], data["max_corner"], data["num_points"])
            grid = cls(geometry, kind_for(str(data["kind"])))
            contents = data["contents"]
            if contents.shape != grid.contents.shape or contents.dtype != grid.contents.dtype:
                raise ValueError(
                    f"{path}: contents {contents.dtype}{contents.shape} do not match "
                    f"{grid.kind.name} grid {grid.geometry.shape}")
            grid.contents[...] = contents
        return grid

    def __repr__(self) -> str:
        return f"UniformGrid({self.kind.name}, {self.geometry!r})"
