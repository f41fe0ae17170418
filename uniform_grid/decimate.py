from __future__ import annotations
import numpy as np

from .grid import UniformGrid

POLICIES = ("none", "sample")


def decimate(source: UniformGrid, factor: int, policy: str = "none") -> UniformGrid:
    """
    Build a coarser grid over the same bounding box as *source*.

    The coarse grid has ``source.num_cells // factor`` cells per axis.
    *policy* decides what goes into it:

    - ``"none"``    contents left at zero; only the geometry is coarsened
    - ``"sample"``  each coarse vertex copies the source vertex nearest to
                    it, ``round(index * src_cells / dst_cells)`` per axis;
                    for a dividing factor that is ``index * factor``
    """
    if policy not in POLICIES:
        raise ValueError(f"unknown decimation policy {policy!r}; expected one of {POLICIES}")

    coarse = UniformGrid(source.geometry.decimated(factor), source.kind)
    if policy == "sample":
        src_geo, dst_geo = source.geometry, coarse.geometry
        idx = dst_geo.indices_from_offset(np.arange(dst_geo.capacity))
        ratio = src_geo.num_cells / dst_geo.num_cells
        idx = np.minimum(np.rint(idx * ratio).astype(np.int64), src_geo.num_points - 1)
        coarse.contents[:] = source.contents[src_geo.offset_from_indices(idx)]
    return coarse
