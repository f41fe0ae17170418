"""
Value kinds a UniformGrid can store.

A kind bundles the storage dtype with the per-component min/max reduction for
that shape of value, so one dense container serves scalars, 3-vectors and
vorton records alike.
"""
from __future__ import annotations
from typing import Protocol
import numpy as np


VORTON_DTYPE = np.dtype([("position", np.float32, (3,)),
                         ("vorticity", np.float32, (3,))])


class ValueKind(Protocol):
    name: str
    dtype: np.dtype
    symmetric_default: bool
    item_shape: tuple
    vector: bool            # exported as X/Y/Z/M channels

    def allocate(self, n: int, fill=0) -> np.ndarray: ...
    def identity(self) -> tuple: ...
    def reduce(self, values: np.ndarray) -> tuple: ...
    def brick_channels(self, values: np.ndarray) -> np.ndarray: ...
    def brick_range(self, lo, hi) -> tuple: ...


class _Scalar:
    item_shape = ()
    vector = False
    symmetric_default = False

    def __init__(self, name: str, dtype):
        self.name = name
        self.dtype = np.dtype(dtype)

    def allocate(self, n: int, fill=0) -> np.ndarray:
        return np.full(n, fill, dtype=self.dtype)

    def identity(self) -> tuple[float, float]:
        return np.inf, -np.inf

    def reduce(self, values: np.ndarray) -> tuple[float, float]:
        lo, hi = self.identity()
        v = values.astype(np.float64, copy=False)
        return float(v.min(initial=lo)), float(v.max(initial=hi))

    def brick_channels(self, values: np.ndarray) -> np.ndarray:
        return values

    def brick_range(self, lo, hi):
        return lo, hi

    def __repr__(self) -> str:
        return f"<kind {self.name}>"


class _Vector:
    name = "vector"
    dtype = np.dtype(np.float32)
    item_shape = (3,)
    vector = True
    symmetric_default = False

    def allocate(self, n: int, fill=0) -> np.ndarray:
        out = np.empty((n, 3), dtype=np.float32)
        out[:] = fill
        return out

    def identity(self) -> tuple[np.ndarray, np.ndarray]:
        return np.full(3, np.inf), np.full(3, -np.inf)

    def reduce(self, values: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        # each component folds independently, starting from the identity
        lo, hi = self.identity()
        if len(values):
            v = values.astype(np.float64, copy=False)
            lo, hi = np.minimum(lo, v.min(axis=0)), np.maximum(hi, v.max(axis=0))
        return lo, hi

    def brick_channels(self, values: np.ndarray) -> np.ndarray:
        return values

    def brick_range(self, lo, hi):
        return lo, hi

    def __repr__(self) -> str:
        return "<kind vector>"


class _Vorton:
    name = "vorton"
    dtype = VORTON_DTYPE
    item_shape = ()
    vector = True
    symmetric_default = True        # vorticity is signed

    def allocate(self, n: int, fill=0) -> np.ndarray:
        out = np.zeros(n, dtype=VORTON_DTYPE)
        if not (np.isscalar(fill) and fill == 0):
            out[:] = fill
        return out

    def identity(self) -> tuple[np.ndarray, np.ndarray]:
        lo = np.zeros((), dtype=np.dtype([("position", np.float64, (3,)),
                                          ("vorticity", np.float64, (3,))]))
        hi = lo.copy()
        lo["position"] = lo["vorticity"] = np.inf
        hi["position"] = hi["vorticity"] = -np.inf
        return lo, hi

    def reduce(self, values: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        lo, hi = self.identity()
        if len(values):
            for fld in ("position", "vorticity"):
                lo[fld] = np.minimum(lo[fld], values[fld].min(axis=0))
                hi[fld] = np.maximum(hi[fld], values[fld].max(axis=0))
        return lo, hi

    def brick_channels(self, values: np.ndarray) -> np.ndarray:
        return values["vorticity"]

    def brick_range(self, lo, hi):
        return np.array(lo["vorticity"]), np.array(hi["vorticity"])

    def __repr__(self) -> str:
        return "<kind vorton>"


SCALAR = _Scalar("scalar", np.float32)
INDEX = _Scalar("index", np.uint32)
VECTOR = _Vector()
VORTON = _Vorton()

_KINDS = {k.name: k for k in (SCALAR, INDEX, VECTOR, VORTON)}


def kind_for(name: str) -> ValueKind:
    try:
        return _KINDS[name]
    except KeyError:
        raise ValueError(f"unknown value kind {name!r}; expected one of {sorted(_KINDS)}") from None
