"""
Brick-of-bytes export for OGLE-style volume viewers.

Each channel of a grid is written as one headerless file of ``nx*ny*nz``
unsigned bytes in offset order (X fastest), followed by a text footer
``MIN <g> MAX <g>`` carrying the pre-quantization range.  Without the
footer a viewer cannot tell whether byte 0 is the true minimum or a signed
zero.  Every export also appends a range comment and a data line to the
shared script ``<base>.ogle``, so successive frames build up one animation.

Vector and vorton grids produce X, Y, Z and magnitude (M) channels; the
magnitude range is ``[0, |max(-min, max)|]``, an upper bound on the true
largest magnitude that is close enough for visualisation.
"""
from __future__ import annotations
import os
from pathlib import Path
import re
import numpy as np

from .config import BrickSpec
from .grid import UniformGrid

# largest float below 256 once scaled, so 1.0 truncates to 255
ALMOST_256 = 256.0 * (1.0 - float(np.finfo(np.float32).eps))
RANGE_FLOOR = float(np.finfo(np.float32).tiny)

_FOOTER = re.compile(rb"MIN (\S+) MAX (\S+)\n?$")


# ----------------------------------------------------------------------
def symmetric_range(lo, hi):
    """Widen (lo, hi) to (-e, e) with e = max(-lo, hi), component-wise."""
    extreme = np.maximum(-np.asarray(lo, dtype=np.float64), np.asarray(hi, dtype=np.float64))
    return -extreme, extreme


def quantize(values, lo, hi) -> np.ndarray:
    """Map *values* in [lo, hi] onto bytes 0..255 (lo -> 0, hi -> 255)."""
    v = np.asarray(values, dtype=np.float64)
    lo = np.asarray(lo, dtype=np.float64)
    span = np.maximum(np.asarray(hi, dtype=np.float64) - lo, RANGE_FLOOR)

    unit = (v - lo) / span
    if not np.all((unit >= 0.0) & (unit <= 1.0)):
        bad = v[~((unit >= 0.0) & (unit <= 1.0))]
        raise RuntimeError(f"{bad.size} values fall outside the range [{lo}, {hi}]")

    ints = (unit * ALMOST_256).astype(np.int64)
    if ints.min(initial=0) < 0 or ints.max(initial=0) > 255:
        raise RuntimeError("quantized value outside 0..255")
    return ints.astype(np.uint8)


def _magnitude(vectors) -> np.ndarray:
    v = np.asarray(vectors, dtype=np.float64)
    return np.sqrt(np.sum(v * v, axis=-1))


def _check_sign(values: np.ndarray, quantized: np.ndarray) -> None:
    # in a symmetric range zero lands on 127, so negatives stay below 128
    # and positives stay at or above 127
    if np.any((values < 0) & (quantized > 127)) or np.any((values > 0) & (quantized < 127)):
        raise RuntimeError("symmetric quantization changed the sign of a value")


# ----------------------------------------------------------------------
def brick_filenames(spec: BrickSpec, shape, channels=("",)) -> list[Path]:
    if spec.frame < 0:
        raise ValueError(f"frame must be non-negative, got {spec.frame}")
    nx, ny, nz = shape
    return [Path(spec.out_dir) / f"{spec.base}{ch}{spec.frame:05d}-{nx}x{ny}x{nz}.dat"
            for ch in channels]


def _footer(lo, hi) -> bytes:
    return ("MIN %g MAX %g\n" % (lo, hi)).encode("ascii")


def generate_brick_of_bytes(grid: UniformGrid, spec: BrickSpec) -> list[Path]:
    """
    Quantize *grid* into brick files and append its entry to ``<base>.ogle``.

    Returns the data files written.  Quantization problems raise before any
    file is opened; a file that cannot be opened aborts the whole export
    and leaves bricks from earlier exports untouched.
    """
    kind = grid.kind
    symmetric = kind.symmetric_default if spec.symmetric is None else spec.symmetric
    lo, hi = kind.brick_range(*grid.statistics())
    values = kind.brick_channels(grid.contents)
    shape = grid.geometry.shape

    # approximate |v|max: norm of the per-component extremes
    mag_max = float(_magnitude(symmetric_range(lo, hi)[1])) if kind.vector else 0.0
    if symmetric:
        lo, hi = symmetric_range(lo, hi)

    if kind.vector:
        lo, hi = np.asarray(lo, dtype=np.float64), np.asarray(hi, dtype=np.float64)
        channels = [quantize(values[:, c], lo[c], hi[c]) for c in range(3)]
        magnitude = _magnitude(values)
        if np.any(magnitude > mag_max):
            raise RuntimeError(f"magnitude {magnitude.max():g} exceeds bound {mag_max:g}")
        channels.append(quantize(magnitude, 0.0, mag_max))
        if symmetric:
            for c in range(3):
                _check_sign(values[:, c], channels[c])
        ranges = [(lo[c], hi[c]) for c in range(3)] + [(0, mag_max)]
        paths = brick_filenames(spec, shape, "XYZM")
        comment = ("# %s ranges: {%9.7g,%9.7g,%9.7g} to {%9.7g,%9.7g,%9.7g}\n"
                   % (spec.base, *lo, *hi))
        listed = paths[:3]
    else:
        lo, hi = float(lo), float(hi)
        channels = [quantize(values, lo, hi)]
        if symmetric:
            _check_sign(np.asarray(values), channels[0])
        ranges = [(lo, hi)]
        paths = brick_filenames(spec, shape)
        comment = "# %s ranges: %9.7g to %9.7g\n" % (spec.base, lo, hi)
        listed = paths

    dataline = "%ux%ux%u %s\n" % (*shape, " ".join(str(p) for p in listed))

    # stage each channel as <name>.part; rename only after all are written
    Path(spec.out_dir).mkdir(parents=True, exist_ok=True)
    staged = []
    try:
        with spec.script_path.open("a") as script:
            for path, data, (c_lo, c_hi) in zip(paths, channels, ranges):
                part = path.with_name(path.name + ".part")
                staged.append(part)
                with part.open("wb") as fh:
                    fh.write(data.tobytes())
                    fh.write(_footer(c_lo, c_hi))
            for part, path in zip(staged, paths):
                os.replace(part, path)
            staged = []
            script.write(comment)
            script.write(dataline)
    finally:
        for part in staged:
            part.unlink(missing_ok=True)
    return paths


# ----------------------------------------------------------------------
def read_brick(path, shape) -> tuple[np.ndarray, float, float]:
    """Return ((nz, ny, nx) bytes, min, max) from a brick file."""
    nx, ny, nz = shape
    raw = Path(path).read_bytes()
    n = nx * ny * nz
    m = _FOOTER.match(raw[n:])
    if len(raw) < n or m is None:
        raise ValueError(f"{path}: not a {nx}x{ny}x{nz} brick with MIN/MAX footer")
    body = np.frombuffer(raw[:n], dtype=np.uint8).reshape(nz, ny, nx)
    return body, float(m.group(1)), float(m.group(2))
