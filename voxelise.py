#!/usr/bin/env python
"""
Voxelise a particle table into a uniform grid saved as .npz

either              - vortex particles (x,y,z,wx,wy,wz) → vorton grid
or a scalar column  - mean value per cell                → scalar grid

Usage examples
--------------
# vorton grid of ~32k points over the data's bounding box
python voxelise.py --parquet data/vortons_00042.parquet \
                   --out     data/vortons_00042.npz --points 32768

# mean density per cell, fixed box
python voxelise.py --parquet data/tracers.parquet --out data/density.npz \
                   --points 4096 --scalar density --bounds -1 -1 -1 1 1 1
"""
from __future__ import annotations
import argparse
import pyarrow.parquet as pq
from pathlib import Path
from tqdm import tqdm

from uniform_grid.config import GridSpec
from uniform_grid.geometry import GridGeometry
from uniform_grid.grid import UniformGrid
from uniform_grid.ingest import (POSITION_COLS, VORTICITY_COLS,
                                 ScalarAccumulator, VortonAccumulator, fit_bounds)
from uniform_grid.kinds import SCALAR, VORTON

# ----------------------------------------------------------------------
# CLI ------------------------------------------------------------------
ap = argparse.ArgumentParser()
ap.add_argument("--parquet", required=True, type=Path,
                help="input Parquet (may be large → streamed batch-by-batch)")
ap.add_argument("--out",     required=True, type=Path,
                help="output .npz (compressed)")
ap.add_argument("--points",  type=int, required=True,
                help="approximate total number of grid points")
ap.add_argument("--bounds",  type=float, nargs=6, default=None,
                metavar=("XMIN", "YMIN", "ZMIN", "XMAX", "YMAX", "ZMAX"),
                help="bounding box (default: fit the data, one extra pass)")
ap.add_argument("--pow2",    action="store_true",
                help="round per-axis cell counts to powers of two")
ap.add_argument("--scalar",  default=None,
                help="name of a scalar column to average instead of vortons")
ap.add_argument("--batch",   type=int, default=1_000_000,
                help="rows per batch (lower to reduce memory)")
args = ap.parse_args()

pf = pq.ParquetFile(args.parquet)
columns = list(POSITION_COLS) + ([args.scalar] if args.scalar else list(VORTICITY_COLS))

# ----------------------------------------------------------------------
# Grid initialisation --------------------------------------------------
if args.bounds is None:
    batches = tqdm(pf.iter_batches(batch_size=args.batch, columns=list(POSITION_COLS)),
                   desc="Bounding", unit="batch")
    lo, hi = fit_bounds(batch.to_pandas() for batch in batches)
    spec = GridSpec(tuple(lo), tuple(hi), args.points, args.pow2)
else:
    spec = GridSpec(tuple(args.bounds[:3]), tuple(args.bounds[3:]), args.points, args.pow2)

geometry = GridGeometry.from_spec(spec)
print(f"grid {geometry}")

# STORAGE
if args.scalar is None:
    grid = UniformGrid(geometry, VORTON)
    acc = VortonAccumulator(grid)
else:
    grid = UniformGrid(geometry, SCALAR)
    acc = ScalarAccumulator(grid, args.scalar)

# ----------------------------------------------------------------------
# Stream through the Parquet file batch-by-batch -----------------------
binned = 0
for batch in tqdm(pf.iter_batches(batch_size=args.batch, columns=columns),
                  desc="Voxelising", unit="batch"):
    binned += acc.accumulate(batch.to_pandas())
acc.finish()

# ----------------------------------------------------------------------
# Write output ---------------------------------------------------------
out = grid.save(args.out)
print(f"binned {binned:,} of {pf.metadata.num_rows:,} rows")
print("grid file written →", out.resolve())
