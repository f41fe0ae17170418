from pathlib import Path
import argparse
import sys

from .config import BrickSpec
from .grid import UniformGrid
from .decimate import decimate
from .brick import generate_brick_of_bytes, read_brick


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Export saved uniform grids as brick-of-bytes volumes + OGLE script"
    )
    p.add_argument("grids", nargs="+", type=Path,
                   help=".npz grids written by voxelise.py (one per frame)")
    p.add_argument("--base", required=True,
                   help="Filename prefix for data files and <base>.ogle")
    p.add_argument("--frame", type=int, default=0,
                   help="Frame number of the first grid (default 0)")
    p.add_argument("--out-dir", type=Path, default=Path("Vols"),
                   help="Directory for .dat files (default Vols)")
    p.add_argument("--script-dir", type=Path, default=Path("."),
                   help="Directory holding <base>.ogle (default .)")
    p.add_argument("--symmetric", action=argparse.BooleanOptionalAction, default=None,
                   help="Force a range symmetric about zero (default: per value kind)")
    p.add_argument("--decimate", type=int, default=1,
                   help="Coarsen by this factor per axis before export (default 1)")
    p.add_argument("--plot", action="store_true",
                   help="Show the magnitude (or only) channel of the last frame")
    return p


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    if args.decimate < 1:
        sys.exit("ERROR: --decimate must be >= 1")

    written = []
    for i, path in enumerate(args.grids):
        # -------------------------------------------------- load
        print(f"Reading {path}")
        grid = UniformGrid.load(path)
        if args.decimate > 1:
            grid = decimate(grid, args.decimate, policy="sample")

        # -------------------------------------------------- export
        spec = BrickSpec(base=args.base, frame=args.frame + i,
                         out_dir=args.out_dir, script_dir=args.script_dir,
                         symmetric=args.symmetric)
        written = generate_brick_of_bytes(grid, spec)
        for w in written:
            print(f"    wrote {w}")

    print(f"✓ Finished.  Script: {(args.script_dir / f'{args.base}.ogle').resolve()}")

    # -------------------------------------------------- visualise
    if args.plot and written:
        from .plotter import BrickPlotter
        volume, lo, hi = read_brick(written[-1], grid.geometry.shape)
        BrickPlotter(grid.geometry).plot(volume, title=f"{written[-1].name}  [{lo:g}, {hi:g}]")


if __name__ == "__main__":
    main()
