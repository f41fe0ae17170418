from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class GridSpec:
    min_corner: tuple[float, float, float] = (-1.0, -1.0, -1.0)
    max_corner: tuple[float, float, float] = (1.0, 1.0, 1.0)
    approx_points: int = 1024       # requested total number of grid points
    power_of_two: bool = False      # round cell counts to powers of 2


@dataclass(slots=True)
class BrickSpec:
    base: str
    frame: int = 0
    out_dir: Path = field(default_factory=lambda: Path("Vols"))   # data files
    script_dir: Path = field(default_factory=lambda: Path("."))   # <base>.ogle
    symmetric: bool | None = None   # None -> value kind decides

    @property
    def script_path(self) -> Path:
        return Path(self.script_dir) / f"{self.base}.ogle"
