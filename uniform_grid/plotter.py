import numpy as np
import plotly.graph_objects as go

from .geometry import GridGeometry


class BrickPlotter:
    def __init__(self, geometry: GridGeometry):
        self.geometry = geometry

    def figure(self, volume: np.ndarray, title: str = "Brick of bytes",
               skip: int | None = 0) -> go.Figure:
        nx, ny, nz = self.geometry.shape
        if volume.shape != (nz, ny, nx):
            raise ValueError(f"volume shape {volume.shape} does not match grid {nz}x{ny}x{nx}")

        # vertex positions, in the same (z, y, x) order as the volume
        flat_pos = self.geometry.vertex_positions()
        flat_val = volume.ravel()
        mask = np.ones(flat_val.shape, dtype=bool) if skip is None else flat_val != skip

        trace = go.Scatter3d(
            x=flat_pos[mask, 0],
            y=flat_pos[mask, 1],
            z=flat_pos[mask, 2],
            mode="markers",
            marker=dict(size=3, color=flat_val[mask], colorscale="Viridis",
                        cmin=0, cmax=255, colorbar=dict(title="byte")),
            name=title,
        )

        fig = go.Figure(data=[trace])
        fig.update_layout(
            scene=dict(xaxis_title="X", yaxis_title="Y", zaxis_title="Z",
                       aspectmode="data"),
            title=title,
        )
        return fig

    def plot(self, volume: np.ndarray, title: str = "Brick of bytes") -> None:
        self.figure(volume, title).show()
