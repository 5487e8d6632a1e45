"""Public API for banded Mandelbrot rendering."""

from .geometry import ImageDimensions, PlaneRectangle, pixel_to_point, plane_grid
from .renderer import DEFAULT_LIMIT, escape_counts, escape_time, intensities, render_band
from .dispatcher import (
    RenderParameters,
    RenderResult,
    RowBand,
    default_worker_count,
    partition_rows,
    render,
    render_fractal,
    rows_per_band,
)

__all__ = [
    "DEFAULT_LIMIT",
    "ImageDimensions",
    "PlaneRectangle",
    "RenderParameters",
    "RenderResult",
    "RowBand",
    "default_worker_count",
    "escape_counts",
    "escape_time",
    "intensities",
    "partition_rows",
    "pixel_to_point",
    "plane_grid",
    "render",
    "render_band",
    "render_fractal",
    "rows_per_band",
]
