"""Split a render into row bands and run them concurrently."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .geometry import Bounds, ImageDimensions, PlaneRectangle, as_dimensions
from .renderer import DEFAULT_LIMIT, check_limit, render_band

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowBand:
    """A run of whole rows handed to one worker."""

    index: int
    top: int
    rows: int

    @property
    def bottom(self) -> int:
        return self.top + self.rows

    def byte_range(self, width: int) -> tuple[int, int]:
        return self.top * width, self.bottom * width


def default_worker_count() -> int:
    return os.cpu_count() or 1


def rows_per_band(height: int, worker_count: int) -> int:
    """Rows given to each band; one extra so ``worker_count`` bands always suffice."""

    if worker_count < 1:
        raise ValueError(f"worker count must be at least 1, got {worker_count}")
    return height // worker_count + 1


def partition_rows(height: int, worker_count: int) -> list[RowBand]:
    step = rows_per_band(height, worker_count)
    return [
        RowBand(index=index, top=top, rows=min(step, height - top))
        for index, top in enumerate(range(0, height, step))
    ]


def render_fractal(
    bounds: Bounds,
    upper_left: complex,
    lower_right: complex,
    worker_count: Optional[int] = None,
    *,
    limit: int = DEFAULT_LIMIT,
    device: Optional[str] = None,
) -> np.ndarray:
    """Render the window into a new row-major uint8 buffer of ``width * height`` bytes.

    Each band gets its own slice of the buffer and its own plane rectangle
    derived from the global mapping. The call returns only once every band
    has finished; if any band fails its exception is raised here.
    """

    dims = as_dimensions(bounds)
    limit = check_limit(limit)
    if worker_count is None:
        worker_count = default_worker_count()

    window = PlaneRectangle(complex(upper_left), complex(lower_right))
    pixels = np.zeros(dims.size, dtype=np.uint8)
    bands = partition_rows(dims.height, worker_count)
    logger.debug("rendering %dx%d in %d bands of up to %d rows",
                 dims.width, dims.height, len(bands), bands[0].rows)

    with ThreadPoolExecutor(max_workers=len(bands), thread_name_prefix="band") as executor:
        futures = []
        for band in bands:
            start, stop = band.byte_range(dims.width)
            band_window = window.for_rows(dims, band.top, band.rows)
            futures.append(executor.submit(
                _render_one,
                band,
                pixels[start:stop],
                ImageDimensions(dims.width, band.rows),
                band_window,
                limit,
                device,
            ))
        for future in futures:
            future.result()

    return pixels


def _render_one(
    band: RowBand,
    pixels: np.ndarray,
    dims: ImageDimensions,
    window: PlaneRectangle,
    limit: int,
    device: Optional[str],
) -> None:
    render_band(pixels, dims, window.upper_left, window.lower_right, limit=limit, device=device)
    logger.debug("band %d (rows %d-%d) done", band.index, band.top, band.bottom - 1)


@dataclass(frozen=True)
class RenderParameters:
    """Everything needed to reproduce one render."""

    width: int
    height: int
    upper_left: complex
    lower_right: complex
    workers: int
    limit: int = DEFAULT_LIMIT

    @property
    def dimensions(self) -> ImageDimensions:
        return ImageDimensions(self.width, self.height)


@dataclass(frozen=True)
class RenderResult:
    """Rendered buffer together with the bands it was split into."""

    pixels: np.ndarray
    dimensions: ImageDimensions
    bands: tuple[RowBand, ...]

    def as_image_array(self) -> np.ndarray:
        return self.pixels.reshape(self.dimensions.height, self.dimensions.width)


def render(params: RenderParameters, *, device: Optional[str] = None) -> RenderResult:
    dims = params.dimensions
    pixels = render_fractal(
        dims,
        params.upper_left,
        params.lower_right,
        params.workers,
        limit=params.limit,
        device=device,
    )
    return RenderResult(
        pixels=pixels,
        dimensions=dims,
        bands=tuple(partition_rows(dims.height, params.workers)),
    )
