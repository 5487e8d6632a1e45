"""Mapping between pixel space and the complex plane."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np


@dataclass(frozen=True)
class ImageDimensions:
    """Width and height of a raster, in pixels."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"image dimensions must be positive, got {self.width}x{self.height}")

    @property
    def size(self) -> int:
        return self.width * self.height


Bounds = Union[ImageDimensions, Tuple[int, int]]


def as_dimensions(bounds: Bounds) -> ImageDimensions:
    if isinstance(bounds, ImageDimensions):
        return bounds
    width, height = bounds
    return ImageDimensions(int(width), int(height))


@dataclass(frozen=True)
class PlaneRectangle:
    """Window of the complex plane mapped onto an image.

    The corners may be given in any order; a negative width or height
    simply mirrors the rendering along that axis.
    """

    upper_left: complex
    lower_right: complex

    @property
    def width(self) -> float:
        return self.lower_right.real - self.upper_left.real

    @property
    def height(self) -> float:
        return self.lower_right.imag - self.upper_left.imag

    def for_rows(self, bounds: Bounds, top: int, rows: int) -> "PlaneRectangle":
        """Rectangle covering ``rows`` whole rows starting at ``top``."""

        dims = as_dimensions(bounds)
        return PlaneRectangle(
            pixel_to_point(dims, (0, top), self.upper_left, self.lower_right),
            pixel_to_point(dims, (dims.width, top + rows), self.upper_left, self.lower_right),
        )


def pixel_to_point(bounds: Bounds, pixel: Tuple[int, int], upper_left: complex, lower_right: complex) -> complex:
    """Return the point of the plane that pixel ``(col, row)`` corresponds to.

    Rows grow towards ``lower_right.imag``; nothing is flipped.
    """

    if isinstance(bounds, ImageDimensions):
        width, height = bounds.width, bounds.height
    else:
        width, height = bounds
    col, row = pixel
    plane_width = lower_right.real - upper_left.real
    plane_height = lower_right.imag - upper_left.imag
    return complex(
        upper_left.real + col / width * plane_width,
        upper_left.imag + row / height * plane_height,
    )


def plane_grid(bounds: Bounds, upper_left: complex, lower_right: complex) -> tuple[np.ndarray, np.ndarray]:
    """Real and imaginary parts of every pixel, each shaped ``(height, width)``.

    Uses the same per-element operations as :func:`pixel_to_point`, so
    ``re[row, col] + 1j * im[row, col]`` equals the scalar mapping exactly.
    """

    dims = as_dimensions(bounds)
    plane_width = np.float64(lower_right.real - upper_left.real)
    plane_height = np.float64(lower_right.imag - upper_left.imag)

    cols = np.arange(dims.width, dtype=np.float64) / np.float64(dims.width)
    rows = np.arange(dims.height, dtype=np.float64) / np.float64(dims.height)
    x = np.float64(upper_left.real) + cols * plane_width
    y = np.float64(upper_left.imag) + rows * plane_height

    re, im = np.meshgrid(x, y)
    return re, im
