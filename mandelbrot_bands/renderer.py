"""Escape-time evaluation and rendering of a single row band."""

from __future__ import annotations

from typing import Optional

import numpy as np
import tensorflow as tf

from .geometry import Bounds, as_dimensions, plane_grid

HORIZON = 4.0
DEFAULT_LIMIT = 255


def check_limit(limit: int) -> int:
    limit = int(limit)
    if not 1 <= limit <= DEFAULT_LIMIT:
        raise ValueError(f"iteration limit must be between 1 and {DEFAULT_LIMIT}, got {limit}")
    return limit


def escape_time(c: complex, limit: int = DEFAULT_LIMIT) -> Optional[int]:
    """Number of iterations of ``z = z*z + c`` before ``|z|`` exceeds 2.

    The magnitude is tested before each update, starting from ``z = 0``.
    Returns ``None`` if ``limit`` iterations pass without escaping.
    """

    c_re = float(c.real)
    c_im = float(c.imag)
    z_re = z_im = 0.0
    for i in range(limit):
        if z_re * z_re + z_im * z_im > HORIZON:
            return i
        z_re, z_im = (
            z_re * z_re - z_im * z_im + c_re,
            2.0 * z_re * z_im + c_im,
        )
    return None


def _escape_step(
    i: tf.Tensor,
    z_re: tf.Tensor,
    z_im: tf.Tensor,
    c_re: tf.Tensor,
    c_im: tf.Tensor,
    counts: tf.Tensor,
    active: tf.Tensor,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Record points escaping at iteration ``i`` and advance the rest."""

    escaped = tf.logical_and(active, z_re * z_re + z_im * z_im > HORIZON)
    counts = tf.where(escaped, i, counts)
    active = tf.logical_and(active, tf.logical_not(escaped))

    next_re = z_re * z_re - z_im * z_im + c_re
    next_im = 2.0 * z_re * z_im + c_im
    z_re = tf.where(active, next_re, z_re)
    z_im = tf.where(active, next_im, z_im)
    return z_re, z_im, counts, active


@tf.function(
    input_signature=(
        tf.TensorSpec(shape=[None, None], dtype=tf.float64),
        tf.TensorSpec(shape=[None, None], dtype=tf.float64),
        tf.TensorSpec(shape=[], dtype=tf.int32),
    )
)
def _escape_time_run(c_re: tf.Tensor, c_im: tf.Tensor, limit: tf.Tensor) -> tf.Tensor:
    """Escape iteration of every point, ``limit`` where a point never escaped."""

    i = tf.constant(0, dtype=tf.int32)
    z_re = tf.zeros_like(c_re)
    z_im = tf.zeros_like(c_im)
    counts = tf.fill(tf.shape(c_re), limit)
    active = tf.ones_like(c_re, dtype=tf.bool)

    def cond(i, z_re, z_im, counts, active):
        return tf.logical_and(tf.less(i, limit), tf.reduce_any(active))

    def body(i, z_re, z_im, counts, active):
        z_re, z_im, counts, active = _escape_step(i, z_re, z_im, c_re, c_im, counts, active)
        return i + 1, z_re, z_im, counts, active

    _, _, _, counts, _ = tf.while_loop(cond, body, (i, z_re, z_im, counts, active))
    return counts


def escape_counts(
    bounds: Bounds,
    upper_left: complex,
    lower_right: complex,
    *,
    limit: int = DEFAULT_LIMIT,
    device: Optional[str] = None,
) -> np.ndarray:
    """Escape iteration of every pixel as an int32 ``(height, width)`` array.

    Pixels that did not escape hold ``limit``.
    """

    limit = check_limit(limit)
    re, im = plane_grid(bounds, upper_left, lower_right)

    with tf.device(device if device is not None else "/CPU:0"):
        counts = _escape_time_run(
            tf.convert_to_tensor(re, dtype=tf.float64),
            tf.convert_to_tensor(im, dtype=tf.float64),
            tf.constant(limit, dtype=tf.int32),
        )
    return counts.numpy()


def intensities(counts: np.ndarray, limit: int = DEFAULT_LIMIT) -> np.ndarray:
    """Map escape counts to bytes: ``limit - i`` when escaped, 0 otherwise."""

    escaped = counts < limit
    return np.where(escaped, limit - counts, 0).astype(np.uint8)


def render_band(
    pixels,
    bounds: Bounds,
    upper_left: complex,
    lower_right: complex,
    *,
    limit: int = DEFAULT_LIMIT,
    device: Optional[str] = None,
) -> None:
    """Fill ``pixels`` with the band described by ``bounds`` and its own corners.

    ``pixels`` is a writable row-major byte view holding exactly
    ``width * height`` bytes; any other length is a partitioning bug.
    """

    dims = as_dimensions(bounds)
    if len(pixels) != dims.size:
        raise ValueError(
            f"band buffer holds {len(pixels)} bytes but {dims.width}x{dims.height} needs {dims.size}"
        )

    counts = escape_counts(dims, upper_left, lower_right, limit=limit, device=device)
    pixels[:] = intensities(counts, limit).ravel()
