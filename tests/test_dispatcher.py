from unittest import mock

import numpy as np
import pytest

import mandelbrot_bands.dispatcher as dispatcher
from mandelbrot_bands import (
    RenderParameters,
    escape_time,
    partition_rows,
    pixel_to_point,
    render,
    render_band,
    render_fractal,
    rows_per_band,
)


def test_rows_per_band_formula():
    assert rows_per_band(100, 4) == 26
    assert rows_per_band(100, 1) == 101
    assert rows_per_band(3, 8) == 1
    assert rows_per_band(64, 9) == 8


@pytest.mark.parametrize("workers", [0, -2])
def test_rows_per_band_rejects_bad_worker_count(workers):
    with pytest.raises(ValueError):
        rows_per_band(10, workers)


@pytest.mark.parametrize("height", [1, 2, 3, 7, 10, 64, 99, 100, 101, 750])
@pytest.mark.parametrize("workers", [1, 2, 3, 4, 7, 8, 16, 64, 1000])
def test_partition_covers_every_row_once(height, workers):
    bands = partition_rows(height, workers)

    assert 1 <= len(bands) <= workers
    assert bands[0].top == 0
    assert bands[-1].bottom == height
    for previous, band in zip(bands, bands[1:]):
        assert band.top == previous.bottom
    assert all(band.rows > 0 for band in bands)
    assert sum(band.rows for band in bands) == height
    assert [band.index for band in bands] == list(range(len(bands)))


def test_partition_last_band_holds_remainder():
    bands = partition_rows(100, 4)
    assert [(band.top, band.rows) for band in bands] == [(0, 26), (26, 26), (52, 26), (78, 22)]


def test_band_byte_ranges_are_disjoint():
    width = 17
    bands = partition_rows(40, 6)
    ranges = [band.byte_range(width) for band in bands]
    assert ranges[0][0] == 0
    assert ranges[-1][1] == 40 * width
    for (_, stop), (start, _) in zip(ranges, ranges[1:]):
        assert stop == start


def test_single_worker_matches_direct_band_render():
    bounds = (20, 10)
    upper_left = complex(-2.0, -1.0)
    lower_right = complex(1.0, 1.0)
    expected = np.zeros(200, dtype=np.uint8)
    render_band(expected, bounds, upper_left, lower_right)

    pixels = render_fractal(bounds, upper_left, lower_right, 1)

    assert pixels.dtype == np.uint8
    assert np.array_equal(pixels, expected)


@pytest.mark.parametrize("workers", [9, 21, 64, 100])
def test_worker_count_does_not_change_output(workers):
    # Dyadic window and sizes keep every band's mapping exact.
    bounds = (64, 64)
    upper_left = complex(-2.0, -1.0)
    lower_right = complex(0.5, 1.0)

    single = render_fractal(bounds, upper_left, lower_right, 1)
    banded = render_fractal(bounds, upper_left, lower_right, workers)

    assert np.array_equal(single, banded)


def test_eight_workers_match_one_worker():
    bounds = (64, 8)
    upper_left = complex(-2.0, -1.0)
    lower_right = complex(0.5, 1.0)

    assert len(partition_rows(8, 8)) == 4
    assert np.array_equal(
        render_fractal(bounds, upper_left, lower_right, 1),
        render_fractal(bounds, upper_left, lower_right, 8),
    )


def test_end_to_end_window_straddles_the_set():
    bounds = (100, 100)
    upper_left = complex(-1.20, 0.35)
    lower_right = complex(-1.0, 0.20)

    pixels = render_fractal(bounds, upper_left, lower_right, 4)

    assert pixels.shape == (100 * 100,)
    assert pixel_to_point(bounds, (0, 0), upper_left, lower_right) == upper_left
    first = escape_time(upper_left, 255)
    assert pixels[0] == (0 if first is None else 255 - first)
    assert np.any(pixels == 0)
    assert np.any(pixels != 0)


def test_inverted_window_mirrors_output():
    bounds = (32, 32)
    upright = render_fractal(bounds, complex(-2.0, -1.0), complex(0.0, 1.0), 64).reshape(32, 32)
    # Rows run from +1 down to -1; the set is symmetric about the real axis.
    flipped = render_fractal(bounds, complex(-2.0, 1.0), complex(0.0, -1.0), 64).reshape(32, 32)
    assert np.array_equal(upright[1:], flipped[1:][::-1])


def test_worker_failure_is_raised():
    with mock.patch.object(dispatcher, "render_band", side_effect=ValueError("bad band")):
        with pytest.raises(ValueError, match="bad band"):
            render_fractal((10, 10), complex(-2, -1), complex(1, 1), 4)


def test_failure_in_last_band_fails_the_render():
    def flaky(pixels, dims, upper_left, lower_right, **kwargs):
        if lower_right.imag == 1.0:
            raise RuntimeError("worker died")
        render_band(pixels, dims, upper_left, lower_right, **kwargs)

    with mock.patch.object(dispatcher, "render_band", side_effect=flaky):
        with pytest.raises(RuntimeError, match="worker died"):
            render_fractal((10, 10), complex(-2, -1), complex(1, 1), 4)


def test_rejects_bad_inputs():
    with pytest.raises(ValueError):
        render_fractal((0, 10), complex(-2, -1), complex(1, 1), 2)
    with pytest.raises(ValueError):
        render_fractal((10, 10), complex(-2, -1), complex(1, 1), 0)
    with pytest.raises(ValueError):
        render_fractal((10, 10), complex(-2, -1), complex(1, 1), 2, limit=300)


def test_default_worker_count_is_used():
    with mock.patch.object(dispatcher.os, "cpu_count", return_value=None):
        pixels = render_fractal((8, 8), complex(-2, -1), complex(1, 1))
    assert pixels.shape == (64,)


def test_lower_limit_rescales_intensity():
    pixels = render_fractal((4, 4), complex(2.0, 2.0), complex(3.0, 3.0), 2, limit=10)
    assert np.all(pixels == 9)


def test_render_parameters():
    params = RenderParameters(
        width=30,
        height=20,
        upper_left=complex(-1.20, 0.35),
        lower_right=complex(-1.0, 0.20),
        workers=3,
    )
    result = render(params)

    assert result.as_image_array().shape == (20, 30)
    assert [band.rows for band in result.bands] == [7, 7, 6]
    assert np.array_equal(result.pixels, render_fractal((30, 20), params.upper_left, params.lower_right, 3))
