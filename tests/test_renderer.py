import numpy as np
import pytest

import thorn.renderer
from thorn import CountStorage, Raster, ThornParameters, Viewport, partition_rows, render_raster, thorn_counts


def reference_count(zr, zi, params):
    """Scalar transcription of the Thorn loop, one recurrence per pass."""

    ir, ii = np.float64(zr), np.float64(zi)
    k = 0
    with np.errstate(all="ignore"):
        while True:
            a, b = ir, ii
            ir = a / np.cos(b) + params.cx
            ii = b / np.sin(a) + params.cy
            k += 1
            if not (k <= params.max_iterations and ir * ir + ii * ii < params.escape):
                return k


def test_degenerate_viewport_stops_after_one_iteration():
    params = ThornParameters(cx=0.0, cy=0.0, max_iterations=5, escape=1e4)
    raster = render_raster(1, 1, Viewport(0.0, 0.0, 0.0, 0.0), params, workers=1)
    assert raster.counts.tolist() == [[1]]


def test_escape_comparison_is_strict():
    # 100 / cos(0) lands exactly on the escape radius.
    params = ThornParameters(cx=0.0, cy=0.0, max_iterations=50, escape=1e4)
    raster = render_raster(1, 1, Viewport(100.0, 101.0, 0.0, 1.0), params, workers=1)
    assert raster.counts.tolist() == [[1]]


def test_bounded_trajectory_stores_cap_plus_one():
    params = ThornParameters(cx=0.0, cy=0.0, max_iterations=1, escape=1e300)
    raster = render_raster(1, 1, Viewport(0.5, 1.5, 0.5, 1.5), params, workers=1)
    assert raster.counts.tolist() == [[2]]


def test_zero_cap_runs_the_body_once():
    params = ThornParameters(max_iterations=0)
    raster = render_raster(6, 4, Viewport.symmetric(), params, workers=2)
    assert np.all(raster.counts == 1)


def test_counts_stay_in_range():
    params = ThornParameters(max_iterations=40)
    raster = render_raster(33, 21, Viewport.symmetric(), params, workers=3)
    counts = raster.counts
    assert counts.shape == (21, 33)
    assert counts.dtype == np.uint16
    assert counts.min() >= 1
    assert counts.max() <= params.max_iterations + 1


def test_matches_scalar_loop():
    params = ThornParameters(cx=9.984, cy=7.55, max_iterations=4, escape=1e4)
    viewport = Viewport.symmetric()
    width, height = 8, 6
    raster = render_raster(width, height, viewport, params, workers=2)
    xs = viewport.columns(width)
    ys = viewport.rows(height)
    expected = [[reference_count(x, y, params) for x in xs] for y in ys]
    assert raster.counts.tolist() == expected


@pytest.mark.parametrize("workers", [2, 3, 7, 64])
def test_result_does_not_depend_on_workers(workers):
    params = ThornParameters(max_iterations=96)
    viewport = Viewport(-3.0, 3.0, -0.5, 0.5)
    single = render_raster(29, 17, viewport, params, workers=1).counts.copy()
    parallel = render_raster(29, 17, viewport, params, workers=workers).counts
    assert np.array_equal(single, parallel)


def test_byte_storage():
    params = ThornParameters(max_iterations=CountStorage.BYTE.max_iterations)
    raster = render_raster(5, 5, Viewport.symmetric(), params, storage=CountStorage.BYTE, workers=2)
    assert raster.counts.dtype == np.uint8
    assert raster.storage is CountStorage.BYTE
    assert raster.maxval() <= 255


def test_reuses_caller_raster():
    params = ThornParameters(max_iterations=16)
    raster = Raster.allocate(8, 8)
    buffer = raster.buffer
    result = render_raster(4, 3, Viewport.symmetric(), params, raster=raster, workers=2)
    assert result is raster
    assert raster.buffer is buffer
    assert raster.counts.shape == (3, 4)
    fresh = render_raster(4, 3, Viewport.symmetric(), params, workers=1)
    assert np.array_equal(raster.counts, fresh.counts)


def test_failed_render_exposes_no_raster(monkeypatch):
    def broken(zr, zi, params):
        raise RuntimeError("kernel failure")

    monkeypatch.setattr(thorn.renderer, "thorn_counts", broken)
    raster = Raster.allocate(4, 4)
    with pytest.raises(RuntimeError):
        render_raster(4, 4, Viewport.symmetric(), ThornParameters(), raster=raster, workers=2)
    assert (raster.width, raster.height) == (0, 0)


def test_thorn_counts_accepts_any_grid_shape():
    zr = np.array([[0.0, 100.0]])
    zi = np.array([[0.0, 0.0]])
    counts = thorn_counts(zr, zi, ThornParameters(cx=0.0, cy=0.0, max_iterations=9))
    assert counts.tolist() == [[1, 1]]


@pytest.mark.parametrize(
    "height,workers,expected",
    [
        (10, 3, [(0, 4), (4, 7), (7, 10)]),
        (2, 8, [(0, 1), (1, 2)]),
        (5, 1, [(0, 5)]),
        (6, 0, [(0, 6)]),
    ],
)
def test_partition_rows(height, workers, expected):
    assert partition_rows(height, workers) == expected


def test_partition_rows_covers_every_row_once():
    bands = partition_rows(1037, 12)
    rows = [row for start, stop in bands for row in range(start, stop)]
    assert rows == list(range(1037))
