"""Escape-time rendering of the Thorn map."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np
import tensorflow as tf

from .raster import CountStorage, Raster
from .viewport import Viewport

DEFAULT_CX = 9.984
DEFAULT_CY = 7.55
DEFAULT_MAX_ITERATIONS = 1024
DEFAULT_ESCAPE = 1e4

_LANES = 8


@dataclass(frozen=True)
class ThornParameters:
    """Constants of the Thorn recurrence and its stopping rule.

    ``escape`` is compared against the squared radius ``ir**2 + ii**2``.
    """

    cx: float = DEFAULT_CX
    cy: float = DEFAULT_CY
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    escape: float = DEFAULT_ESCAPE


_GRID = tf.TensorSpec(shape=[None, None], dtype=tf.float64)
_SCALAR = tf.TensorSpec(shape=[], dtype=tf.float64)
_COUNT = tf.TensorSpec(shape=[], dtype=tf.int32)


@tf.function
def _thorn_step(ir: tf.Tensor, ii: tf.Tensor, ns: tf.Tensor, active: tf.Tensor, cx: tf.Tensor, cy: tf.Tensor,
                max_iterations: tf.Tensor, escape: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Apply one Thorn step to every trajectory that is still running."""

    # Division by a zero cosine or sine yields inf/nan; a nan radius fails
    # the escape comparison and ends the trajectory.
    ir_new = ir / tf.math.cos(ii) + cx
    ii_new = ii / tf.math.sin(ir) + cy
    ir = tf.where(active, ir_new, ir)
    ii = tf.where(active, ii_new, ii)
    ns = ns + tf.cast(active, tf.int32)
    bounded = (ir * ir + ii * ii) < escape
    active = tf.logical_and(active, tf.logical_and(ns <= max_iterations, bounded))
    return ir, ii, ns, active


@tf.function(input_signature=[_GRID, _GRID, _SCALAR, _SCALAR, _COUNT, _SCALAR])
def _thorn_run(zr: tf.Tensor, zi: tf.Tensor, cx: tf.Tensor, cy: tf.Tensor, max_iterations: tf.Tensor,
               escape: tf.Tensor) -> tf.Tensor:
    """Iterate until every trajectory has escaped or hit the cap.

    The body always runs once before the stopping rule is checked, so the
    returned counts lie in ``[1, max_iterations + 1]``.
    """

    ns = tf.zeros_like(zr, dtype=tf.int32)
    active = tf.ones_like(zr, dtype=tf.bool)

    def cond(ir, ii, ns, active):
        return tf.reduce_any(active)

    def body(ir, ii, ns, active):
        return _thorn_step(ir, ii, ns, active, cx, cy, max_iterations, escape)

    _, _, ns, _ = tf.while_loop(cond, body, (zr, zi, ns, active))
    return ns


def thorn_counts(zr: np.ndarray, zi: np.ndarray, params: ThornParameters) -> np.ndarray:
    """Iteration counts for the starting points ``zr + i*zi`` (2-D arrays)."""

    zr = np.asarray(zr, dtype=np.float64)
    zi = np.asarray(zi, dtype=np.float64)
    if zr.size == 0:
        return np.zeros(zr.shape, dtype=np.int32)
    with tf.device("/CPU:0"):
        ns = _thorn_run(
            tf.convert_to_tensor(zr),
            tf.convert_to_tensor(zi),
            tf.constant(params.cx, dtype=tf.float64),
            tf.constant(params.cy, dtype=tf.float64),
            tf.constant(params.max_iterations, dtype=tf.int32),
            tf.constant(params.escape, dtype=tf.float64),
        )
    return ns.numpy()


def partition_rows(height: int, workers: int) -> list[tuple[int, int]]:
    """Split ``range(height)`` into at most ``workers`` contiguous bands."""

    workers = max(1, min(int(workers), height))
    base, extra = divmod(height, workers)
    bands = []
    start = 0
    for index in range(workers):
        stop = start + base + (1 if index < extra else 0)
        if stop > start:
            bands.append((start, stop))
        start = stop
    return bands


def _padded_columns(columns: np.ndarray) -> np.ndarray:
    # Whole SIMD packets per row keep every sample on the same vectorised
    # cos/sin path no matter where a band starts.
    pad = -columns.size % _LANES
    return np.pad(columns, (0, pad), mode="edge") if pad else columns


def _render_band(counts: np.ndarray, columns: np.ndarray, viewport: Viewport, height: int,
                 band: tuple[int, int], params: ThornParameters) -> None:
    start, stop = band
    rows = viewport.rows(height, start, stop)
    zr, zi = np.meshgrid(_padded_columns(columns), rows)
    band_counts = thorn_counts(zr, zi, params)[:, : columns.size]
    # Each band writes only its own rows of the shared buffer.
    counts[start:stop, :] = band_counts.astype(counts.dtype, copy=False)


def render_raster(
    width: int,
    height: int,
    viewport: Viewport,
    params: ThornParameters,
    *,
    raster: Optional[Raster] = None,
    storage: Optional[CountStorage] = None,
    workers: Optional[int] = None,
) -> Raster:
    """Compute the Thorn iteration counts for a ``width`` x ``height`` grid.

    When ``raster`` is given its storage is reused where possible and the
    same handle is returned, keeping its count width unless ``storage``
    says otherwise. Rows are split into static bands, one per
    worker thread, so the result does not depend on ``workers``.
    """

    if raster is None:
        raster = Raster.allocate(width, height, storage or CountStorage.WIDE)
    else:
        raster.resize(width, height, storage)

    counts = raster.counts
    columns = viewport.columns(width)
    bands = partition_rows(height, workers if workers is not None else (os.cpu_count() or 1))

    if not bands:
        return raster

    try:
        if len(bands) == 1:
            _render_band(counts, columns, viewport, height, bands[0], params)
        else:
            with ThreadPoolExecutor(max_workers=len(bands)) as pool:
                futures = [
                    pool.submit(_render_band, counts, columns, viewport, height, band, params)
                    for band in bands
                ]
                for future in futures:
                    future.result()
    except BaseException:
        raster.discard()
        raise

    return raster
