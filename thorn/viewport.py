"""Mapping between the pixel grid and the sampled region of the plane."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class SamplingMetadata:
    """Metadata describing the sampling grid for a rendered raster."""

    x_min: float
    y_min: float
    x_step: float
    y_step: float
    width: int
    height: int


@dataclass(frozen=True)
class Viewport:
    """Rectangular window of the plane sampled onto the pixel grid.

    Bounds are expected to satisfy ``x_min < x_max`` and ``y_min < y_max``.
    Nothing here checks that; callers own the validation.
    """

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @classmethod
    def symmetric(cls, radius: float = math.pi) -> "Viewport":
        return cls(-radius, radius, -radius, radius)

    @classmethod
    def from_center(cls, x_center: float, y_center: float, x_width: float, y_width: float) -> "Viewport":
        x_center = np.float64(x_center)
        y_center = np.float64(y_center)
        half_x = np.float64(x_width) / 2.0
        half_y = np.float64(y_width) / 2.0
        return cls(
            x_min=float(x_center - half_x),
            x_max=float(x_center + half_x),
            y_min=float(y_center - half_y),
            y_max=float(y_center + half_y),
        )

    def columns(self, width: int) -> np.ndarray:
        """Sample x coordinates, ``x_min + j*(x_max - x_min)/width``."""

        return _samples(self.x_min, self.x_max, 0, width, width)

    def rows(self, height: int, start: int = 0, stop: int | None = None) -> np.ndarray:
        """Sample y coordinates for rows ``start`` up to ``stop`` of ``height``."""

        stop = height if stop is None else stop
        return _samples(self.y_min, self.y_max, start, stop, height)

    def metadata(self, width: int, height: int) -> SamplingMetadata:
        x_min = np.float64(self.x_min)
        y_min = np.float64(self.y_min)
        return SamplingMetadata(
            x_min=float(x_min),
            y_min=float(y_min),
            x_step=float((np.float64(self.x_max) - x_min) / width),
            y_step=float((np.float64(self.y_max) - y_min) / height),
            width=int(width),
            height=int(height),
        )


def _samples(low: float, high: float, start: int, stop: int, count: int) -> np.ndarray:
    # Same operation order as the per-cell formula so every partition agrees.
    index = np.arange(start, stop, dtype=np.float64)
    return np.float64(low) + index * (np.float64(high) - np.float64(low)) / np.float64(count)


def pixel_to_plane(viewport: Viewport, width: int, height: int, row: int, col: int) -> tuple[np.float64, np.float64]:
    """Return the plane coordinate sampled for cell ``(row, col)``."""

    x = _samples(viewport.x_min, viewport.x_max, col, col + 1, width)[0]
    y = _samples(viewport.y_min, viewport.y_max, row, row + 1, height)[0]
    return np.float64(x), np.float64(y)
