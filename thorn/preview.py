"""8-bit previews of iteration-count rasters."""

from __future__ import annotations

import numpy as np
import PIL.Image

from .raster import Raster


def to_image(raster: Raster) -> PIL.Image.Image:
    """Scale counts linearly by ``maxval`` into an ``L`` mode image."""

    counts = raster.counts.astype(np.float64)
    maxval = raster.maxval()
    if maxval > 0:
        v = counts / np.float64(maxval)
    else:
        v = np.zeros_like(counts)
    mono = np.uint8(np.round(np.clip(v, 0.0, 1.0) * 255))
    return PIL.Image.fromarray(mono)
