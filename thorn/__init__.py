"""Public API for Thorn fractal rendering utilities."""

from .raster import CountStorage, Raster, RasterAllocationError
from .renderer import ThornParameters, partition_rows, render_raster, thorn_counts
from .pgm import PGMFormatError, PGMImage, PGMWriteError, parse_pgm, pgm_header, read_pgm, write_pgm
from .preview import to_image
from .viewport import SamplingMetadata, Viewport, pixel_to_plane

__all__ = [
    "CountStorage",
    "PGMFormatError",
    "PGMImage",
    "PGMWriteError",
    "Raster",
    "RasterAllocationError",
    "SamplingMetadata",
    "ThornParameters",
    "Viewport",
    "parse_pgm",
    "partition_rows",
    "pgm_header",
    "pixel_to_plane",
    "read_pgm",
    "render_raster",
    "thorn_counts",
    "to_image",
    "write_pgm",
]
