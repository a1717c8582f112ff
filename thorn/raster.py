"""Reusable storage for iteration-count rasters."""

from __future__ import annotations

import enum

import numpy as np


class RasterAllocationError(MemoryError):
    """Raised when backing storage for a raster cannot be obtained."""


class CountStorage(enum.Enum):
    """Width of a stored iteration count."""

    BYTE = "byte"
    WIDE = "wide"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.uint8) if self is CountStorage.BYTE else np.dtype(np.uint16)

    @property
    def max_count(self) -> int:
        return int(np.iinfo(self.dtype).max)

    @property
    def max_iterations(self) -> int:
        # A capped trajectory stores max_iterations + 1.
        return self.max_count - 1


def _allocate(size: int, dtype: np.dtype) -> np.ndarray:
    try:
        return np.empty(size, dtype=dtype)
    except (MemoryError, ValueError, OverflowError) as exc:
        raise RasterAllocationError(f"cannot allocate {size} counts of {dtype}") from exc


class Raster:
    """Dense row-major grid of iteration counts owned by the caller.

    The handle keeps its backing buffer across :meth:`resize` calls and only
    reallocates when the requested grid no longer fits, so a long-lived
    session can render many sizes without churning memory.
    """

    def __init__(self, buffer: np.ndarray, width: int, height: int, storage: CountStorage):
        self._buffer = buffer
        self._width = width
        self._height = height
        self._storage = storage

    @classmethod
    def allocate(cls, width: int, height: int, storage: CountStorage = CountStorage.WIDE) -> "Raster":
        return cls(_allocate(width * height, storage.dtype), width, height, storage)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def storage(self) -> CountStorage:
        return self._storage

    @property
    def capacity(self) -> int:
        return 0 if self._buffer is None else int(self._buffer.size)

    @property
    def buffer(self) -> np.ndarray | None:
        return self._buffer

    @property
    def counts(self) -> np.ndarray:
        if self._buffer is None:
            raise ValueError("raster storage has been released")
        return self._buffer[: self._width * self._height].reshape(self._height, self._width)

    def resize(self, width: int, height: int, storage: CountStorage | None = None) -> "Raster":
        """Prepare the handle for a ``width`` x ``height`` grid.

        Existing storage is reused when it is large enough and of the same
        count width. On allocation failure the handle is left untouched.
        """

        storage = self._storage if storage is None else storage
        size = width * height
        if self._buffer is None or storage is not self._storage or size > self._buffer.size:
            self._buffer = _allocate(size, storage.dtype)
            self._storage = storage
        self._width = width
        self._height = height
        return self

    def discard(self) -> None:
        self._width = 0
        self._height = 0

    def release(self) -> None:
        self._buffer = None
        self.discard()

    def maxval(self) -> int:
        counts = self.counts
        if counts.size == 0:
            return 0
        return int(counts.max())

    def __repr__(self) -> str:
        return (
            f"Raster(width={self._width}, height={self._height}, "
            f"storage={self._storage.name}, capacity={self.capacity})"
        )
