"""Binary grayscale (P5) encoding of iteration-count rasters.

Pixels wider than a byte are written most significant byte first. By
default the split reproduces the historical ``value // 255`` and
``value & 255`` byte pair that earlier Thorn renders were written with;
``standard_16bit=True`` writes the netpbm ``value >> 8`` split instead.
Only the legacy split is affected for values of ``255 * 256`` and above,
where the high byte no longer fits and the stored value cannot be
recovered.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

import numpy as np

from .raster import Raster

MAGIC = b"P5"
BYTE_MAXVAL = 255

Destination = Union[str, "os.PathLike[str]", BinaryIO]


class PGMWriteError(OSError):
    """The destination could not be opened, written or closed."""


class PGMFormatError(ValueError):
    """The input is not a binary grayscale bitmap this module can decode."""


@dataclass(frozen=True)
class PGMImage:
    """Decoded contents of a P5 file."""

    width: int
    height: int
    maxval: int
    comment: Optional[str]
    counts: np.ndarray


def pgm_header(width: int, height: int, maxval: int, comment: Optional[str] = None) -> bytes:
    if comment is not None and ("\n" in comment or "\r" in comment):
        raise ValueError("PGM comment must be a single line")
    parts = [MAGIC + b"\n"]
    if comment is not None:
        parts.append(b"# " + comment.encode("utf-8") + b"\n")
    parts.append(f"{width} {height}\n".encode("ascii"))
    parts.append(f"{maxval}\n".encode("ascii"))
    return b"".join(parts)


def encode_counts(counts: np.ndarray, maxval: int, *, standard_16bit: bool = False) -> bytes:
    """Encode ``counts`` in row-major order using the width implied by ``maxval``."""

    values = np.ascontiguousarray(counts).astype(np.uint32, copy=False).ravel()
    if maxval <= BYTE_MAXVAL:
        return (values & 0xFF).astype(np.uint8).tobytes()

    if standard_16bit:
        msb = (values >> 8) & 0xFF
    else:
        msb = (values // 255) & 0xFF
    lsb = values & 0xFF
    return np.stack((msb, lsb), axis=-1).astype(np.uint8).tobytes()


def write_pgm(
    destination: Destination,
    raster: Raster,
    comment: Optional[str] = None,
    *,
    standard_16bit: bool = False,
) -> None:
    """Write ``raster`` as a P5 bitmap.

    ``maxval`` is found with a full scan before anything is written because
    the header has to declare it. File objects are flushed but not closed.
    """

    counts = raster.counts
    maxval = raster.maxval()
    header = pgm_header(raster.width, raster.height, maxval, comment)
    body = encode_counts(counts, maxval, standard_16bit=standard_16bit)

    if hasattr(destination, "write"):
        try:
            destination.write(header)
            destination.write(body)
            destination.flush()
        except OSError as exc:
            raise PGMWriteError(f"could not write PGM data: {exc}") from exc
        return

    path = os.fspath(destination)
    try:
        with open(path, "wb") as handle:
            handle.write(header)
            handle.write(body)
            handle.flush()
    except OSError as exc:
        raise PGMWriteError(f"could not write PGM file {path}: {exc}") from exc


def _decode_wide(msb: np.ndarray, lsb: np.ndarray, standard_16bit: bool) -> np.ndarray:
    msb = msb.astype(np.int64)
    lsb = lsb.astype(np.int64)
    if standard_16bit:
        return (msb << 8) | lsb
    base = msb * 255
    return base + ((lsb - base) & 0xFF)


def _next_token(data: bytes, pos: int, comments: list) -> tuple[bytes, int]:
    size = len(data)
    while pos < size:
        char = data[pos:pos + 1]
        if char == b"#":
            end = data.find(b"\n", pos)
            if end < 0:
                raise PGMFormatError("unterminated comment in PGM header")
            text = data[pos + 1:end].decode("utf-8", errors="replace")
            comments.append(text[1:] if text.startswith(" ") else text)
            pos = end + 1
        elif char.isspace():
            pos += 1
        else:
            break
    start = pos
    while pos < size and not data[pos:pos + 1].isspace() and data[pos:pos + 1] != b"#":
        pos += 1
    if start == pos:
        raise PGMFormatError("truncated PGM header")
    return data[start:pos], pos


def parse_pgm(data: bytes, *, standard_16bit: bool = False) -> PGMImage:
    comments: list = []
    magic, pos = _next_token(data, 0, comments)
    if magic != MAGIC:
        raise PGMFormatError(f"unsupported magic number {magic!r}")
    fields = []
    for name in ("width", "height", "maxval"):
        token, pos = _next_token(data, pos, comments)
        try:
            fields.append(int(token))
        except ValueError as exc:
            raise PGMFormatError(f"invalid {name} {token!r}") from exc
    width, height, maxval = fields
    if width <= 0 or height <= 0 or not 0 < maxval <= 0xFFFF:
        raise PGMFormatError(f"invalid PGM dimensions {width}x{height} maxval {maxval}")

    # Exactly one whitespace byte separates the header from the pixels.
    depth = 1 if maxval <= BYTE_MAXVAL else 2
    expected = width * height * depth
    available = len(data) - (pos + 1)
    if available < expected:
        raise PGMFormatError(f"expected {expected} bytes of pixel data, found {max(available, 0)}")
    pixels = np.frombuffer(data, dtype=np.uint8, count=expected, offset=pos + 1)

    if depth == 1:
        counts = pixels.astype(np.int64)
    else:
        pairs = pixels.reshape(-1, 2)
        counts = _decode_wide(pairs[:, 0], pairs[:, 1], standard_16bit)

    return PGMImage(
        width=width,
        height=height,
        maxval=maxval,
        comment=comments[0] if comments else None,
        counts=counts.reshape(height, width),
    )


def read_pgm(source: Destination, *, standard_16bit: bool = False) -> PGMImage:
    """Decode a P5 file written by :func:`write_pgm`."""

    if hasattr(source, "read"):
        return parse_pgm(source.read(), standard_16bit=standard_16bit)
    with open(os.fspath(source), "rb") as handle:
        return parse_pgm(handle.read(), standard_16bit=standard_16bit)
