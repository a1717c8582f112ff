import sys
from pathlib import Path

import pytest

# Add repo root to path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from thorn import CountStorage, Raster


@pytest.fixture
def make_raster():
    """Build a raster holding the given row-major counts."""

    def build(rows, storage=CountStorage.WIDE):
        height = len(rows)
        width = len(rows[0])
        raster = Raster.allocate(width, height, storage)
        raster.counts[:, :] = rows
        return raster

    return build
