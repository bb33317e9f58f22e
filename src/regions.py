'''Partitioning of frames into global, local and block grids.'''

import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from config import BMCConfig, GridConfig

# =============================================================================
# Regions and grids
# =============================================================================

@dataclass(frozen=True)
class Region:
    """Rectangle inside a frame (x runs along the columns, y along the rows)."""
    x: int
    y: int
    width: int
    height: int

    def slice(self, frame: np.ndarray) -> np.ndarray:
        """View of `frame` covered by this region."""
        return frame[self.y:self.y + self.height, self.x:self.x + self.width]


@dataclass
class Grid:
    """rows x cols regions, stored in row-major order."""
    rows: int
    cols: int
    regions: List[Region]

    def cell(self, i: int, j: int) -> Region:
        return self.regions[i * self.cols + j]

    def __len__(self):
        return len(self.regions)

    def __iter__(self):
        return iter(self.regions)


def _anchors(extent, cell, count, axis):
    '''Cell origins along one axis. The trailing cell, and any cell that
    would overflow the frame, is anchored flush against the far edge.'''
    if cell <= 0 or count <= 0:
        raise ValueError(f"Invalid grid along {axis}: cell size {cell}, count {count}")
    if cell > extent:
        raise ValueError(f"Cell size {cell} exceeds the frame {axis} ({extent})")
    if cell * count < extent:
        raise ValueError(
            f"{count} cells of {cell} pixels cannot cover a frame {axis} of {extent}")
    last = extent - cell
    origins = [min(k * cell, last) for k in range(count)]
    origins[-1] = last
    return origins


def partition(frame: np.ndarray, grid: GridConfig) -> Grid:
    """Tile `frame` with `grid.rows` x `grid.cols` cells of the configured size."""
    height, width = frame.shape[:2]
    grid = grid.resolve(width, height)
    xs = _anchors(width, grid.cell_width, grid.cols, "width")
    ys = _anchors(height, grid.cell_height, grid.rows, "height")
    regions = [Region(x, y, grid.cell_width, grid.cell_height) for y in ys for x in xs]
    return Grid(grid.rows, grid.cols, regions)


def partition_global(frame, config: BMCConfig) -> Grid:
    return partition(frame, config.global_grid)


def partition_local(frame, config: BMCConfig) -> Grid:
    return partition(frame, config.local_grid)


def partition_blocks(frame, config: BMCConfig) -> Grid:
    return partition(frame, config.block_grid)

# =============================================================================
# Index mapping and padded fetches
# =============================================================================

def enclosing_cell(i: int, j: int, block_grid: GridConfig, region_grid: GridConfig) -> Tuple[int, int]:
    """Row and column of the region cell that encloses block (i, j).

    The block index is divided by how many blocks fit in a region cell and
    clamped to the last row/column of the region grid.
    """
    ratio_y = max(1, region_grid.cell_height // block_grid.cell_height)
    ratio_x = max(1, region_grid.cell_width // block_grid.cell_width)
    row = min(i // ratio_y, region_grid.rows - 1)
    col = min(j // ratio_x, region_grid.cols - 1)
    return row, col


def round_offset(v: float) -> int:
    """Nearest integer, halves rounded away from zero."""
    return int(math.copysign(math.floor(abs(v) + 0.5), v))


def get_padded_roi(frame: np.ndarray, x: int, y: int, width: int, height: int) -> np.ndarray:
    """Region of `frame` at (x, y), replicating the border for the part outside the frame."""
    h, w = frame.shape[:2]
    if 0 <= x and x + width <= w and 0 <= y and y + height <= h:
        return frame[y:y + height, x:x + width]
    rows = np.clip(np.arange(y, y + height), 0, h - 1)
    cols = np.clip(np.arange(x, x + width), 0, w - 1)
    return frame[np.ix_(rows, cols)]
