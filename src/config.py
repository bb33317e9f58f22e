'''Constants and grid configuration of the Block Matching Correlation (BMC) algorithm.'''

import math
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

# =============================================================================
# Constants (1920x1080 defaults)
# =============================================================================

FRAME_WIDTH = 1920
FRAME_HEIGHT = 1080

# Global regions
GR_WIDTH = 1024
GR_HEIGHT = 512
NUM_GR_X = 2
NUM_GR_Y = 2
# Two rows of GR_HEIGHT lines cannot cover FRAME_HEIGHT; the default cells are
# stretched so NUM_GR_Y rows reach the bottom edge (540 lines)
GR_COVER_HEIGHT = max(GR_HEIGHT, math.ceil(FRAME_HEIGHT / NUM_GR_Y))

# Local regions
LR_WIDTH = 256
LR_HEIGHT = 128
NUM_LR_X = 8
NUM_LR_Y = 9

# Blocks
BLOCK_SIZE = 32
NUM_BLOCKS_X = FRAME_WIDTH // BLOCK_SIZE   # 60
NUM_BLOCKS_Y = 34                          # 1080/32 = 33.75

# Every global and local region is resized to this size before correlation
STANDARD_REGION_WIDTH = 128
STANDARD_REGION_HEIGHT = 64

# Frames i and i+STRIDE are used to reconstruct the frames in between
DEFAULT_STRIDE = 2

# Weighted centroid neighbourhood used by the phase correlator
CENTROID_SIZE = (5, 5)

# =============================================================================
# Grid configuration
# =============================================================================

@dataclass
class GridConfig:
    """Cell size and cell counts of one partition scale.

    Counts left as None are derived from the frame size when the grid is
    bound with `resolve`.
    """
    cell_width: int
    cell_height: int
    cols: Optional[int] = None
    rows: Optional[int] = None

    def resolve(self, width: int, height: int) -> "GridConfig":
        """Return a copy with the cell counts filled in for a frame of the given size."""
        cols = self.cols if self.cols is not None else math.ceil(width / self.cell_width)
        rows = self.rows if self.rows is not None else math.ceil(height / self.cell_height)
        return GridConfig(self.cell_width, self.cell_height, cols, rows)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)


@dataclass
class BMCConfig:
    """Configuration of a BMC run."""
    global_grid: GridConfig = field(
        default_factory=lambda: GridConfig(GR_WIDTH, GR_COVER_HEIGHT, NUM_GR_X, NUM_GR_Y))
    local_grid: GridConfig = field(
        default_factory=lambda: GridConfig(LR_WIDTH, LR_HEIGHT, NUM_LR_X, NUM_LR_Y))
    block_grid: GridConfig = field(
        default_factory=lambda: GridConfig(BLOCK_SIZE, BLOCK_SIZE, NUM_BLOCKS_X, NUM_BLOCKS_Y))
    standard_size: Tuple[int, int] = (STANDARD_REGION_WIDTH, STANDARD_REGION_HEIGHT)
    stride: int = DEFAULT_STRIDE

    def resolve(self, width: int, height: int) -> "BMCConfig":
        """Bind the grids to a frame size (fills in missing cell counts)."""
        return BMCConfig(
            global_grid=self.global_grid.resolve(width, height),
            local_grid=self.local_grid.resolve(width, height),
            block_grid=self.block_grid.resolve(width, height),
            standard_size=self.standard_size,
            stride=self.stride)

    @classmethod
    def for_frame(cls, width, height, block_size=BLOCK_SIZE, stride=DEFAULT_STRIDE):
        """Configuration for an arbitrary frame size.

        The 1920x1080 constants are used verbatim when they fit; otherwise
        the cell sizes are clamped to the frame and the counts are derived
        so the grids still cover every pixel.
        """
        if (width, height) == (FRAME_WIDTH, FRAME_HEIGHT) and block_size == BLOCK_SIZE:
            return cls(stride=stride).resolve(width, height)
        gw, gh = min(GR_WIDTH, width), min(GR_COVER_HEIGHT, height)
        lw, lh = min(LR_WIDTH, width), min(LR_HEIGHT, height)
        bs_x, bs_y = min(block_size, width), min(block_size, height)
        config = cls(
            global_grid=GridConfig(gw, gh),
            local_grid=GridConfig(lw, lh),
            block_grid=GridConfig(bs_x, bs_y),
            standard_size=(min(STANDARD_REGION_WIDTH, lw), min(STANDARD_REGION_HEIGHT, lh)),
            stride=stride)
        logging.debug(f"Derived BMC configuration for {width}x{height}: {config}")
        return config.resolve(width, height)

    @classmethod
    def from_args(cls, args, width, height):
        """Build a configuration from parsed command line arguments."""
        block_size = int(getattr(args, 'block_size', BLOCK_SIZE))
        stride = int(getattr(args, 'stride', DEFAULT_STRIDE))
        return cls.for_frame(width, height, block_size=block_size, stride=stride)
