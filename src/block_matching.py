'''Block matching: one motion vector per block, chosen among seven candidates by SAD.'''

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from config import BMCConfig
from motion_estimation import RegionMotion, to_luma
from regions import enclosing_cell, get_padded_roi, partition_blocks, round_offset

NUM_CANDIDATES = 7

# =============================================================================
# Motion state
# =============================================================================

@dataclass
class MotionState:
    """Block motion fields carried from one frame pair to the next.

    `previous` is the field resolved for the previous pair (source of the
    temporal median candidate), `current` the field being resolved.
    """
    previous: np.ndarray
    current: np.ndarray

    @classmethod
    def zeros(cls, shape) -> "MotionState":
        rows, cols = shape
        return cls(np.zeros((rows, cols, 2), dtype=np.float32),
                   np.zeros((rows, cols, 2), dtype=np.float32))

    def advance(self, resolved: np.ndarray) -> "MotionState":
        """State for the next pair: `resolved` becomes the previous field."""
        return MotionState(resolved, np.zeros_like(resolved))

# =============================================================================
# Costs and candidates
# =============================================================================

def calc_sad(block: np.ndarray, target: np.ndarray, x: int, y: int, dx: float, dy: float) -> float:
    """Sum of Absolute Differences between `block` and the same sized region
    of `target` at (x + dx, y + dy), rounded to whole pixels. Parts of the
    region outside the target are border replicated."""
    h, w = block.shape[:2]
    region = get_padded_roi(target, x + round_offset(dx), y + round_offset(dy), w, h)
    return float(np.sum(np.abs(block.astype(np.float32) - region.astype(np.float32))))


def median_neighbor(rowpos: int, colpos: int, prev_field: np.ndarray) -> np.ndarray:
    """Componentwise median of up to three neighbours of (rowpos, colpos) in `prev_field`.

    * top-left corner: right, below, below-right
    * left edge: above, above-right, right
    * top row: left, below-left, below
    * elsewhere: above-left, above, left

    Neighbours that fall outside the field are ignored.
    """
    if rowpos == 0 and colpos == 0:
        offsets = [(0, 1), (1, 0), (1, 1)]
    elif colpos == 0:
        offsets = [(-1, 0), (-1, 1), (0, 1)]
    elif rowpos == 0:
        offsets = [(0, -1), (1, -1), (1, 0)]
    else:
        offsets = [(-1, -1), (-1, 0), (0, -1)]

    rows, cols = prev_field.shape[:2]
    neighbors = [prev_field[rowpos + di, colpos + dj] for di, dj in offsets
                 if 0 <= rowpos + di < rows and 0 <= colpos + dj < cols]
    if not neighbors:
        return np.zeros(2, dtype=np.float32)
    return np.median(np.array(neighbors, dtype=np.float32), axis=0).astype(np.float32)


def candidate_vectors(i: int, j: int, global_motion: RegionMotion,
                      local_motion: RegionMotion, current: np.ndarray,
                      previous: np.ndarray, rng: np.random.Generator,
                      config: BMCConfig) -> List[np.ndarray]:
    """The seven candidates of block (i, j), in selection priority order."""
    gi, gj = enclosing_cell(i, j, config.block_grid, config.global_grid)
    li, lj = enclosing_cell(i, j, config.block_grid, config.local_grid)

    left = current[i, j - 1] if j > 0 else np.zeros(2, dtype=np.float32)
    return [
        global_motion.candidates[gi, gj, 0],
        global_motion.candidates[gi, gj, 1],
        local_motion.candidates[li, lj, 0],
        local_motion.candidates[li, lj, 1],
        left,
        left + rng.random(2),
        median_neighbor(i, j, previous),
    ]


def select_candidate(block, target, x, y, candidates) -> int:
    """Index of the candidate with the smallest SAD (the first one on ties)."""
    best_idx = 0
    best_sad = float('inf')
    for idx, (dx, dy) in enumerate(candidates):
        sad = calc_sad(block, target, x, y, dx, dy)
        if sad < best_sad:
            best_sad = sad
            best_idx = idx
    return best_idx

# =============================================================================
# Block matching
# =============================================================================

def block_matching(reference, target, global_motion: RegionMotion, local_motion: RegionMotion,
                   state: MotionState, config: BMCConfig,
                   rng: Optional[np.random.Generator] = None):
    """Resolve the motion vector of every block of `reference`.

    Blocks are visited in row-major order because the left neighbour's
    freshly resolved vector is a candidate. `state` is not modified; the
    resolved field is returned together with the state for the next pair.
    """
    if rng is None:
        rng = np.random.default_rng()
    ref_luma = to_luma(reference).astype(np.float32)
    tgt_luma = to_luma(target).astype(np.float32)
    config = config.resolve(ref_luma.shape[1], ref_luma.shape[0])
    blocks = partition_blocks(ref_luma, config)

    current = state.current.copy()
    if current.shape[:2] != (blocks.rows, blocks.cols):
        raise ValueError(
            f"Motion field shape {current.shape[:2]} does not match the block grid "
            f"({blocks.rows}, {blocks.cols})")

    chosen = np.zeros(NUM_CANDIDATES, dtype=np.int64)
    for i in range(blocks.rows):
        for j in range(blocks.cols):
            region = blocks.cell(i, j)
            block = region.slice(ref_luma)
            candidates = candidate_vectors(i, j, global_motion, local_motion,
                                           current, state.previous, rng, config)
            best = select_candidate(block, tgt_luma, region.x, region.y, candidates)
            current[i, j] = candidates[best]
            chosen[best] += 1

    logging.debug(f"Winning candidate histogram: {chosen.tolist()}")
    return current, state.advance(current)
