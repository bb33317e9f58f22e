'''Hierarchical motion estimation: phase correlation over the global and local grids.'''

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
import cv2

from config import BMCConfig
from phase_correlation import phase_correlate
from regions import Grid, partition_global, partition_local

# =============================================================================
# Region motion
# =============================================================================

@dataclass
class RegionMotion:
    """Two candidate motion vectors per grid cell.

    candidates[i, j] is [[dx1, dy1], [dx2, dy2]] (primary and secondary peak)
    in frame pixels, responses[i, j] the normalised primary response.
    """
    grid: Grid
    candidates: np.ndarray
    responses: np.ndarray

    @classmethod
    def zeros(cls, grid: Grid) -> "RegionMotion":
        return cls(grid,
                   np.zeros((grid.rows, grid.cols, 2, 2), dtype=np.float32),
                   np.zeros((grid.rows, grid.cols), dtype=np.float32))


def to_luma(frame: np.ndarray) -> np.ndarray:
    """Luma plane of an RGB frame (single channel frames are returned as they are)."""
    if frame.ndim == 2:
        return frame
    if frame.shape[2] == 1:
        return frame[..., 0]
    return cv2.cvtColor(frame, cv2.COLOR_RGB2GRAY)


def _resize(region, standard_size):
    region = np.ascontiguousarray(region, dtype=np.float32)
    return cv2.resize(region, standard_size, interpolation=cv2.INTER_AREA)


def _correlate_region(ref_region, tgt_region, standard_size, skip_identical):
    '''Candidates of one region, in frame pixels.'''
    ref_std = _resize(ref_region, standard_size)
    tgt_std = _resize(tgt_region, standard_size)
    if skip_identical and np.array_equal(ref_std, tgt_std):
        return np.zeros((2, 2), dtype=np.float32), 1.0
    candidates, response = phase_correlate(ref_std, tgt_std)
    # Back from standard size to frame pixels
    scale = np.array([ref_region.shape[1] / standard_size[0],
                      ref_region.shape[0] / standard_size[1]])
    return (candidates * scale).astype(np.float32), response


def estimate_grid_motion(reference, target, grid: Grid, standard_size,
                         skip_identical=False, workers=1) -> RegionMotion:
    """Phase correlate every cell of `grid` between two luma frames."""
    motion = RegionMotion.zeros(grid)
    tasks = [(region.slice(reference), region.slice(target), standard_size, skip_identical)
             for region in grid]

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            results = list(ex.map(lambda t: _correlate_region(*t), tasks))
    else:
        results = [_correlate_region(*t) for t in tasks]

    for idx, (candidates, response) in enumerate(results):
        ri, ci = divmod(idx, grid.cols)
        motion.candidates[ri, ci] = candidates
        motion.responses[ri, ci] = response
    return motion


def estimate_region_motion(reference, target, config: BMCConfig, workers=1):
    """Global and local region motion between two frames.

    Frames are reduced to luma. Local cells whose resized regions are
    identical are not correlated and get two zero vectors.
    """
    ref_luma = to_luma(reference)
    tgt_luma = to_luma(target)

    global_grid = partition_global(ref_luma, config)
    local_grid = partition_local(ref_luma, config)

    global_motion = estimate_grid_motion(ref_luma, tgt_luma, global_grid,
                                         config.standard_size, workers=workers)
    local_motion = estimate_grid_motion(ref_luma, tgt_luma, local_grid,
                                        config.standard_size, skip_identical=True,
                                        workers=workers)
    logging.debug(f"Global primary candidates:\n{global_motion.candidates[:, :, 0]}")
    return global_motion, local_motion
