'''Bidirectional motion compensation: builds the interpolated frame.'''

import numpy as np
import cv2

from regions import Grid, get_padded_roi, round_offset


def bidirectional_motion_compensation(reference: np.ndarray, target: np.ndarray,
                                      blocks: Grid, field: np.ndarray) -> np.ndarray:
    """Average every block of `reference` with its motion-shifted match in `target`.

    `blocks` is the block grid of the reference frame and `field` holds one
    (dx, dy) per block. Target regions falling outside the frame are border
    replicated. The result has the shape and type of `reference`.
    """
    h, w = reference.shape[:2]
    interpolated = np.zeros_like(reference)

    for i in range(blocks.rows):
        for j in range(blocks.cols):
            region = blocks.cell(i, j)
            dx, dy = field[i, j]
            prev_block = np.ascontiguousarray(region.slice(reference))
            curr_block = np.ascontiguousarray(get_padded_roi(
                target, region.x + round_offset(dx), region.y + round_offset(dy),
                region.width, region.height))
            blended = cv2.addWeighted(prev_block, 0.5, curr_block, 0.5, 0)
            if blended.ndim < prev_block.ndim:
                blended = blended.reshape(prev_block.shape)

            # Clip any overshoot past the frame
            bh = min(region.height, h - region.y)
            bw = min(region.width, w - region.x)
            interpolated[region.y:region.y + bh, region.x:region.x + bw] = blended[:bh, :bw]

    return interpolated
