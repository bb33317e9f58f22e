'''BMC: Block Matching Correlation frame interpolation.

Synthesizes the frames between anchor frames i and i+stride:
- phase correlation over global and local region grids (two candidates per region)
- 7-candidate SAD block matching with spatial and temporal candidates
- bidirectional motion compensation (average of reference and motion-shifted target)
'''

import itertools
import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

import main
import parser
from config import BMCConfig, BLOCK_SIZE, DEFAULT_STRIDE
from motion_estimation import estimate_region_motion
from block_matching import MotionState, block_matching
from motion_compensation import bidirectional_motion_compensation
from regions import partition_blocks
import image_quality
import video_io

# =============================================================================
# Arguments
# =============================================================================

DEFAULT_OUTPUT = "interpolated.mp4"

parser.parser.description = __doc__

parser.parser_interpolate.add_argument("-i", "--input", type=str, required=True,
    help="Input video")
parser.parser_interpolate.add_argument("-o", "--output", type=str,
    help="Output video", default=DEFAULT_OUTPUT)
parser.parser_interpolate.add_argument("-N", "--number_of_frames", type=int,
    help="Number of frames to process (default: all)", default=None)
parser.parser_interpolate.add_argument("-s", "--stride", type=int,
    help="Distance between anchor frames (power of two)", default=DEFAULT_STRIDE)
parser.parser_interpolate.add_argument("-b", "--block_size", type=int,
    help="Block size for block matching", default=BLOCK_SIZE)
parser.parser_interpolate.add_argument("--fps", type=float,
    help="Output frame rate (default: input frame rate)", default=None)
parser.parser_interpolate.add_argument("--codec", type=str,
    help="Output video codec", default=video_io.DEFAULT_CODEC)
parser.parser_interpolate.add_argument("--frames_prefix", type=str,
    help="If given, the synthesized frames are also saved as <prefix>_XXXX.png", default=None)
parser.parser_interpolate.add_argument("--timing_file", type=str,
    help="Append the processing time of each frame pair to this file", default=None)
parser.parser_interpolate.add_argument("--quality_file", type=str,
    help="Evaluate the synthesized frames against the skipped originals and append the report here",
    default=None)
parser.parser_interpolate.add_argument("--seed", type=int,
    help="Seed of the random jitter candidate", default=None)
parser.parser_interpolate.add_argument("--workers", type=int,
    help="Threads used for the region phase correlations", default=1)

parser.parser_evaluate.add_argument("-i", "--input", type=str, required=True,
    help="Interpolated video")
parser.parser_evaluate.add_argument("-r", "--original", type=str, required=True,
    help="Original video")
parser.parser_evaluate.add_argument("-s", "--stride", type=int,
    help="Distance between anchor frames used for the interpolation", default=DEFAULT_STRIDE)
parser.parser_evaluate.add_argument("--quality_file", type=str,
    help="Report file", default="image_quality.txt")

# =============================================================================
# Frame scheduling
# =============================================================================

def check_stride(stride):
    if stride < 2 or stride & (stride - 1):
        raise ValueError(f"The stride must be a power of two >= 2, got {stride}")


def synthesized_indices(n_frames: int, stride: int = DEFAULT_STRIDE) -> List[int]:
    """Indices of the frames that are replaced by interpolated ones.

    Anchors are 0, stride, 2*stride, ...; every frame strictly between two
    anchors is synthesized. Frames after the last anchor are kept.
    """
    check_stride(stride)
    last_anchor = ((n_frames - 1) // stride) * stride if n_frames > 0 else 0
    return [idx for idx in range(last_anchor) if idx % stride]


def write_execution_time(fn, index, seconds):
    '''Append the processing time of one pair to `fn`.'''
    with open(fn, 'a') as f:
        f.write(f"Pair {index}\t{seconds * 1000:.0f} ms\n")

# =============================================================================
# Pipeline
# =============================================================================

class BlockMatchingCorrelation:
    """Frame interpolation pipeline.

    The block motion fields that connect consecutive frame pairs live in a
    MotionState that is passed in and returned by every step.
    """

    def __init__(self, config: Optional[BMCConfig] = None,
                 rng: Optional[np.random.Generator] = None, workers: int = 1):
        self.config = config if config is not None else BMCConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.workers = workers

    def initial_state(self, frame_shape) -> MotionState:
        height, width = frame_shape[:2]
        block_grid = self.config.block_grid.resolve(width, height)
        return MotionState.zeros(block_grid.shape)

    def interpolate_pair(self, prev: np.ndarray, curr: np.ndarray,
                         state: MotionState) -> Tuple[np.ndarray, np.ndarray, MotionState]:
        """Frame halfway between `prev` and `curr`.

        Returns the interpolated frame, the resolved block motion field and
        the state for the next pair.
        """
        if prev.shape != curr.shape:
            raise ValueError(f"Frame shapes differ: {prev.shape} and {curr.shape}")
        height, width = prev.shape[:2]
        config = self.config.resolve(width, height)

        global_motion, local_motion = estimate_region_motion(prev, curr, config, self.workers)
        field, next_state = block_matching(prev, curr, global_motion, local_motion,
                                           state, config, self.rng)
        blocks = partition_blocks(prev, config)
        interpolated = bidirectional_motion_compensation(prev, curr, blocks, field)
        return interpolated, field, next_state

    def _bisect(self, left, right, output, state, on_pair, counter):
        '''Synthesize output[left+1:right], midpoint first.'''
        if right - left < 2:
            return state
        mid = (left + right) // 2
        start = time.perf_counter()
        output[mid], _, state = self.interpolate_pair(output[left], output[right], state)
        elapsed = time.perf_counter() - start
        logging.info(f"Frame {mid} interpolated from ({left}, {right}) in {elapsed:.3f} s")
        index = next(counter)
        if on_pair is not None:
            on_pair(index, elapsed)
        state = self._bisect(left, mid, output, state, on_pair, counter)
        state = self._bisect(mid, right, output, state, on_pair, counter)
        return state

    def interpolate_sequence(self, frames: Sequence[np.ndarray],
                             on_pair: Optional[Callable[[int, float], None]] = None):
        """Replace every frame between two anchors by an interpolated one.

        Returns the output sequence (same length as `frames`) and the list of
        indices that were synthesized.
        """
        stride = self.config.stride
        check_stride(stride)
        if len(frames) == 0:
            return [], []
        shape = frames[0].shape
        for idx, frame in enumerate(frames):
            if frame.shape != shape:
                raise ValueError(f"Frame {idx} has shape {frame.shape}, expected {shape}")

        output = list(frames)
        synthesized = synthesized_indices(len(frames), stride)
        state = self.initial_state(shape)
        counter = itertools.count()
        for left in range(0, len(frames) - stride, stride):
            for idx in range(left + 1, left + stride):
                output[idx] = None
            state = self._bisect(left, left + stride, output, state, on_pair, counter)
        return output, synthesized

# =============================================================================
# CoDec Class
# =============================================================================

class CoDec:
    """Command line facade of the BMC pipeline."""

    def __init__(self, args):
        logging.debug("trace")
        self.args = args
        self.N_pairs = 0
        self.total_time = 0.0
        seed = getattr(args, 'seed', None)
        self.rng = np.random.default_rng(seed)
        self.workers = int(getattr(args, 'workers', 1))

    def bye(self):
        logging.debug("trace")
        if self.N_pairs:
            logging.info(f"Interpolated {self.N_pairs} frames in {self.total_time:.2f} s "
                         f"({self.total_time / self.N_pairs:.3f} s/frame)")

    def _on_pair(self, index, seconds):
        self.N_pairs += 1
        self.total_time += seconds
        timing_file = getattr(self.args, 'timing_file', None)
        if timing_file:
            write_execution_time(timing_file, index, seconds)

    def interpolate(self):
        '''Read the input video, synthesize the skipped frames and write the output video.'''
        logging.debug("trace")
        frames, input_fps = video_io.read_frames(self.args.input, getattr(self.args, 'number_of_frames', None))
        height, width = frames[0].shape[:2]
        config = BMCConfig.from_args(self.args, width, height)
        logging.info(f"Video: {width}x{height}, {len(frames)} frames, stride {config.stride}")

        bmc = BlockMatchingCorrelation(config, self.rng, self.workers)
        output, synthesized = bmc.interpolate_sequence(frames, on_pair=self._on_pair)

        fps = getattr(self.args, 'fps', None) or input_fps
        video_io.write_video(output, self.args.output, fps, codec=getattr(self.args, 'codec', video_io.DEFAULT_CODEC))

        frames_prefix = getattr(self.args, 'frames_prefix', None)
        if frames_prefix:
            video_io.write_frames(output, frames_prefix, synthesized)

        quality_file = getattr(self.args, 'quality_file', None)
        if quality_file:
            try:
                image_quality.calc_quality([output[i] for i in synthesized],
                                           [frames[i] for i in synthesized], quality_file)
            except ValueError as e:
                logging.error(f"Quality evaluation skipped: {e}")
        return len(synthesized)

    def evaluate(self):
        '''Compare the synthesized frames of an interpolated video with the original video.'''
        logging.debug("trace")
        interpolated, _ = video_io.read_frames(self.args.input)
        originals, _ = video_io.read_frames(self.args.original)
        if len(interpolated) != len(originals):
            raise ValueError(
                f"The interpolated video has {len(interpolated)} frames, the original {len(originals)}")
        indices = synthesized_indices(len(originals), getattr(self.args, 'stride', DEFAULT_STRIDE))
        results = image_quality.calc_quality([interpolated[i] for i in indices],
                                             [originals[i] for i in indices],
                                             getattr(self.args, 'quality_file', None))
        if results:
            mean_psnr = np.mean([psnr for _, psnr, _ in results if np.isfinite(psnr)] or [np.inf])
            logging.info(f"Mean PSNR over {len(results)} frames: {mean_psnr:.4f} dB")
        return results


def cli(argv=None):
    return main.main(parser.parser, logging, CoDec, argv)

if __name__ == "__main__":
    raise SystemExit(cli())
