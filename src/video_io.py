'''Video decoding and encoding (PyAV) and PNG dumps of frames (Pillow).'''

import os
import logging
from fractions import Fraction
from typing import List, Optional, Sequence, Tuple

import numpy as np
import av  # pip install av
from PIL import Image  # pip install pillow

DEFAULT_FPS = 30
DEFAULT_CODEC = "libx264"
DEFAULT_PIX_FMT = "yuv420p"


def _open(fn):
    try:
        return av.open(fn)
    except (av.error.FFmpegError, OSError) as e:
        logging.error(f"Cannot open video file {fn}: {e}")
        raise IOError(f"Cannot open video file {fn}") from e


def _stream_fps(fn, stream) -> float:
    rate = stream.average_rate
    if not rate:
        logging.warning(f"{fn} does not declare a frame rate, assuming {DEFAULT_FPS}")
        return float(DEFAULT_FPS)
    return float(rate)


def read_frames(fn, number_of_frames: Optional[int] = None) -> Tuple[List[np.ndarray], float]:
    """Decode (up to) `number_of_frames` RGB frames of `fn`.

    Returns the frames and the stream frame rate. A file that cannot be
    decoded, or that holds fewer frames than requested, raises IOError.
    """
    logging.info(f"Reading {fn}")
    container = _open(fn)
    frames = []
    try:
        stream = container.streams.video[0]
        fps = _stream_fps(fn, stream)
        for frame in container.decode(stream):
            frames.append(frame.to_ndarray(format="rgb24"))
            if number_of_frames is not None and len(frames) >= number_of_frames:
                break
    except IndexError as e:
        raise IOError(f"{fn} has no video stream") from e
    except av.error.FFmpegError as e:
        logging.error(f"Error decoding {fn} after {len(frames)} frames: {e}")
        raise IOError(f"Cannot decode {fn}") from e
    finally:
        container.close()

    if number_of_frames is not None and len(frames) < number_of_frames:
        raise IOError(
            f"Video at <{fn}> has {len(frames)} frames, {number_of_frames} were requested.")
    if not frames:
        raise IOError(f"Video at <{fn}> does not contain any frames.")

    logging.info(f"Read {len(frames)} frames of {frames[0].shape[1]}x{frames[0].shape[0]} at {fps:.3f} fps")
    return frames, fps


def write_video(frames: Sequence[np.ndarray], fn, fps=DEFAULT_FPS,
                codec=DEFAULT_CODEC, pix_fmt=DEFAULT_PIX_FMT):
    """Encode RGB `frames` into `fn` at `fps` frames per second."""
    if not frames:
        raise ValueError("No frames to write")
    height, width = frames[0].shape[:2]
    rate = Fraction(fps).limit_denominator(1001)

    container = av.open(fn, 'w')
    try:
        stream = container.add_stream(codec, rate=rate)
        stream.width = width
        stream.height = height
        stream.pix_fmt = pix_fmt
        for img in frames:
            if img.ndim == 2:
                img = np.stack([img] * 3, axis=-1)
            frame = av.VideoFrame.from_ndarray(np.ascontiguousarray(img, dtype=np.uint8), format="rgb24")
            container.mux(stream.encode(frame))
        # Flush the encoder
        container.mux(stream.encode())
    finally:
        container.close()
    logging.info(f"Written {len(frames)} frames ({width}x{height}, {codec}) to {fn}")


def write_frames(frames: Sequence[np.ndarray], prefix, indices: Optional[Sequence[int]] = None):
    """Save frames as <prefix>_<index:04d>.png (only `indices`, when given)."""
    directory = os.path.dirname(prefix)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if indices is None:
        indices = range(len(frames))
    for idx in indices:
        img_fn = f"{prefix}_{idx:04d}.png"
        Image.fromarray(frames[idx]).save(img_fn)
        logging.debug(f"Written {img_fn}")
    return len(indices)
