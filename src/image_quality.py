'''Quality of the interpolated frames: PSNR and per-channel SSIM.'''

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np
from skimage.metrics import mean_squared_error, peak_signal_noise_ratio, structural_similarity  # pip install scikit-image

MAX_VALUE = 255
CHANNEL_NAMES = ("R", "G", "B")


def get_psnr(I1: np.ndarray, I2: np.ndarray) -> float:
    """Peak signal to noise ratio (dB) over all channels.

    Identical frames give inf (not 0), so they rank above any lossy result.
    """
    if mean_squared_error(I1, I2) == 0:
        return math.inf
    return float(peak_signal_noise_ratio(I1, I2, data_range=MAX_VALUE))


def get_mssim(i1: np.ndarray, i2: np.ndarray) -> Tuple[float, ...]:
    """Mean structural similarity of each channel (Gaussian window, sigma = 1.5)."""
    if i1.shape != i2.shape:
        raise ValueError(f"Frame shapes differ: {i1.shape} and {i2.shape}")
    if i1.ndim == 2:
        i1, i2 = i1[..., np.newaxis], i2[..., np.newaxis]
    return tuple(
        float(structural_similarity(i1[..., c], i2[..., c], data_range=MAX_VALUE,
                                    gaussian_weights=True, sigma=1.5,
                                    use_sample_covariance=False))
        for c in range(i1.shape[2]))


def format_values(frame_no, psnr, mssim) -> str:
    names = CHANNEL_NAMES if len(mssim) == len(CHANNEL_NAMES) else [f"C{c}" for c in range(len(mssim))]
    ssim_text = "".join(f" {name} {value * 100:.2f}%" for name, value in zip(names, mssim))
    return f"Frame {frame_no}\t\t{psnr:.4f} dB\t\t{ssim_text}\n"


def calc_quality(interpolated: Sequence[np.ndarray], originals: Sequence[np.ndarray],
                 report_fn=None) -> List[Tuple[int, float, Tuple[float, ...]]]:
    """PSNR and SSIM of each interpolated frame against its original.

    When `report_fn` is given the results are appended to it.
    """
    if len(interpolated) != len(originals):
        logging.error(f"Number of images is different: {len(interpolated)} interpolated, {len(originals)} originals")
        raise ValueError(
            f"Cannot compare {len(interpolated)} interpolated frames with {len(originals)} originals")

    results = []
    for frame_no, (img, ref) in enumerate(zip(interpolated, originals), start=1):
        psnr = get_psnr(img, ref)
        mssim = get_mssim(img, ref)
        logging.info(f"Frame {frame_no}: PSNR={psnr:.4f} dB, SSIM={[round(v, 4) for v in mssim]}")
        results.append((frame_no, psnr, mssim))

    if report_fn is not None:
        with open(report_fn, 'a') as f:
            f.write("Frame   \t\tPSNR      \t\tSSIM\n")
            for frame_no, psnr, mssim in results:
                f.write(format_values(frame_no, psnr, mssim))
        logging.info(f"Quality report appended to {report_fn}")

    return results
