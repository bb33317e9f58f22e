'''Dual-peak phase correlation.

Estimates the translation between two equally sized regions from the
normalised cross-power spectrum. Unlike the textbook routine (and
cv2.phaseCorrelate) two candidate displacements are returned: the highest
peak of the correlation surface and, after zeroing that peak, the next one.
'''

from typing import Optional, Tuple

import numpy as np
import cv2

from config import CENTROID_SIZE

# Floor of the cross-power magnitude (prevents div0 problems)
EPSILON = np.finfo(np.float32).eps


def create_window(shape) -> np.ndarray:
    """Hanning window for regions of the given (rows, cols) shape."""
    rows, cols = shape[:2]
    return cv2.createHanningWindow((cols, rows), cv2.CV_32F)


def _validate(src1, src2, window):
    if src1.ndim != 2 or src2.ndim != 2:
        raise ValueError(f"Phase correlation expects single channel regions, got {src1.shape} and {src2.shape}")
    if src1.dtype != src2.dtype:
        raise ValueError(f"Region types differ: {src1.dtype} and {src2.dtype}")
    if src1.dtype not in (np.float32, np.float64):
        raise ValueError(f"Regions must be float32 or float64, got {src1.dtype}")
    if src1.shape != src2.shape:
        raise ValueError(f"Region sizes differ: {src1.shape} and {src2.shape}")
    if window is not None:
        if window.dtype != src1.dtype:
            raise ValueError(f"Window type {window.dtype} differs from region type {src1.dtype}")
        if window.shape != src1.shape:
            raise ValueError(f"Window size {window.shape} differs from region size {src1.shape}")


def _pad(img, rows, cols):
    if img.shape == (rows, cols):
        return img
    return cv2.copyMakeBorder(img, 0, rows - img.shape[0], 0, cols - img.shape[1],
                              cv2.BORDER_CONSTANT, value=0)


def _weighted_centroid(surface, peak, size=CENTROID_SIZE) -> Tuple[np.ndarray, float]:
    """Sub-pixel (x, y) position of `peak` and the sum of the weights used.

    Weights are the non-negative samples of the size[0] x size[1]
    neighbourhood of the peak, clipped to the surface.
    """
    row, col = peak
    rows, cols = surface.shape
    min_r, max_r = max(row - size[1] // 2, 0), min(row + size[1] // 2, rows - 1)
    min_c, max_c = max(col - size[0] // 2, 0), min(col + size[0] // 2, cols - 1)

    weights = np.maximum(surface[min_r:max_r + 1, min_c:max_c + 1], 0)
    total = float(weights.sum())
    if total <= 0:
        return np.array([col, row], dtype=np.float64), 0.0

    ys, xs = np.mgrid[min_r:max_r + 1, min_c:max_c + 1]
    centroid = np.array([(xs * weights).sum(), (ys * weights).sum()], dtype=np.float64) / total
    return centroid, total


def _is_flat(region) -> bool:
    return region.max() == region.min()


def _find_peak(surface):
    # argmax scans in row-major order and keeps the first maximum
    return np.unravel_index(np.argmax(surface), surface.shape)


def phase_correlate(src1: np.ndarray, src2: np.ndarray,
                    window: Optional[np.ndarray] = None) -> Tuple[np.ndarray, float]:
    """Primary and secondary displacement of `src2` with respect to `src1`.

    Returns a (2, 2) array [[dx1, dy1], [dx2, dy2]] and the response of the
    primary peak normalised by the number of samples (close to 1 for a pure
    translation). If `src2` is `src1` translated by (sx, sy), the primary
    candidate is (sx, sy).

    If either region is constant both candidates are zero and the response
    is zero.
    """
    src1 = np.asarray(src1)
    src2 = np.asarray(src2)
    if window is not None:
        window = np.asarray(window)
    _validate(src1, src2, window)

    M = cv2.getOptimalDFTSize(src1.shape[0])
    N = cv2.getOptimalDFTSize(src1.shape[1])
    padded1 = _pad(src1, M, N)
    padded2 = _pad(src2, M, N)

    if window is not None:
        padded_win = _pad(window, M, N)
        padded1 = padded1 * padded_win
        padded2 = padded2 * padded_win

    # A constant region has no energy outside DC: its surface would be noise
    if _is_flat(padded1) or _is_flat(padded2):
        return np.zeros((2, 2)), 0.0

    FFT1 = np.fft.fft2(padded1)
    FFT2 = np.fft.fft2(padded2)
    # FF* / |FF*|
    P = FFT1 * np.conj(FFT2)
    C = P / (np.abs(P) + EPSILON)

    # Unscaled inverse, so a perfect match peaks at about M*N
    C = np.real(np.fft.ifft2(C, norm="forward"))
    C = np.fft.fftshift(C)

    peak = _find_peak(C)
    t1, response = _weighted_centroid(C, peak)
    C[peak] = 0
    peak = _find_peak(C)
    t2, _ = _weighted_centroid(C, peak)

    response /= M * N

    center = np.array([N / 2.0, M / 2.0])
    return np.stack([center - t1, center - t2]), response
