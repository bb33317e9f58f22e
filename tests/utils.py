"""Synthetic frames shared by the tests."""

import numpy as np
import cv2


def textured_frame(height, width, channels=None, seed=0):
    """Smoothed random texture, uint8."""
    rng = np.random.default_rng(seed)
    shape = (height, width) if channels is None else (height, width, channels)
    noise = rng.integers(0, 256, size=shape, dtype=np.uint8)
    return cv2.GaussianBlur(noise, (3, 3), 0.8)


def shift_frame(frame, dx, dy):
    """Translate `frame` by (dx, dy), replicating the border."""
    h, w = frame.shape[:2]
    rows = np.clip(np.arange(h) - dy, 0, h - 1)
    cols = np.clip(np.arange(w) - dx, 0, w - 1)
    return frame[np.ix_(rows, cols)]
