"""
Tests for bidirectional motion compensation.
"""

import numpy as np
import pytest

from config import BMCConfig
from motion_compensation import bidirectional_motion_compensation
from regions import partition_blocks
from utils import shift_frame, textured_frame


def zero_field(blocks):
    return np.zeros((blocks.rows, blocks.cols, 2), dtype=np.float32)


class TestCompensation:

    def test_identical_frames(self, frame, small_config):
        blocks = partition_blocks(frame, small_config)
        out = bidirectional_motion_compensation(frame, frame, blocks, zero_field(blocks))
        np.testing.assert_array_equal(out, frame)

    def test_average_of_both_frames(self, frame, small_config):
        other = textured_frame(128, 256, seed=99)
        blocks = partition_blocks(frame, small_config)
        out = bidirectional_motion_compensation(frame, other, blocks, zero_field(blocks))
        expected = (frame.astype(np.float32) + other) / 2
        assert np.abs(out - expected).max() <= 1.0

    def test_follows_the_field(self, frame, small_config):
        moved = shift_frame(frame, 4, 2)
        blocks = partition_blocks(frame, small_config)
        field = np.tile(np.array([4, 2], dtype=np.float32), (blocks.rows, blocks.cols, 1))
        out = bidirectional_motion_compensation(frame, moved, blocks, field)
        # The last two rows and four columns fetch replicated border pixels
        np.testing.assert_array_equal(out[:-2, :-4], frame[:-2, :-4])

    def test_fractional_vectors_are_rounded(self, frame, small_config):
        moved = shift_frame(frame, 4, 2)
        blocks = partition_blocks(frame, small_config)
        field = np.tile(np.array([3.6, 2.4], dtype=np.float32), (blocks.rows, blocks.cols, 1))
        out = bidirectional_motion_compensation(frame, moved, blocks, field)
        np.testing.assert_array_equal(out[:-2, :-4], frame[:-2, :-4])

    def test_color_frames(self, color_frame, small_config):
        blocks = partition_blocks(color_frame, small_config)
        out = bidirectional_motion_compensation(color_frame, color_frame, blocks, zero_field(blocks))
        assert out.shape == color_frame.shape
        assert out.dtype == color_frame.dtype
        np.testing.assert_array_equal(out, color_frame)

    def test_vectors_pointing_outside(self, frame, small_config):
        blocks = partition_blocks(frame, small_config)
        field = np.full((blocks.rows, blocks.cols, 2), -500, dtype=np.float32)
        out = bidirectional_motion_compensation(frame, frame, blocks, field)
        assert out.shape == frame.shape
        # Every target fetch collapses onto the top-left pixel
        expected = (frame.astype(np.float32) + frame[0, 0]) / 2
        assert np.abs(out - expected).max() <= 1.0

    @pytest.mark.parametrize("width,height", [(100, 70), (77, 45)])
    def test_overlapping_trailing_blocks(self, width, height):
        frame = textured_frame(height, width, channels=3, seed=4)
        config = BMCConfig.for_frame(width, height, block_size=16)
        blocks = partition_blocks(frame, config)
        out = bidirectional_motion_compensation(frame, frame, blocks, zero_field(blocks))
        assert out.shape == frame.shape
        np.testing.assert_array_equal(out, frame)
