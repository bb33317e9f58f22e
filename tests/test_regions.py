"""
Tests for the region partitioner, the block-to-region index mapping and
border-replicated region fetches.
"""

import numpy as np
import pytest

from config import BMCConfig, GridConfig
from regions import (
    Region,
    enclosing_cell,
    get_padded_roi,
    partition,
    partition_blocks,
    partition_global,
    partition_local,
    round_offset,
)


def coverage(frame_shape, grid):
    covered = np.zeros(frame_shape[:2], dtype=bool)
    for region in grid:
        assert region.x >= 0 and region.y >= 0
        assert region.x + region.width <= frame_shape[1]
        assert region.y + region.height <= frame_shape[0]
        assert region.width > 0 and region.height > 0
        covered[region.y:region.y + region.height, region.x:region.x + region.width] = True
    return covered


class TestDefaultGrids:
    """1920x1080 frames with the default constants."""

    @pytest.fixture
    def hd_frame(self):
        return np.zeros((1080, 1920), dtype=np.uint8)

    def test_region_counts(self, hd_frame):
        config = BMCConfig()
        assert len(partition_global(hd_frame, config)) == 2 * 2
        assert len(partition_local(hd_frame, config)) == 8 * 9
        assert len(partition_blocks(hd_frame, config)) == 60 * 34

    def test_trailing_cells_are_flush(self, hd_frame):
        grid = partition_global(hd_frame, BMCConfig())
        assert [(r.x, r.y) for r in grid] == [(0, 0), (896, 0), (0, 540), (896, 540)]
        assert {(r.width, r.height) for r in grid} == {(1024, 540)}

    @pytest.mark.parametrize("block_size", [32, 16])
    def test_frame_configuration_keeps_two_by_two_global_cells(self, hd_frame, block_size):
        config = BMCConfig.for_frame(1920, 1080, block_size=block_size)
        assert config.global_grid.shape == (2, 2)
        assert len(partition_global(hd_frame, config)) == 4

    def test_last_block_row_overlaps(self, hd_frame):
        grid = partition_blocks(hd_frame, BMCConfig())
        assert grid.cell(32, 0).y == 1024
        assert grid.cell(33, 0).y == 1080 - 32
        assert grid.cell(0, 59).x == 1920 - 32

    def test_row_major_order(self, hd_frame):
        grid = partition_local(hd_frame, BMCConfig())
        assert grid.cell(1, 0) == grid.regions[grid.cols]
        assert grid.cell(0, 1).y == 0 and grid.cell(0, 1).x == 256

    @pytest.mark.parametrize("partitioner", [partition_global, partition_local, partition_blocks])
    def test_union_covers_frame(self, hd_frame, partitioner):
        grid = partitioner(hd_frame, BMCConfig())
        assert coverage(hd_frame.shape, grid).all()


@pytest.mark.parametrize("width,height", [
    (1920, 1080), (1280, 720), (640, 360), (333, 197), (256, 128), (32, 32), (50, 33),
])
def test_partitioning_is_exhaustive_for_any_size(width, height):
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    config = BMCConfig.for_frame(width, height)
    for partitioner, grid_config in [(partition_global, config.global_grid),
                                     (partition_local, config.local_grid),
                                     (partition_blocks, config.block_grid)]:
        grid = partitioner(frame, config)
        assert len(grid) == grid_config.rows * grid_config.cols
        assert coverage(frame.shape, grid).all()


def test_counts_derived_when_missing():
    grid = partition(np.zeros((100, 70)), GridConfig(32, 32))
    assert (grid.rows, grid.cols) == (4, 3)
    assert grid.cell(3, 2) == Region(38, 68, 32, 32)


def test_cell_larger_than_frame_is_rejected():
    with pytest.raises(ValueError):
        partition(np.zeros((64, 64)), GridConfig(128, 32, 1, 2))


def test_too_few_cells_is_rejected():
    with pytest.raises(ValueError):
        partition(np.zeros((64, 64)), GridConfig(16, 16, 2, 4))


class TestEnclosingCell:

    def test_mapping_stays_inside_grids(self):
        config = BMCConfig()
        for i in range(config.block_grid.rows):
            for j in range(config.block_grid.cols):
                for region_grid in (config.global_grid, config.local_grid):
                    row, col = enclosing_cell(i, j, config.block_grid, region_grid)
                    assert 0 <= row < region_grid.rows
                    assert 0 <= col < region_grid.cols

    def test_last_block_clamped(self):
        config = BMCConfig()
        assert enclosing_cell(33, 59, config.block_grid, config.global_grid) == (1, 1)
        assert enclosing_cell(33, 59, config.block_grid, config.local_grid) == (8, 7)

    def test_first_blocks(self):
        config = BMCConfig()
        assert enclosing_cell(0, 0, config.block_grid, config.global_grid) == (0, 0)
        assert enclosing_cell(15, 31, config.block_grid, config.global_grid) == (0, 0)
        assert enclosing_cell(16, 32, config.block_grid, config.global_grid) == (1, 1)


class TestPaddedROI:

    @pytest.fixture
    def ramp(self):
        return np.arange(48, dtype=np.uint8).reshape(6, 8)

    def test_inside_is_plain_slice(self, ramp):
        roi = get_padded_roi(ramp, 2, 1, 3, 2)
        np.testing.assert_array_equal(roi, ramp[1:3, 2:5])

    def test_top_left_is_replicated(self, ramp):
        roi = get_padded_roi(ramp, -2, -1, 3, 3)
        np.testing.assert_array_equal(roi[0], [0, 0, 0])
        np.testing.assert_array_equal(roi[:, 2], [0, 0, 8])

    def test_bottom_right_is_replicated(self, ramp):
        roi = get_padded_roi(ramp, 6, 4, 4, 4)
        assert roi.shape == (4, 4)
        assert (roi[2:, 2:] == ramp[5, 7]).all()

    def test_fully_outside(self, ramp):
        roi = get_padded_roi(ramp, 100, -100, 2, 2)
        assert (roi == ramp[0, 7]).all()

    def test_multichannel(self):
        frame = np.random.default_rng(0).integers(0, 255, (10, 12, 3), dtype=np.uint8)
        roi = get_padded_roi(frame, -3, 5, 6, 8)
        assert roi.shape == (8, 6, 3)
        np.testing.assert_array_equal(roi[0, 0], frame[5, 0])


@pytest.mark.parametrize("value,expected", [
    (0.0, 0), (0.4, 0), (0.5, 1), (-0.5, -1), (1.49, 1), (-2.5, -3), (3.6, 4), (-1e-9, 0),
])
def test_round_offset(value, expected):
    assert round_offset(value) == expected
