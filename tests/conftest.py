"""
Pytest configuration and shared fixtures for the BMC tests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from config import BMCConfig, GridConfig
from utils import textured_frame


@pytest.fixture
def small_config():
    """Grids for 256x128 frames: 2x2 global, 4x4 local, 16x8 blocks."""
    return BMCConfig(
        global_grid=GridConfig(128, 64, 2, 2),
        local_grid=GridConfig(64, 32, 4, 4),
        block_grid=GridConfig(16, 16, 16, 8),
        standard_size=(32, 16),
        stride=2,
    )


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def frame():
    return textured_frame(128, 256)


@pytest.fixture
def color_frame():
    return textured_frame(128, 256, channels=3, seed=7)
