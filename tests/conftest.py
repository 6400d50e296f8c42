"""Pytest configuration for meshgen tests."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Repository root on the path so meshgen and bake_terrain import without installing.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from meshgen import NoiseConfig  # noqa: E402


@pytest.fixture
def overflowing_noise() -> NoiseConfig:
    """A field whose amplitude total overflows, so every sample is NaN."""
    return NoiseConfig(persistence=1e200, octaves=3)
