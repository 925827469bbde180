"""Pytest configuration and shared fixtures."""

import pytest

from nebula import ColorChannel, NebulaConfig, RenderArea


@pytest.fixture
def unit_area() -> RenderArea:
    """4x4 grid over the [-1, 1] x [-1, 1] window."""
    return RenderArea(4, (-1.0, 1.0), (-1.0, 1.0))


@pytest.fixture
def white_channel() -> ColorChannel:
    """Single channel covering every escape count with full white."""
    return ColorChannel(0, 10_000, 1.0, 1.0, 1.0)


@pytest.fixture
def small_config() -> NebulaConfig:
    """Seeded configuration small enough to run a pass in well under a second."""
    return NebulaConfig(
        area=RenderArea(16, (-2.5, 1.5), (-2.0, 2.0)),
        batch_size=2000,
        max_iterations=64,
        seed=7,
    )
