"""Shared fixtures for poly_evolution tests."""

import numpy as np
import pytest

from poly_evolution.config import EvolutionConfig, OPERATOR_NAMES
from poly_evolution.genome import Genome
from poly_evolution.rasterizer import PillowRasterizer
from poly_evolution.shapes import Color, Point, Polygon


class CountingRasterizer:
    """Pillow rasterizer that records how often it renders."""

    def __init__(self):
        self.inner = PillowRasterizer()
        self.calls = 0

    def render(self, genome, width, height):
        self.calls += 1
        return self.inner.render(genome, width, height)


class ConstantRasterizer:
    """Renders every genome to the same buffer."""

    def __init__(self, value=(10, 20, 30, 255)):
        self.value = value
        self.calls = 0

    def render(self, genome, width, height):
        self.calls += 1
        return np.tile(np.array(self.value, dtype=np.uint8), (height, width, 1))


@pytest.fixture
def config():
    """Small config with probabilities high enough for quick mutation."""
    return EvolutionConfig(
        width=16,
        height=12,
        max_polygon=8,
        max_polygon_points=6,
        probabilities={name: 0.2 for name in OPERATOR_NAMES},
        seed=1234,
    )


@pytest.fixture
def black_target(config):
    return np.zeros((config.height, config.width, 4), dtype=np.uint8)


@pytest.fixture
def gradient_target(config):
    ys, xs = np.mgrid[0:config.height, 0:config.width]
    target = np.zeros((config.height, config.width, 4), dtype=np.uint8)
    target[..., 0] = (xs * 255 // (config.width - 1)).astype(np.uint8)
    target[..., 1] = (ys * 255 // (config.height - 1)).astype(np.uint8)
    target[..., 2] = 128
    target[..., 3] = 255
    return target


@pytest.fixture
def triangle():
    return Polygon([Point(0, 0), Point(10, 0), Point(5, 8)], Color(200, 50, 25, 0.5))


@pytest.fixture
def genome(config, triangle):
    g = Genome.from_config(config)
    g.polygons.append(triangle)
    g.polygons.append(Polygon([Point(1, 1), Point(12, 2), Point(14, 10), Point(3, 9)],
                              Color(0, 90, 255, 0.8)))
    return g
