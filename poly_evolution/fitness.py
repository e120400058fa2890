"""
poly_evolution/fitness.py - Pixel-wise sum-of-squared-error fitness

Fitness is the sum over every pixel of the squared red, green and blue
differences between a rendered genome and the target; alpha is ignored.
Lower is better and zero means a pixel-perfect match. Because the sum is
decomposable, the pixels can be split into disjoint partitions that are
scored concurrently and added up afterwards.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import numpy as np
from numba import jit

from .errors import BufferSizeError
from .genome import Genome
from .rasterizer import PillowRasterizer, Rasterizer

logger = logging.getLogger(__name__)


@jit(nopython=True, nogil=True)
def _partial_sse(rendered, target):
    """SSE of the RGB channels over an (n, 4) slice of pixels"""
    total = 0
    for i in range(rendered.shape[0]):
        for c in range(3):
            d = np.int64(target[i, c]) - np.int64(rendered[i, c])
            total += d * d
    return total


def partition_pixels(num_pixels: int, partitions: int) -> List[slice]:
    """Split pixel indices so pixel i lands in partition i % partitions"""
    if partitions < 1:
        raise ValueError(f"partitions must be at least 1, got {partitions}")
    return [slice(k, num_pixels, partitions) for k in range(partitions)]


def _check_shape(buffer: np.ndarray, width: int, height: int, what: str) -> None:
    if buffer.shape != (height, width, 4):
        raise BufferSizeError(
            f"{what} buffer has shape {buffer.shape}, expected ({height}, {width}, 4)")


def sum_squared_error(rendered: np.ndarray, target: np.ndarray, partitions: int = 1,
                      executor: Optional[ThreadPoolExecutor] = None) -> int:
    """SSE between two RGBA buffers of equal shape, optionally reduced over partitions"""
    if rendered.shape != target.shape:
        raise BufferSizeError(f"Rendered shape {rendered.shape} does not match target shape {target.shape}")

    r = np.ascontiguousarray(rendered).reshape(-1, 4)
    t = np.ascontiguousarray(target).reshape(-1, 4)

    if partitions == 1:
        return int(_partial_sse(r, t))

    slices = partition_pixels(r.shape[0], partitions)
    if executor is None:
        partials = [_partial_sse(r[s], t[s]) for s in slices]
    else:
        partials = list(executor.map(lambda s: _partial_sse(r[s], t[s]), slices))
    return int(sum(partials))


class FitnessEvaluator:
    """Scores genomes against a fixed target buffer, memoizing on the genome"""

    def __init__(self, target: np.ndarray, width: int, height: int,
                 rasterizer: Optional[Rasterizer] = None, workers: int = 1):
        target = np.asarray(target)
        _check_shape(target, width, height, "Target")

        self.width = width
        self.height = height
        self.target = np.array(target, dtype=np.uint8)
        self.target.setflags(write=False)

        self.rasterizer = rasterizer if rasterizer is not None else PillowRasterizer()
        self.workers = workers
        self.executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None

        # Number of genomes actually rendered and scored
        self.evaluations = 0

        logger.debug("Fitness evaluator ready: %dx%d target, %d worker(s)", width, height, workers)

    def render(self, genome: Genome) -> np.ndarray:
        """Render a genome, checking the buffer matches the target"""
        if (genome.width, genome.height) != (self.width, self.height):
            raise BufferSizeError(
                f"Genome is {genome.width}x{genome.height}, target is {self.width}x{self.height}")
        rendered = np.asarray(self.rasterizer.render(genome, self.width, self.height))
        _check_shape(rendered, self.width, self.height, "Rendered")
        return rendered

    def evaluate(self, genome: Genome) -> int:
        """Return the genome's fitness, rendering only if it is not already cached"""
        if genome.fitness is not None:
            return genome.fitness

        rendered = self.render(genome)
        fitness = sum_squared_error(rendered, self.target, self.workers, self.executor)
        self.evaluations += 1

        genome.fitness = fitness
        return fitness

    def close(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None

    def __enter__(self) -> 'FitnessEvaluator':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
