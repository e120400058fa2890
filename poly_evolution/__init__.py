"""
poly_evolution - Approximate an image with an evolving stack of translucent polygons

A single-lineage hill climber: a genome is an ordered list of RGBA polygons,
mutated by a catalogue of operators and kept only when its rendering is
strictly closer to the target image.
"""

__version__ = "0.1.0"
__author__ = "Poly Evolution Project"

from .config import EvolutionConfig, SelectionMode, RecolorMode
from .errors import (
    EvolutionError, ConfigError, BufferSizeError, InvariantViolation, DriverStateError
)
from .shapes import Point, Color, Polygon
from .genome import Genome
from .mutation import Operator, OperatorLevel, MutationOperator, Mutator
from .rasterizer import Rasterizer, PillowRasterizer, load_target, save_buffer
from .fitness import FitnessEvaluator, sum_squared_error, partition_pixels
from .driver import HillClimber, DriverState, ProgressEvent

__all__ = [
    'EvolutionConfig', 'SelectionMode', 'RecolorMode',
    'EvolutionError', 'ConfigError', 'BufferSizeError', 'InvariantViolation', 'DriverStateError',
    'Point', 'Color', 'Polygon',
    'Genome',
    'Operator', 'OperatorLevel', 'MutationOperator', 'Mutator',
    'Rasterizer', 'PillowRasterizer', 'load_target', 'save_buffer',
    'FitnessEvaluator', 'sum_squared_error', 'partition_pixels',
    'HillClimber', 'DriverState', 'ProgressEvent',
]
