"""
poly_evolution/mutation.py - Mutation catalogue and operator selection

Every operator is a plain descriptor (which operator, how likely) that is
looked up in two dispatch tables: one of validity predicates and one of
effects. An effect is only ever run behind its predicate.
"""
import itertools
import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .config import EvolutionConfig, RecolorMode, SelectionMode
from .errors import InvariantViolation
from .genome import Genome
from .shapes import CHANNELS, Polygon, random_channel, random_color, random_point

logger = logging.getLogger(__name__)


class OperatorLevel(Enum):
    GENOME = 'genome'
    POLYGON = 'polygon'


class Operator(Enum):
    """Catalogue of mutation operators, in catalogue order"""
    ADD_POLYGON = 'add_polygon'
    MOVE_POLYGON = 'move_polygon'
    REMOVE_POLYGON = 'remove_polygon'
    ADD_POINT = 'add_point'
    REMOVE_POINT = 'remove_point'
    MOVE_POINT = 'move_point'
    RECOLOR = 'recolor'

    @property
    def level(self) -> OperatorLevel:
        if self in (Operator.ADD_POLYGON, Operator.REMOVE_POLYGON, Operator.MOVE_POLYGON):
            return OperatorLevel.GENOME
        return OperatorLevel.POLYGON


@dataclass(frozen=True)
class MutationOperator:
    """Stateless descriptor: which operator and how often it fires"""
    operator: Operator
    probability: float

    @property
    def name(self) -> str:
        return self.operator.value

    @property
    def level(self) -> OperatorLevel:
        return self.operator.level


# ---------------------------------------------------------------------------
# Validity predicates: (genome, polygon index or None) -> bool

def _has_polygon(genome: Genome, index: Optional[int]) -> bool:
    return index is not None and 0 <= index < len(genome.polygons)


def add_polygon_valid(genome: Genome, index: Optional[int] = None) -> bool:
    """Can a polygon be added?"""
    return len(genome.polygons) < genome.max_polygon


def remove_polygon_valid(genome: Genome, index: Optional[int] = None) -> bool:
    return len(genome.polygons) > 0


def move_polygon_valid(genome: Genome, index: Optional[int] = None) -> bool:
    # Moving needs somewhere else to go
    return len(genome.polygons) >= 2


def add_point_valid(genome: Genome, index: Optional[int] = None) -> bool:
    return _has_polygon(genome, index) and len(genome.polygons[index].points) < genome.max_polygon_points


def remove_point_valid(genome: Genome, index: Optional[int] = None) -> bool:
    """Can a point be removed without dropping below a triangle?"""
    return _has_polygon(genome, index) and len(genome.polygons[index].points) > 3


def polygon_exists(genome: Genome, index: Optional[int] = None) -> bool:
    return _has_polygon(genome, index)


# ---------------------------------------------------------------------------
# Effects: (genome, rng, polygon index or None) -> None, mutating in place

def add_polygon(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    """Insert a random polygon at a random position in the stack"""
    num_points = rng.randint(3, genome.max_polygon_points)
    points = [random_point(rng, genome.width, genome.height) for _ in range(num_points)]
    polygon = Polygon(points, random_color(rng))
    genome.polygons.insert(rng.randrange(len(genome.polygons) + 1), polygon)


def remove_polygon(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    del genome.polygons[rng.randrange(len(genome.polygons))]


def move_polygon(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    """Pick a polygon and reinsert it at a different depth"""
    count = len(genome.polygons)
    source = rng.randrange(count)
    target = rng.randrange(count - 1)
    if target >= source:
        target += 1
    polygon = genome.polygons.pop(source)
    genome.polygons.insert(target, polygon)


def add_point(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    genome.polygons[index].add_point(random_point(rng, genome.width, genome.height))


def remove_point(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    points = genome.polygons[index].points
    del points[rng.randrange(len(points))]


def move_point(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    """Give a random vertex new coordinates"""
    points = genome.polygons[index].points
    points[rng.randrange(len(points))] = random_point(rng, genome.width, genome.height)


def recolor_channel(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    """Resample exactly one of R, G, B or A"""
    polygon = genome.polygons[index]
    channel = rng.choice(CHANNELS)
    polygon.color = polygon.color.with_channel(channel, random_channel(rng, channel))


def recolor_whole(genome: Genome, rng: random.Random, index: Optional[int] = None) -> None:
    genome.polygons[index].color = random_color(rng)


Predicate = Callable[[Genome, Optional[int]], bool]
Effect = Callable[[Genome, random.Random, Optional[int]], None]

PREDICATES: Dict[Operator, Predicate] = {
    Operator.ADD_POLYGON: add_polygon_valid,
    Operator.REMOVE_POLYGON: remove_polygon_valid,
    Operator.MOVE_POLYGON: move_polygon_valid,
    Operator.ADD_POINT: add_point_valid,
    Operator.REMOVE_POINT: remove_point_valid,
    Operator.MOVE_POINT: polygon_exists,
    Operator.RECOLOR: polygon_exists,
}

EFFECTS: Dict[Operator, Effect] = {
    Operator.ADD_POLYGON: add_polygon,
    Operator.REMOVE_POLYGON: remove_polygon,
    Operator.MOVE_POLYGON: move_polygon,
    Operator.ADD_POINT: add_point,
    Operator.REMOVE_POINT: remove_point,
    Operator.MOVE_POINT: move_point,
    Operator.RECOLOR: recolor_channel,
}


def build_catalogue(config: EvolutionConfig) -> List[MutationOperator]:
    """Operators in catalogue order with their effective probabilities"""
    return [MutationOperator(op, config.probability(op.value)) for op in Operator]


class Mutator:
    """Applies the mutation catalogue to genomes"""

    def __init__(self, config: EvolutionConfig, rng: Optional[random.Random] = None):
        self.selection = config.selection
        self.recolor = config.recolor
        self.rng = rng if rng is not None else random.Random(config.seed)

        self.operators = build_catalogue(config)
        self.genome_operators = [op for op in self.operators if op.level == OperatorLevel.GENOME]
        self.polygon_operators = [op for op in self.operators if op.level == OperatorLevel.POLYGON]

        self.effects = dict(EFFECTS)
        if self.recolor == RecolorMode.WHOLE:
            self.effects[Operator.RECOLOR] = recolor_whole

        # Epochs used by the last per-operator mutate() call
        self.last_epochs = 0

    def is_valid(self, genome: Genome, operator: Operator, index: Optional[int] = None) -> bool:
        return PREDICATES[operator](genome, index)

    def apply(self, genome: Genome, operator: Operator, index: Optional[int] = None) -> None:
        """Run one operator's effect; its predicate must hold"""
        if not self.is_valid(genome, operator, index):
            raise InvariantViolation(
                f"{operator.value} is not valid for a genome of {len(genome.polygons)} polygons"
                + (f" at polygon {index}" if index is not None else ""))
        self.effects[operator](genome, self.rng, index)
        genome.invalidate_fitness()
        logger.debug("Applied %s%s", operator.value, f" to polygon {index}" if index is not None else "")

    def mutate(self, genome: Genome) -> int:
        """Mutate a genome in place, returning the number of operators applied (always >= 1)"""
        if self.selection == SelectionMode.JOINT_SUBSET:
            return self._mutate_joint_subset(genome)
        return self._mutate_per_operator(genome)

    def epoch(self, genome: Genome) -> int:
        """One pass of independent coin flips over the whole catalogue"""
        applied = 0

        for mutation in self.genome_operators:
            if self.is_valid(genome, mutation.operator):
                if self.rng.random() < mutation.probability:
                    self.apply(genome, mutation.operator)
                    applied += 1

        return applied + self._polygon_pass(genome)

    def _polygon_pass(self, genome: Genome) -> int:
        """Independent coin flips for every polygon-level operator on every polygon"""
        applied = 0
        # Genome-level operators are done, the polygon count is now fixed
        for index in range(len(genome.polygons)):
            for mutation in self.polygon_operators:
                if self.is_valid(genome, mutation.operator, index):
                    if self.rng.random() < mutation.probability:
                        self.apply(genome, mutation.operator, index)
                        applied += 1
        return applied

    def _mutate_per_operator(self, genome: Genome) -> int:
        self.last_epochs = 0
        applied = 0
        while not applied:
            self.last_epochs += 1
            applied = self.epoch(genome)
        return applied

    def subset_weights(self, genome: Genome) -> List[Tuple[Tuple[MutationOperator, ...], float]]:
        """Every non-empty subset of the valid genome-level operators, weighted by joint probability"""
        valid = [op for op in self.genome_operators if self.is_valid(genome, op.operator)]
        subsets = []
        for size in range(1, len(valid) + 1):
            for subset in itertools.combinations(valid, size):
                subsets.append((subset, math.prod(op.probability for op in subset)))
        return subsets

    def _mutate_joint_subset(self, genome: Genome) -> int:
        weighted = self.subset_weights(genome)
        if not weighted:
            raise InvariantViolation("No genome-level operator is valid")

        subsets = [subset for subset, _ in weighted]
        weights = [weight for _, weight in weighted]
        chosen = self.rng.choices(subsets, weights=weights)[0]

        # combinations() keeps catalogue order: add, move, then remove, so every
        # operator in the subset is still valid when its turn comes
        for mutation in chosen:
            self.apply(genome, mutation.operator)

        # The drawn subset is never empty, so no retry is needed here
        return len(chosen) + self._polygon_pass(genome)
