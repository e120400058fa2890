"""
poly_evolution/config.py - Run configuration and validation
"""
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, Any, Optional

from .errors import ConfigError


class SelectionMode(str, Enum):
    """How the mutation catalogue picks which operators fire"""
    PER_OPERATOR = 'per-operator'   # independent coin flips, retried until progress
    JOINT_SUBSET = 'joint-subset'   # one weighted draw over subsets of genome-level operators


class RecolorMode(str, Enum):
    """Granularity of the recolor operator"""
    CHANNEL = 'channel'  # perturb exactly one of R, G, B, A
    WHOLE = 'whole'      # replace the whole color


# Operator names, in catalogue order
OPERATOR_NAMES = (
    'add_polygon', 'move_polygon', 'remove_polygon',
    'add_point', 'remove_point', 'move_point', 'recolor',
)

DEFAULT_PROBABILITIES = {
    'add_polygon': 1 / 700,
    'move_polygon': 1 / 700,
    'remove_polygon': 1 / 1500,
    'add_point': 1 / 1500,
    'remove_point': 1 / 1500,
    'move_point': 1 / 1500,
    'recolor': 4 / 1500,
}

# Whole-color replacement is a bigger jump than a single channel change
WHOLE_RECOLOR_PROBABILITY = 1 / 1500


@dataclass
class EvolutionConfig:
    """Configuration for a hill-climbing run"""

    width: int
    height: int
    max_polygon: int = 255
    max_polygon_points: int = 10

    # Per-operator overrides; anything missing falls back to the defaults
    probabilities: Dict[str, float] = field(default_factory=dict)

    selection: SelectionMode = SelectionMode.PER_OPERATOR
    recolor: RecolorMode = RecolorMode.CHANNEL

    # Number of pixel partitions evaluated concurrently
    workers: int = 1
    seed: Optional[int] = None

    def __post_init__(self):
        try:
            self.selection = SelectionMode(self.selection)
            self.recolor = RecolorMode(self.recolor)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        self.probabilities = dict(self.probabilities)

    def probability(self, name: str) -> float:
        """Effective probability for an operator"""
        if name in self.probabilities:
            return self.probabilities[name]
        if name == 'recolor' and self.recolor == RecolorMode.WHOLE:
            return WHOLE_RECOLOR_PROBABILITY
        return DEFAULT_PROBABILITIES[name]

    def validate(self) -> 'EvolutionConfig':
        """Raise ConfigError unless this configuration can drive a run"""
        for name in ('width', 'height', 'max_polygon', 'max_polygon_points', 'workers'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")

        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"width and height must be positive, got {self.width}x{self.height}")
        if self.max_polygon < 1:
            raise ConfigError(f"max_polygon must be at least 1, got {self.max_polygon}")
        if self.max_polygon_points < 3:
            raise ConfigError(f"max_polygon_points must be at least 3, got {self.max_polygon_points}")
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")

        for name, p in self.probabilities.items():
            if name not in OPERATOR_NAMES:
                raise ConfigError(f"Unknown mutation operator: {name!r}")
            if isinstance(p, bool) or not isinstance(p, (int, float)):
                raise ConfigError(f"Probability for {name} must be a number, got {p!r}")
            if not 0.0 < p <= 1.0:
                raise ConfigError(f"Probability for {name} must be in (0, 1], got {p}")

        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config to dictionary"""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['selection'] = self.selection.value
        data['recolor'] = self.recolor.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionConfig':
        """Deserialize config from dictionary"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(str(e)) from e
