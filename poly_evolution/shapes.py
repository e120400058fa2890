"""
poly_evolution/shapes.py - Point, Color and Polygon primitives
"""
import random
from dataclasses import dataclass, replace
from typing import Dict, Any, List, Optional, Tuple

# Channel indices understood by Color.with_channel
RED, GREEN, BLUE, ALPHA = 0, 1, 2, 3
CHANNELS = (RED, GREEN, BLUE, ALPHA)
_CHANNEL_FIELDS = ('r', 'g', 'b', 'a')


@dataclass(frozen=True)
class Point:
    """Integer 2D coordinate"""
    x: int
    y: int

    def to_list(self) -> List[int]:
        return [self.x, self.y]

    @classmethod
    def from_list(cls, data) -> 'Point':
        return cls(int(data[0]), int(data[1]))


@dataclass(frozen=True)
class Color:
    """RGB channels in [0, 255], alpha in [0, 1]"""
    r: int
    g: int
    b: int
    a: float

    def with_channel(self, channel: int, value) -> 'Color':
        """Return a copy with one channel replaced"""
        return replace(self, **{_CHANNEL_FIELDS[channel]: value})

    def to_rgba8(self) -> Tuple[int, int, int, int]:
        """Color as an 8-bit RGBA tuple, the form Pillow fills with"""
        return (self.r, self.g, self.b, int(round(self.a * 255)))

    def to_dict(self) -> Dict[str, Any]:
        return {'r': self.r, 'g': self.g, 'b': self.b, 'a': self.a}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Color':
        return cls(int(data['r']), int(data['g']), int(data['b']), float(data['a']))


def random_point(rng: random.Random, width: int, height: int) -> Point:
    """Uniform random point in [0, width) x [0, height)"""
    return Point(rng.randrange(width), rng.randrange(height))


def random_channel(rng: random.Random, channel: int):
    """Fresh random value for a single channel"""
    if channel == ALPHA:
        return rng.random()
    return rng.randrange(256)


def random_color(rng: random.Random) -> Color:
    """Random RGBA color, alpha included"""
    return Color(*(random_channel(rng, channel) for channel in CHANNELS))


class Polygon:
    """Ordered vertex list plus one fill color"""

    def __init__(self, points: Optional[List[Point]] = None, color: Optional[Color] = None):
        self.points = list(points) if points else []
        self.color = color

    def add_point(self, point: Point, index: Optional[int] = None) -> None:
        """Add a point, either at the end or at the supplied index"""
        if index is None:
            self.points.append(point)
        else:
            self.points.insert(index, point)

    def clone(self) -> 'Polygon':
        # Points and colors are frozen, a fresh list is a full copy
        return Polygon(list(self.points), self.color)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'points': [p.to_list() for p in self.points],
            'color': self.color.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Polygon':
        return cls([Point.from_list(p) for p in data['points']], Color.from_dict(data['color']))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Polygon):
            return NotImplemented
        return self.points == other.points and self.color == other.color

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        return f"Polygon(points={len(self.points)}, color={self.color})"
