"""
poly_evolution/genome.py - Genome representation and JSON serialization
"""
import json
from typing import Dict, Any, List, Optional

from .config import EvolutionConfig
from .shapes import Polygon


class Genome:
    """An ordered stack of polygons; later polygons are painted over earlier ones"""

    def __init__(self, max_polygon: int, max_polygon_points: int, width: int, height: int,
                 polygons: Optional[List[Polygon]] = None):
        # Bound settings, fixed for the lifetime of the genome
        self.max_polygon = max_polygon
        self.max_polygon_points = max_polygon_points
        self.width = width
        self.height = height

        self.polygons = list(polygons) if polygons else []

        # Memoized fitness, only valid while the polygons are unchanged
        self.fitness: Optional[int] = None

    @classmethod
    def from_config(cls, config: EvolutionConfig) -> 'Genome':
        """Create an empty genome bound to a run configuration"""
        return cls(config.max_polygon, config.max_polygon_points, config.width, config.height)

    def invalidate_fitness(self) -> None:
        self.fitness = None

    def clone(self) -> 'Genome':
        """Create a structural deep copy of this genome"""
        child = Genome(self.max_polygon, self.max_polygon_points, self.width, self.height,
                       [polygon.clone() for polygon in self.polygons])
        # Same polygons, same score
        child.fitness = self.fitness
        return child

    def get_complexity(self) -> int:
        """Total number of vertices across all polygons"""
        return sum(len(polygon.points) for polygon in self.polygons)

    def check_invariants(self) -> bool:
        """True when polygon and vertex counts are within their bounds"""
        if len(self.polygons) > self.max_polygon:
            return False
        return all(3 <= len(p.points) <= self.max_polygon_points for p in self.polygons)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize genome to dictionary"""
        return {
            'max_polygon': self.max_polygon,
            'max_polygon_points': self.max_polygon_points,
            'width': self.width,
            'height': self.height,
            'polygons': [polygon.to_dict() for polygon in self.polygons],
            'fitness': self.fitness,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Genome':
        """Deserialize genome from dictionary"""
        genome = cls(data['max_polygon'], data['max_polygon_points'],
                     data['width'], data['height'],
                     [Polygon.from_dict(p) for p in data['polygons']])
        genome.fitness = data.get('fitness')
        return genome

    def to_json(self, filename: str = None) -> str:
        """Serialize to JSON string or file"""
        json_str = json.dumps(self.to_dict(), indent=2)
        if filename:
            with open(filename, 'w') as f:
                f.write(json_str)
        return json_str

    @classmethod
    def from_json(cls, json_data: str = None, filename: str = None) -> 'Genome':
        """Deserialize from JSON string or file"""
        if filename:
            with open(filename, 'r') as f:
                json_data = f.read()

        data = json.loads(json_data)
        return cls.from_dict(data)

    def __len__(self) -> int:
        return len(self.polygons)

    def __str__(self) -> str:
        """String representation of the genome"""
        fitness = 'n/a' if self.fitness is None else str(self.fitness)
        lines = [f"Genome ({self.width}x{self.height}):"]
        lines.append(f"  Fitness: {fitness}")
        lines.append(f"  Polygons: {len(self.polygons)}/{self.max_polygon}, Vertices: {self.get_complexity()}")
        return '\n'.join(lines)
