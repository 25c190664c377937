import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Point2D:
    """2D point representation"""
    x: float
    y: float

    def to_tuple(self) -> Tuple[float, float]:
        """convert 2D point to tuple"""
        return self.x, self.y

    def distance_to(self, other: 'Point2D') -> float:
        """calculate distance to another 2D point"""
        return math.hypot(self.x - other.x, self.y - other.y)

    @classmethod
    def from_tuple(cls, point: Sequence[float]) -> 'Point2D':
        """create 2D point from tuple"""
        return cls(float(point[0]), float(point[1]))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def calculate_rule_of_thirds_points(
        thirds: Sequence[float] = (1.0 / 3.0, 2.0 / 3.0)
) -> List[Point2D]:
    """rule of thirds intersections in normalized frame space

    Ordered x-major: (1/3, 1/3), (1/3, 2/3), (2/3, 1/3), (2/3, 2/3).
    """
    return [Point2D(x, y) for x in thirds for y in thirds]


def find_nearest_composition_point(
        point: Point2D,
        composition_points: Sequence[Point2D]
) -> Tuple[Point2D, float]:
    """nearest composition point and its distance; ties go to the first"""

    if not composition_points:
        return point, 0.0

    distances = [point.distance_to(cp) for cp in composition_points]
    nearest_idx = int(np.argmin(distances))
    return composition_points[nearest_idx], distances[nearest_idx]


def nearest_line_distance(value: float, lines: Sequence[float]) -> float:
    """distance from a coordinate to the nearest of a set of parallel lines"""
    return min(abs(value - line) for line in lines)


def aspect_fit_size(
        width: int,
        height: int,
        target_width: int,
        target_height: int
) -> Tuple[int, int]:
    """largest size with the source aspect ratio that fits in the target box"""
    if width <= 0 or height <= 0:
        return 0, 0

    scale = min(target_width / width, target_height / height)
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))
