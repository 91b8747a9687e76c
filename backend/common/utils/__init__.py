"""Common utility functions."""

from .geo import (
    BoundingBox,
    bounding_box,
    calculate_distance,
    destination_point,
)

__all__ = [
    "BoundingBox",
    "bounding_box",
    "calculate_distance",
    "destination_point",
]
