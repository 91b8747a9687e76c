"""
Responder matching service.

This module handles:
    - Geofenced discovery of nearby doctors and transit services
"""

from .candidate_directory import find_candidates, profiles_in_box

__all__ = [
    "find_candidates",
    "profiles_in_box",
]
