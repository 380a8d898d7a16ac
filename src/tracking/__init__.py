"""
Tracking module.

The canonical tracker implementation is in tracking.tracker.
"""

from .tracker import FaceTracker
from .voting import majority_vote

__all__ = ["FaceTracker", "majority_vote"]
