"""
Pipeline stages.

Stages are synchronous transformations that run to completion once a
detection pass has returned.
"""

from .postprocess import PostProcessStage

__all__ = ["PostProcessStage"]
