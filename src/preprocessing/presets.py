"""
Named preprocessing presets per capture scenario.

Presets differ only in parameter magnitudes; they all run through the same
enhancement code path.
"""

from __future__ import annotations

from typing import Dict

from models.config import PreprocessingOptions


SCENARIO_PRESETS: Dict[str, PreprocessingOptions] = {
    "indoor": PreprocessingOptions(gamma=1.1, contrast=1.1, sharpen=0.2, denoise=False),
    "outdoor": PreprocessingOptions(gamma=0.9, contrast=1.2, sharpen=0.3, denoise=False),
    "night_ir": PreprocessingOptions(gamma=1.6, contrast=1.4, sharpen=0.2, denoise=True),
    "low_light": PreprocessingOptions(gamma=1.5, contrast=1.3, sharpen=0.25, denoise=True),
    "low_quality_cctv": PreprocessingOptions(gamma=1.2, contrast=1.3, sharpen=0.4, denoise=True),
    "crowd": PreprocessingOptions(gamma=1.1, contrast=1.2, sharpen=0.5, denoise=False),
}


def get_preset(name: str) -> PreprocessingOptions:
    """Look up a scenario preset by name."""
    try:
        return SCENARIO_PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown preprocessing preset '{name}'. "
            f"Expected one of: {', '.join(sorted(SCENARIO_PRESETS))}"
        ) from None
