"""
Logging setup.
"""

from __future__ import annotations

import logging
import os


def setup_logging(log_path: str, log_level: str, debug_mode: bool = False) -> None:
    """
    Configure root logging to a file and the console.

    debug_mode forces DEBUG so per-cycle diagnostics are emitted.
    """
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    level = logging.DEBUG if debug_mode else getattr(logging, log_level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
    )

    # Status polling would otherwise flood the log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
