"""
MstatX: conservation statistics for multiple sequence alignments

Computes one conservation score per alignment column with a weighted
entropy, a Jensen-Shannon divergence or the trident score.
"""

__version__ = "1.0.0"

from mstatx.config import Config
from mstatx.logging import setup_logging

__all__ = [
    "Config",
    "setup_logging",
    "__version__",
]
