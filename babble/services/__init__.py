"""
Text generation services
"""

from .errors import (
    DegenerateDistribution,
    InvalidInput,
    InvalidOrder,
    InvalidTemperature,
    MarkovError,
    NotTrained,
)
from .markov import ChainStats, MarkovModel, sample, tokenize, train_from_text

__all__ = [
    "ChainStats",
    "MarkovModel",
    "sample",
    "tokenize",
    "train_from_text",
    "MarkovError",
    "InvalidInput",
    "InvalidOrder",
    "InvalidTemperature",
    "NotTrained",
    "DegenerateDistribution",
]
