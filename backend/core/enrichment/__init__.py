"""
Knowledge-base maintenance: log of unknown ingredients awaiting classification.
"""
from .unknown_log import UnknownIngredientsLog, get_unknown_log

__all__ = [
    "UnknownIngredientsLog",
    "get_unknown_log",
]
