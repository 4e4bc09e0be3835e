"""Models package for Flip 7 engine results."""

from .effects import EffectType, Effect
from .results import ErrorKind, EngineError, EmptyDeckError, NoDuplicateFoundError, ActionResult

__all__ = [
    "EffectType",
    "Effect",
    "ErrorKind",
    "EngineError",
    "EmptyDeckError",
    "NoDuplicateFoundError",
    "ActionResult",
]
