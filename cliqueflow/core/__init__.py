"""Core module for cliqueflow.

This module contains the variable and conditional-table types, the error
taxonomy, and the configuration context used by the inference engine.
"""

from .context import InferenceConfig, InferenceContext
from .errors import (
    DegenerateNormalizationError,
    InferenceError,
    InvalidValueError,
    InvalidVariableError,
    StructuralInvariantViolation,
    UninitializedTreeError,
)
from .types import ConditionalTable, MixedRadix, Variable

__all__ = [
    "ConditionalTable",
    "DegenerateNormalizationError",
    "InferenceConfig",
    "InferenceContext",
    "InferenceError",
    "InvalidValueError",
    "InvalidVariableError",
    "MixedRadix",
    "StructuralInvariantViolation",
    "UninitializedTreeError",
    "Variable",
]
