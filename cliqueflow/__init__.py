"""cliqueflow: exact junction-tree inference for discrete Bayesian networks.

This package triangulates the moral graph of a network, builds a clique
tree over it, and calibrates the tree with two-pass sum-product message
passing.  Marginals and incremental evidence updates are available
through :class:`MarginCalculator`, or through the higher-level
:class:`BeliefNetwork`.
"""

import logging

try:
    from cliqueflow._version import version as __version__
except ImportError:
    __version__ = "0.1.0"

from .core.context import InferenceConfig, InferenceContext
from .core.errors import (
    DegenerateNormalizationError,
    InferenceError,
    InvalidValueError,
    InvalidVariableError,
    StructuralInvariantViolation,
    UninitializedTreeError,
)
from .core.types import ConditionalTable, Variable
from .inference.junction_tree import MarginCalculator
from .networks.dag import BeliefNetwork

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BeliefNetwork",
    "ConditionalTable",
    "DegenerateNormalizationError",
    "InferenceConfig",
    "InferenceContext",
    "InferenceError",
    "InvalidValueError",
    "InvalidVariableError",
    "MarginCalculator",
    "StructuralInvariantViolation",
    "UninitializedTreeError",
    "Variable",
]
