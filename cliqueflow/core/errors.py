"""Exceptions raised by the junction-tree engine."""


class InferenceError(Exception):
    """Base class for every error raised by cliqueflow inference."""


class UninitializedTreeError(InferenceError, RuntimeError):
    """A query was made before :meth:`MarginCalculator.process` succeeded."""


class InvalidVariableError(InferenceError, ValueError):
    """A variable index lies outside ``[0, n)``."""


class InvalidValueError(InferenceError, ValueError):
    """A state index lies outside ``[0, cardinality)``."""


class StructuralInvariantViolation(InferenceError):
    """The input graph or the clique tree built from it is malformed.

    Raised when the adjacency matrix is not a square symmetric matrix over
    the declared variables, when a variable or a conditional table fits in
    no clique, or when the tree breaks the running intersection property.
    """


class DegenerateNormalizationError(InferenceError, ArithmeticError):
    """A clique or separator table summed to zero during propagation."""
