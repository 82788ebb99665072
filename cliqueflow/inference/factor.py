"""Dense potential tables over discrete variables.

:class:`FactorTable` stores a potential as an N-dimensional numpy array
with one axis per variable.  Axis order follows ``variables``; since the
array is laid out row-major, the flat offset of a cell is the mixed-radix
number of its assignment (see :class:`~cliqueflow.core.types.MixedRadix`).
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from cliqueflow.core.errors import DegenerateNormalizationError
from cliqueflow.core.types import ConditionalTable


class FactorTable:
    """A discrete factor (potential function) over a set of variables.

    Parameters
    ----------
    variables : list of int
        Variable ids that index the axes of *values*.
    cardinalities : list of int
        Number of states for each variable (same order as *variables*).
    values : numpy.ndarray
        An N-dimensional array whose shape equals *cardinalities*.
    """

    def __init__(
        self,
        variables: Sequence[int],
        cardinalities: Sequence[int],
        values: np.ndarray,
    ) -> None:
        expected = tuple(int(c) for c in cardinalities)
        values = np.asarray(values, dtype=np.float64)
        if values.shape != expected:
            raise ValueError(
                f"FactorTable shape {values.shape} does not match "
                f"cardinalities {expected}"
            )
        if len(set(variables)) != len(variables):
            raise ValueError(f"Duplicate variables in factor: {list(variables)}")
        self.variables: List[int] = [int(v) for v in variables]
        self.cardinalities: List[int] = list(expected)
        self.values: np.ndarray = values

    # ----- factory helpers ------------------------------------------------

    @classmethod
    def ones(
        cls, variables: Sequence[int], cardinalities: Sequence[int]
    ) -> "FactorTable":
        """Factor with every cell equal to 1.0."""
        return cls(variables, cardinalities, np.ones(tuple(cardinalities)))

    @classmethod
    def from_conditional(cls, table: ConditionalTable) -> "FactorTable":
        """Build a factor whose axes are ``[parent_0, ..., parent_k, self]``."""
        return cls(table.scope, table.cardinalities, table.values.copy())

    # ----- properties -----------------------------------------------------

    @property
    def total(self) -> float:
        return float(self.values.sum())

    def copy(self) -> "FactorTable":
        return FactorTable(self.variables, self.cardinalities, self.values.copy())

    # ----- core operations ------------------------------------------------

    def multiply(self, other: "FactorTable") -> "FactorTable":
        """Product of two factors over the union of their variables.

        The result keeps this factor's axes first, then appends the
        variables only *other* spans.  Shared variables must agree on
        their cardinality.
        """
        for v, c in zip(other.variables, other.cardinalities):
            if v in self.variables and self.cardinalities[self.variables.index(v)] != c:
                raise ValueError(
                    f"Variable {v} has {c} states in one factor and "
                    f"{self.cardinalities[self.variables.index(v)]} in the other"
                )
        extra = [i for i, v in enumerate(other.variables) if v not in self.variables]
        variables = self.variables + [other.variables[i] for i in extra]
        cards = self.cardinalities + [other.cardinalities[i] for i in extra]
        values = self.broadcast_into(variables) * other.broadcast_into(variables)
        return FactorTable(variables, cards, values)

    def project(self, variables: Sequence[int]) -> "FactorTable":
        """Sum out every variable not in *variables*.

        The result's axes follow the order of *variables*, which must be a
        subset of this factor's variables.
        """
        missing = [v for v in variables if v not in self.variables]
        if missing:
            raise ValueError(f"Variables {missing} not in factor")
        summed = tuple(
            i for i, v in enumerate(self.variables) if v not in variables
        )
        values = self.values.sum(axis=summed) if summed else self.values.copy()
        remaining = [v for v in self.variables if v in variables]
        perm = [remaining.index(v) for v in variables]
        cards = [self.cardinalities[self.variables.index(v)] for v in variables]
        return FactorTable(variables, cards, np.transpose(values, perm))

    def marginal(self, var: int) -> np.ndarray:
        """1-D marginal over *var*, not normalized."""
        return self.project([var]).values

    def observe(self, var: int, state_idx: int) -> "FactorTable":
        """Zero every cell whose *var* coordinate differs from *state_idx*.

        The factor keeps its shape.
        """
        if var not in self.variables:
            raise ValueError(f"Variable '{var}' not in factor")
        axis = self.variables.index(var)
        slices = [slice(None)] * len(self.variables)
        slices[axis] = state_idx
        new_values = np.zeros_like(self.values)
        new_values[tuple(slices)] = self.values[tuple(slices)]
        return FactorTable(self.variables, self.cardinalities, new_values)

    def normalize(self) -> "FactorTable":
        """Return a copy normalized so that all entries sum to 1.

        Raises
        ------
        DegenerateNormalizationError
            If the entries sum to zero or are not finite.
        """
        total = self.total
        if not np.isfinite(total) or total <= 0:
            raise DegenerateNormalizationError(
                f"Cannot normalize factor over {self.variables}: "
                f"total mass is {total}"
            )
        return FactorTable(
            self.variables, self.cardinalities, self.values / total
        )

    # ----- helpers --------------------------------------------------------

    def broadcast_into(self, target_vars: Sequence[int]) -> np.ndarray:
        """Reshape values so axes align with *target_vars* (size-1 for missing)."""
        unknown = [v for v in self.variables if v not in target_vars]
        if unknown:
            raise ValueError(f"Variables {unknown} not in target {list(target_vars)}")

        # Transpose self's axes into target order, then expand missing ones.
        src_axes = [self.variables.index(tv) for tv in target_vars
                    if tv in self.variables]
        extra_axes = [i for i, tv in enumerate(target_vars)
                      if tv not in self.variables]

        transposed = np.transpose(self.values, src_axes)
        for ea in extra_axes:
            transposed = np.expand_dims(transposed, axis=ea)
        return transposed

    def __repr__(self) -> str:
        return (
            f"FactorTable(variables={self.variables}, "
            f"shape={self.values.shape})"
        )
