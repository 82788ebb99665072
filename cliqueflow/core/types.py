"""Core types for cliqueflow graphical models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np


# ---------------------------------------------------------------------------
# Mixed-radix indexing
# ---------------------------------------------------------------------------

class MixedRadix:
    """Positional number system over a list of variable cardinalities.

    A joint assignment ``(x_0, ..., x_k)`` with ``0 <= x_i < radii[i]``
    maps to the flat offset ``((x_0 * r_1 + x_1) * r_2 + ...) + x_k``,
    i.e. the last variable varies fastest.  This is the row-major layout
    numpy uses, so a flat table indexed this way reshapes directly into
    an array of shape ``radii``.
    """

    def __init__(self, radii: Sequence[int]) -> None:
        radii = tuple(int(r) for r in radii)
        if any(r < 1 for r in radii):
            raise ValueError(f"Radii must be positive, got {radii}")
        self.radii: Tuple[int, ...] = radii

    @property
    def size(self) -> int:
        """Number of joint assignments."""
        return int(np.prod(self.radii, dtype=np.int64))

    def offset(self, values: Sequence[int]) -> int:
        """Flat offset of the assignment *values*."""
        if len(values) != len(self.radii):
            raise ValueError(
                f"Expected {len(self.radii)} values, got {len(values)}"
            )
        if not self.radii:
            return 0
        return int(np.ravel_multi_index(tuple(values), self.radii))

    def values(self, offset: int) -> Tuple[int, ...]:
        """Inverse of :meth:`offset`."""
        if not 0 <= offset < self.size:
            raise ValueError(f"Offset {offset} out of range [0, {self.size})")
        if not self.radii:
            return ()
        return tuple(int(v) for v in np.unravel_index(offset, self.radii))

    def __repr__(self) -> str:
        return f"MixedRadix(radii={self.radii})"


# ---------------------------------------------------------------------------
# Bayesian network types
# ---------------------------------------------------------------------------

@dataclass
class Variable:
    """A discrete random variable with a finite set of states."""

    name: str
    states: List[str]

    @property
    def num_states(self) -> int:
        return len(self.states)


@dataclass
class ConditionalTable:
    """Conditional probability table ``P(variable | parents)``.

    ``values`` has one axis per parent followed by one axis for the
    variable itself, so ``values[p_0, ..., p_k, x]`` is
    ``P(variable = x | parents = (p_0, ..., p_k))``.  A flat sequence in
    row-major order is accepted and reshaped through :class:`MixedRadix`.
    """

    variable: int
    parents: List[int]
    cardinalities: List[int]  # parents first, variable last
    values: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        self.parents = [int(p) for p in self.parents]
        self.cardinalities = [int(c) for c in self.cardinalities]
        if len(self.cardinalities) != len(self.parents) + 1:
            raise ValueError(
                f"Conditional table for variable {self.variable} needs "
                f"{len(self.parents) + 1} cardinalities, got "
                f"{len(self.cardinalities)}"
            )
        if self.variable in self.parents:
            raise ValueError(
                f"Variable {self.variable} cannot be its own parent"
            )
        radix = MixedRadix(self.cardinalities)
        values = np.asarray(self.values, dtype=np.float64)
        if values.ndim == 1 and values.size == radix.size:
            values = values.reshape(radix.radii)
        if values.shape != radix.radii:
            raise ValueError(
                f"Conditional table shape {values.shape} does not match "
                f"cardinalities {radix.radii}"
            )
        if np.any(values < 0) or not np.all(np.isfinite(values)):
            raise ValueError(
                f"Conditional table for variable {self.variable} must "
                "contain finite non-negative values"
            )
        self.values = values

    @property
    def scope(self) -> List[int]:
        """Variables spanned by the table, in axis order."""
        return self.parents + [self.variable]

    @property
    def family(self) -> frozenset:
        return frozenset(self.scope)

    def check_normalized(self, tolerance: float) -> None:
        """Raise :class:`ValueError` unless every row sums to one.

        The message names the first offending parent assignment.
        """
        sums = np.ravel(self.values.sum(axis=-1))
        bad = np.flatnonzero(np.abs(sums - 1.0) > tolerance)
        if bad.size:
            rows = MixedRadix(self.cardinalities[:-1])
            assignment = rows.values(int(bad[0]))
            raise ValueError(
                f"Rows of the conditional table for variable "
                f"{self.variable} must sum to 1; parents {self.parents} = "
                f"{assignment} sum to {sums[bad[0]]:.6g}"
            )
