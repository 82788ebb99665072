"""Junction-tree marginal calculator.

:class:`MarginCalculator` ties the stages together::

    adjacency -> max cardinality order -> fill-in -> order again
              -> maximal cliques -> clique tree -> potentials
              -> collect/distribute -> margins

and afterwards accepts evidence, which is propagated incrementally
through the calibrated tree.

Example
-------
>>> import numpy as np
>>> from cliqueflow.core.types import ConditionalTable
>>> tables = [
...     ConditionalTable(0, [], [2], np.array([0.5, 0.5])),
...     ConditionalTable(1, [0], [2, 2], np.array([[0.8, 0.2], [0.2, 0.8]])),
... ]
>>> calc = MarginCalculator([2, 2], tables)
>>> margins = calc.process(np.array([[False, True], [True, False]]))
>>> np.round(calc.set_evidence(0, 0)[1], 3)
array([0.8, 0.2])
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from cliqueflow.core.context import InferenceConfig, InferenceContext
from cliqueflow.core.errors import (
    DegenerateNormalizationError,
    InvalidValueError,
    InvalidVariableError,
    UninitializedTreeError,
)
from cliqueflow.core.types import ConditionalTable
from cliqueflow.inference.clique_tree import (
    CliqueTree,
    build_clique_tree,
    check_running_intersection,
)
from cliqueflow.inference.evidence import (
    enter_evidence,
    restore,
    snapshot,
    update_evidence,
)
from cliqueflow.inference.potentials import initialize_potentials
from cliqueflow.inference.propagation import collect_margins
from cliqueflow.inference.propagation import propagate as propagate_tree
from cliqueflow.inference.triangulation import (
    as_adjacency,
    check_cliques_complete,
    fill_in,
    find_cliques,
    max_cardinality_order,
)

logger = logging.getLogger(__name__)

Margins = Dict[int, np.ndarray]


def _is_index(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


class MarginCalculator:
    """Exact marginals of a discrete Bayesian network via a junction tree.

    Parameters
    ----------
    cardinalities : sequence of int
        Number of states of each variable; variable ids are positions.
    tables : sequence or mapping of ConditionalTable
        One conditional table per variable.
    config : InferenceConfig, optional
        Defaults to the active :class:`InferenceContext` config.

    Raises
    ------
    InvalidVariableError
        If a table refers to a variable outside ``[0, n)`` or a variable
        has no table (or more than one).
    ValueError
        If a table's shape disagrees with the declared cardinalities or
        its rows do not sum to one.
    """

    def __init__(
        self,
        cardinalities: Sequence[int],
        tables: Union[Sequence[ConditionalTable], Mapping[int, ConditionalTable]],
        config: Optional[InferenceConfig] = None,
    ) -> None:
        self.config: InferenceConfig = (
            config if config is not None else InferenceContext.current_config()
        )
        self.cardinalities: List[int] = [int(c) for c in cardinalities]
        if any(c < 1 for c in self.cardinalities):
            raise ValueError(
                f"Cardinalities must be positive, got {self.cardinalities}"
            )
        if isinstance(tables, Mapping):
            tables = list(tables.values())
        self.tables: List[ConditionalTable] = self._check_tables(tables)

        self._tree: Optional[CliqueTree] = None
        self._adjacency: Optional[np.ndarray] = None
        self._margins: Optional[Margins] = None
        self._evidence: Dict[int, int] = {}

    def _check_tables(self, tables: Sequence[ConditionalTable]) -> List[ConditionalTable]:
        n = len(self.cardinalities)
        by_variable: Dict[int, ConditionalTable] = {}
        for table in tables:
            for v in table.scope:
                self._check_variable(v)
            if table.variable in by_variable:
                raise InvalidVariableError(
                    f"Variable {table.variable} has more than one table"
                )
            expected = [self.cardinalities[v] for v in table.scope]
            if table.cardinalities != expected:
                raise ValueError(
                    f"Table for variable {table.variable} has cardinalities "
                    f"{table.cardinalities}, expected {expected}"
                )
            table.check_normalized(self.config.tolerance)
            by_variable[table.variable] = table
        missing = [v for v in range(n) if v not in by_variable]
        if missing:
            raise InvalidVariableError(f"No conditional table for variables {missing}")
        return [by_variable[v] for v in range(n)]

    # ------------------------------------------------------------------ #
    #  Construction
    # ------------------------------------------------------------------ #

    @property
    def num_variables(self) -> int:
        return len(self.cardinalities)

    @property
    def tree(self) -> CliqueTree:
        self._require_tree()
        return self._tree

    @property
    def adjacency(self) -> np.ndarray:
        """The triangulated adjacency matrix used to build the tree."""
        self._require_tree()
        return self._adjacency.copy()

    def process(self, adjacency) -> Margins:
        """Build the junction tree for *adjacency* and calibrate it.

        *adjacency* must be the moralized undirected graph of the network.
        It is copied, so the caller's matrix is left untouched.  Any earlier
        tree and evidence are discarded; if construction fails, the
        calculator is left uninitialized.

        Returns
        -------
        dict of int -> numpy.ndarray
            Marginal distribution of every variable.
        """
        self._tree = None
        self._adjacency = None
        self._margins = None
        self._evidence = {}

        matrix = as_adjacency(adjacency, self.num_variables)
        order = max_cardinality_order(matrix)
        fill_in(order, matrix)
        order = max_cardinality_order(matrix)
        cliques = find_cliques(order, matrix)
        if self.config.validate:
            check_cliques_complete(cliques, matrix)

        tree = build_clique_tree(order, cliques, self.cardinalities)
        if self.config.validate:
            check_running_intersection(tree)
        initialize_potentials(tree, self.tables)
        propagate_tree(tree, self.config.max_workers)
        margins = collect_margins(tree)

        self._tree = tree
        self._adjacency = matrix
        self._margins = margins
        logger.info(
            "Built junction tree: %d cliques, %d roots, largest table %d",
            len(tree.cliques),
            len(tree.roots),
            max((c.size for c in tree.cliques), default=0),
        )
        return self.margins()

    def propagate(self) -> Margins:
        """Recalibrate from the initial potentials and re-enter the evidence."""
        self._require_tree()
        saved = snapshot(self._tree)
        try:
            propagate_tree(self._tree, self.config.max_workers)
            for variable, value in self._evidence.items():
                self._apply(variable, value)
            margins = collect_margins(self._tree)
        except DegenerateNormalizationError:
            restore(self._tree, saved)
            raise
        self._margins = margins
        return self.margins()

    # ------------------------------------------------------------------ #
    #  Queries
    # ------------------------------------------------------------------ #

    def margins(self) -> Margins:
        """Copies of the current marginals of every variable."""
        self._require_tree()
        return {v: m.copy() for v, m in self._margins.items()}

    def get_margin(self, variable: int) -> np.ndarray:
        """Current marginal distribution of *variable*."""
        self._require_tree()
        self._check_variable(variable)
        return self._margins[variable].copy()

    # ------------------------------------------------------------------ #
    #  Evidence
    # ------------------------------------------------------------------ #

    @property
    def evidence(self) -> Dict[int, int]:
        """Observed values, as {variable: state index}."""
        return dict(self._evidence)

    def set_evidence(self, variable: int, value: int) -> Margins:
        """Observe ``variable = value`` and update every marginal.

        Raises
        ------
        UninitializedTreeError
            If :meth:`process` has not succeeded.
        InvalidVariableError, InvalidValueError
            If *variable* or *value* is out of range.
        DegenerateNormalizationError
            If the evidence has zero probability given the model and the
            evidence already entered.  The tree is left as it was.
        """
        self._require_tree()
        self._check_variable(variable)
        if not _is_index(value) or not 0 <= value < self.cardinalities[variable]:
            raise InvalidValueError(
                f"Value {value} out of range for variable {variable} "
                f"with {self.cardinalities[variable]} states"
            )

        saved = snapshot(self._tree)
        try:
            self._apply(variable, value)
            margins = collect_margins(self._tree)
        except DegenerateNormalizationError:
            logger.warning(
                "Evidence %d=%d has zero probability; restoring previous state",
                variable, value,
            )
            restore(self._tree, saved)
            raise
        self._evidence[int(variable)] = int(value)
        self._margins = margins
        return self.margins()

    def retract_evidence(self, variable: Optional[int] = None) -> Margins:
        """Forget the evidence on *variable* (or all evidence) and recalibrate."""
        self._require_tree()
        if variable is None:
            self._evidence.clear()
        else:
            self._check_variable(variable)
            self._evidence.pop(variable, None)
        return self.propagate()

    def _apply(self, variable: int, value: int) -> None:
        source = enter_evidence(self._tree, variable, value)
        update_evidence(self._tree, source)

    # ------------------------------------------------------------------ #
    #  Helpers
    # ------------------------------------------------------------------ #

    def _require_tree(self) -> None:
        if self._tree is None:
            raise UninitializedTreeError("Junction tree not initialized yet")

    def _check_variable(self, variable: int) -> None:
        if not _is_index(variable) or not 0 <= variable < self.num_variables:
            raise InvalidVariableError(
                f"Variable {variable} out of range [0, {self.num_variables})"
            )

    def __str__(self) -> str:
        if self._tree is None:
            return "MarginCalculator(uninitialized)"
        blocks = []
        for root in self._tree.roots:
            for index in self._tree.pre_order(root):
                clique = self._tree.cliques[index]
                lines = [
                    f"{v}: " + " ".join(f"{p:.6g}" for p in clique.marginals[v])
                    for v in clique.nodes
                ]
                blocks.append("\n".join(lines))
        return "\n----------------\n".join(blocks)

    def __repr__(self) -> str:
        return (
            f"MarginCalculator(cardinalities={self.cardinalities}, "
            f"initialized={self._tree is not None})"
        )
