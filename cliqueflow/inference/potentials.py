"""Assignment of conditional tables to cliques and initial potentials."""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from cliqueflow.core.errors import StructuralInvariantViolation
from cliqueflow.core.types import ConditionalTable
from cliqueflow.inference.clique_tree import CliqueState, CliqueTree
from cliqueflow.inference.factor import FactorTable

logger = logging.getLogger(__name__)


def assign_factors(
    tree: CliqueTree, tables: Sequence[ConditionalTable]
) -> Dict[int, int]:
    """Give each conditional table to exactly one clique.

    The table for variable ``v`` goes to the first clique, in elimination
    order, that contains ``v`` and all of its parents.

    Returns
    -------
    dict of int -> int
        Maps each variable to the index of the clique that claimed it.

    Raises
    ------
    StructuralInvariantViolation
        If no clique contains the family of some table, which means the
        adjacency matrix was not moralized.
    """
    owners: Dict[int, int] = {}
    for clique in tree.cliques:
        clique.claimed = []
    for table in tables:
        for clique in tree.cliques:
            if table.family <= set(clique.nodes):
                clique.claimed.append(table.variable)
                owners[table.variable] = clique.index
                logger.debug(
                    "adding variable %d to clique %s", table.variable, clique.nodes
                )
                break
        else:
            raise StructuralInvariantViolation(
                f"No clique contains variable {table.variable} together "
                f"with its parents {table.parents}; is the graph moralized?"
            )
    return owners


def initialize_potentials(
    tree: CliqueTree, tables: Sequence[ConditionalTable]
) -> None:
    """Set every clique's potential to the product of its claimed tables.

    Cells not touched by any claimed table stay at 1.0.  Beliefs, messages
    and marginals are reset so propagation starts from scratch.
    """
    assign_factors(tree, tables)
    by_variable: Dict[int, ConditionalTable] = {t.variable: t for t in tables}
    for clique in tree.cliques:
        potential = FactorTable.ones(clique.nodes, clique.cardinalities)
        for variable in clique.claimed:
            factor = FactorTable.from_conditional(by_variable[variable])
            potential = potential.multiply(factor).project(clique.nodes)
        clique.potential = potential
        clique.belief = None
        clique.marginals = {}
        clique.state = CliqueState.UNINITIALIZED
    for sep in tree.separators:
        sep.child_message = None
        sep.parent_message = None
