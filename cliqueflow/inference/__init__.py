"""Junction-tree inference for cliqueflow."""

from cliqueflow.inference.clique_tree import (
    Clique,
    CliqueState,
    CliqueTree,
    Separator,
    check_running_intersection,
)
from cliqueflow.inference.factor import FactorTable
from cliqueflow.inference.junction_tree import MarginCalculator
from cliqueflow.inference.triangulation import (
    fill_in,
    find_cliques,
    is_chordal,
    max_cardinality_order,
)

__all__ = [
    "Clique",
    "CliqueState",
    "CliqueTree",
    "FactorTable",
    "MarginCalculator",
    "Separator",
    "check_running_intersection",
    "fill_in",
    "find_cliques",
    "is_chordal",
    "max_cardinality_order",
]
