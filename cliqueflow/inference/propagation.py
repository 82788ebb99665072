"""Two-pass sum-product propagation over a clique tree.

1. **Collect** (leaves -> root): each clique multiplies its potential by
   the normalized messages of its children, normalizes, and leaves its
   own message (its belief marginalized onto the parent separator) on
   the separator.
2. **Distribute** (root -> leaves): each non-root clique rescales its
   belief by ``parent message / child message`` on the separator, with
   ``x / 0 := 0``, and renormalizes.

After both passes every clique belief is the joint marginal of its
variables and neighbouring cliques agree on their separators.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

import numpy as np

from cliqueflow.core.errors import StructuralInvariantViolation
from cliqueflow.inference.clique_tree import CliqueState, CliqueTree, Separator
from cliqueflow.inference.factor import FactorTable

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
#  Separator messages
# ------------------------------------------------------------------ #

def separator_message(belief: FactorTable, sep: Separator) -> FactorTable:
    """Marginalize *belief* onto the separator's variables and normalize."""
    return belief.project(sep.nodes).normalize()


def ratio(numerator: FactorTable, denominator: FactorTable) -> FactorTable:
    """Cell-wise ``numerator / denominator`` with division by zero giving 0."""
    out = np.zeros_like(numerator.values)
    np.divide(
        numerator.values,
        denominator.values,
        out=out,
        where=denominator.values != 0,
    )
    return FactorTable(numerator.variables, numerator.cardinalities, out)


def absorb(belief: FactorTable, message: FactorTable) -> FactorTable:
    """Multiply a separator-shaped *message* into *belief* and normalize."""
    values = belief.values * message.broadcast_into(belief.variables)
    return FactorTable(belief.variables, belief.cardinalities, values).normalize()


def update_marginals(tree: CliqueTree, index: int) -> None:
    """Recompute the per-variable marginals cached on clique *index*."""
    clique = tree.cliques[index]
    clique.marginals = {v: clique.belief.marginal(v) for v in clique.nodes}


# ------------------------------------------------------------------ #
#  Upward pass
# ------------------------------------------------------------------ #

def collect(tree: CliqueTree, root: int) -> None:
    """Upward pass over the subtree under *root*, starting from the potentials."""
    for index in tree.post_order(root):
        clique = tree.cliques[index]
        if clique.potential is None:
            raise StructuralInvariantViolation(
                f"Clique {clique.nodes} has no potential"
            )
        belief = clique.potential.copy()
        for child in clique.children:
            child_sep = tree.parent_separator(child)
            belief.values *= child_sep.child_message.broadcast_into(clique.nodes)
        clique.belief = belief.normalize()
        sep = tree.parent_separator(index)
        if sep is not None:
            sep.child_message = separator_message(clique.belief, sep)
        clique.state = CliqueState.UPDATED_UP


# ------------------------------------------------------------------ #
#  Downward pass
# ------------------------------------------------------------------ #

def distribute_to(tree: CliqueTree, index: int) -> None:
    """Update one non-root clique from its parent's finalized belief."""
    clique = tree.cliques[index]
    sep = tree.parent_separator(index)
    parent = tree.cliques[clique.parent]
    sep.parent_message = separator_message(parent.belief, sep)
    clique.belief = absorb(clique.belief, ratio(sep.parent_message, sep.child_message))
    sep.child_message = separator_message(clique.belief, sep)
    clique.state = CliqueState.UPDATED_DOWN
    update_marginals(tree, index)


def distribute(tree: CliqueTree, root: int) -> None:
    """Downward pass over the subtree under *root*.

    *root*'s own belief is taken as final; when it is not a tree root it
    is first updated from its parent.
    """
    for index in tree.pre_order(root):
        clique = tree.cliques[index]
        if clique.is_root:
            clique.state = CliqueState.UPDATED_DOWN
            update_marginals(tree, index)
        else:
            distribute_to(tree, index)


def propagate_component(tree: CliqueTree, root: int) -> None:
    """Run both passes on the connected component rooted at *root*."""
    collect(tree, root)
    distribute(tree, root)


def propagate(tree: CliqueTree, max_workers: Optional[int] = None) -> None:
    """Run both passes on every component of *tree*.

    Components own disjoint cliques and separators, so with
    ``max_workers > 1`` they are propagated on a thread pool.
    """
    roots = tree.roots
    if max_workers is not None and max_workers > 1 and len(roots) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            # list() re-raises the first worker exception
            list(pool.map(lambda r: propagate_component(tree, r), roots))
    else:
        for root in roots:
            propagate_component(tree, root)


# ------------------------------------------------------------------ #
#  Margins
# ------------------------------------------------------------------ #

def collect_margins(tree: CliqueTree) -> Dict[int, np.ndarray]:
    """Per-variable margins taken from the first clique holding each variable.

    Raises
    ------
    StructuralInvariantViolation
        If a variable is in no clique or a clique has not been propagated.
    """
    margins: Dict[int, np.ndarray] = {}
    for clique in tree.cliques:
        if clique.state is not CliqueState.UPDATED_DOWN:
            raise StructuralInvariantViolation(
                f"Clique {clique.nodes} is {clique.state.value}"
            )
        for variable in clique.nodes:
            if variable not in margins:
                margins[variable] = clique.marginals[variable].copy()
    missing = [v for v in range(tree.num_variables) if v not in margins]
    if missing:
        raise StructuralInvariantViolation(
            f"Variables {missing} are not in any clique"
        )
    return margins
