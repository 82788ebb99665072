"""Incremental evidence propagation on a calibrated clique tree.

Entering evidence zeroes the inconsistent cells of one clique.  The change
then spreads outwards from that clique: downwards into each of its child
subtrees with the ordinary distribute step, and upwards along the path to
the root, where every ancestor absorbs the new message from the branch
below it and re-distributes into its other children.  Nothing is
recomputed from the original potentials.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from cliqueflow.inference.clique_tree import CliqueState, CliqueTree
from cliqueflow.inference.factor import FactorTable
from cliqueflow.inference.propagation import (
    absorb,
    distribute,
    ratio,
    separator_message,
    update_marginals,
)

logger = logging.getLogger(__name__)


def enter_evidence(tree: CliqueTree, variable: int, value: int) -> int:
    """Condition a clique holding *variable* on ``variable = value``.

    Returns the index of the conditioned clique.  The clique's belief is
    renormalized, so contradictory evidence raises
    :class:`~cliqueflow.core.errors.DegenerateNormalizationError`.
    """
    index = tree.clique_of(variable)
    clique = tree.cliques[index]
    clique.belief = clique.belief.observe(variable, value).normalize()
    update_marginals(tree, index)
    logger.debug("Evidence %d=%d entered in clique %s", variable, value, clique.nodes)
    return index


def update_evidence(tree: CliqueTree, source: int) -> None:
    """Spread a change of clique *source*'s belief through its component."""
    for child in tree.cliques[source].children:
        distribute(tree, child)

    current = source
    while not tree.cliques[current].is_root:
        sep = tree.parent_separator(current)
        parent = tree.cliques[sep.parent]
        sep.child_message = separator_message(tree.cliques[current].belief, sep)
        parent.belief = absorb(parent.belief, ratio(sep.child_message, sep.parent_message))
        parent.state = CliqueState.UPDATED_DOWN
        update_marginals(tree, parent.index)
        for sibling in parent.children:
            if sibling != current:
                distribute(tree, sibling)
        sep.parent_message = separator_message(parent.belief, sep)
        current = parent.index


# ------------------------------------------------------------------ #
#  Snapshots
# ------------------------------------------------------------------ #

@dataclass
class TreeSnapshot:
    """Copy of every mutable table in a clique tree."""

    beliefs: List[Optional[FactorTable]]
    marginals: List[Dict[int, np.ndarray]]
    states: List[CliqueState]
    child_messages: List[Optional[FactorTable]]
    parent_messages: List[Optional[FactorTable]]


def _copy(table: Optional[FactorTable]) -> Optional[FactorTable]:
    return None if table is None else table.copy()


def snapshot(tree: CliqueTree) -> TreeSnapshot:
    return TreeSnapshot(
        beliefs=[_copy(c.belief) for c in tree.cliques],
        marginals=[{v: m.copy() for v, m in c.marginals.items()} for c in tree.cliques],
        states=[c.state for c in tree.cliques],
        child_messages=[_copy(s.child_message) for s in tree.separators],
        parent_messages=[_copy(s.parent_message) for s in tree.separators],
    )


def restore(tree: CliqueTree, saved: TreeSnapshot) -> None:
    for clique, belief, marginals, state in zip(
        tree.cliques, saved.beliefs, saved.marginals, saved.states
    ):
        clique.belief = belief
        clique.marginals = marginals
        clique.state = state
    for sep, child_message, parent_message in zip(
        tree.separators, saved.child_messages, saved.parent_messages
    ):
        sep.child_message = child_message
        sep.parent_message = parent_message
