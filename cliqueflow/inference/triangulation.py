"""Triangulation of an undirected graph and extraction of its cliques.

Provides:

* :func:`max_cardinality_order` – maximum cardinality search ordering.
* :func:`fill_in` – Tarjan and Yannakakis (1984) fill-in, making the
  graph chordal with respect to an ordering.
* :func:`find_cliques` – the maximal cliques of a chordal graph.
* :func:`is_chordal` / :func:`check_cliques_complete` – structural
  checks used by tests and by ``InferenceConfig(validate=True)``.

Graphs are ``n x n`` symmetric boolean numpy arrays over variable ids.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

import numpy as np

from cliqueflow.core.errors import StructuralInvariantViolation

logger = logging.getLogger(__name__)


def as_adjacency(adjacency, num_variables: Optional[int] = None) -> np.ndarray:
    """Return a boolean copy of *adjacency* with an empty diagonal.

    Raises
    ------
    StructuralInvariantViolation
        If the matrix is not square, not symmetric, or does not have
        *num_variables* rows.
    """
    matrix = np.array(adjacency, dtype=bool)
    if matrix.size == 0:
        matrix = matrix.reshape(0, 0)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise StructuralInvariantViolation(
            f"Adjacency matrix must be square, got shape {matrix.shape}"
        )
    if num_variables is not None and matrix.shape[0] != num_variables:
        raise StructuralInvariantViolation(
            f"Adjacency matrix covers {matrix.shape[0]} variables, "
            f"expected {num_variables}"
        )
    if not np.array_equal(matrix, matrix.T):
        raise StructuralInvariantViolation("Adjacency matrix is not symmetric")
    np.fill_diagonal(matrix, False)
    return matrix


def max_cardinality_order(adjacency: np.ndarray) -> List[int]:
    """Calculate a maximum cardinality ordering.

    Start with variable 0, then repeatedly add the variable with the most
    already-ordered neighbours until every variable is ordered.  Ties go
    to the lowest id, so disconnected graphs are handled: a candidate with
    no ordered neighbour is still picked in id order.

    Parameters
    ----------
    adjacency : numpy.ndarray
        ``n x n`` boolean adjacency matrix.

    Returns
    -------
    list of int
        A permutation of ``range(n)``.
    """
    n = adjacency.shape[0]
    if n == 0:
        return []
    done = np.zeros(n, dtype=bool)
    # counts[v] = number of ordered neighbours of v
    counts = np.zeros(n, dtype=np.int64)
    order = [0]
    done[0] = True
    counts += adjacency[0]
    for _ in range(1, n):
        candidates = np.where(done, -1, counts)
        best = int(np.argmax(candidates))  # first maximum is the lowest id
        order.append(best)
        done[best] = True
        counts += adjacency[best]
    return order


def fill_in(order: List[int], adjacency: np.ndarray) -> np.ndarray:
    """Triangulate *adjacency* in place with respect to *order*.

    In reverse order, insert edges between any non-adjacent neighbours
    that are lower numbered in the ordering.

    Returns
    -------
    numpy.ndarray
        The same (mutated) matrix.
    """
    for i in range(len(order) - 1, -1, -1):
        node = order[i]
        earlier = [w for w in order[:i] if adjacency[node, w]]
        for j, a in enumerate(earlier):
            for b in earlier[j + 1:]:
                if not adjacency[a, b]:
                    logger.debug("Fill in %d--%d", a, b)
                    adjacency[a, b] = True
                    adjacency[b, a] = True
    return adjacency


def find_cliques(
    order: List[int], adjacency: np.ndarray
) -> List[Optional[Set[int]]]:
    """Get the maximal cliques of a chordal graph.

    The candidate clique of variable ``v`` is ``v`` plus its neighbours
    that come earlier in *order*.  Candidates contained in another
    candidate are dropped.

    Returns
    -------
    list
        Indexed by variable id: the clique generated by that variable, or
        ``None`` when it is not maximal.
    """
    n = adjacency.shape[0]
    cliques: List[Optional[Set[int]]] = [None] * n
    for i in range(n - 1, -1, -1):
        node = order[i]
        clique = {node}
        clique.update(w for w in order[:i] if adjacency[node, w])
        cliques[node] = clique

    for a in range(n):
        for b in range(n):
            if (
                a != b
                and cliques[a] is not None
                and cliques[b] is not None
                and cliques[b] <= cliques[a]
            ):
                cliques[b] = None
    return cliques


# ------------------------------------------------------------------ #
#  Structural checks
# ------------------------------------------------------------------ #

def is_perfect_elimination_order(order: List[int], adjacency: np.ndarray) -> bool:
    """True if each variable's earlier neighbours are pairwise adjacent."""
    for i, node in enumerate(order):
        earlier = [w for w in order[:i] if adjacency[node, w]]
        for j, a in enumerate(earlier):
            for b in earlier[j + 1:]:
                if not adjacency[a, b]:
                    return False
    return True


def is_chordal(adjacency: np.ndarray) -> bool:
    """True if the graph is chordal.

    Maximum cardinality search yields a perfect elimination ordering iff
    the graph is chordal.
    """
    return is_perfect_elimination_order(
        max_cardinality_order(adjacency), adjacency
    )


def check_cliques_complete(
    cliques: List[Optional[Set[int]]], adjacency: np.ndarray
) -> None:
    """Raise if a clique contains two non-adjacent variables."""
    for key, clique in enumerate(cliques):
        if clique is None:
            continue
        members = sorted(clique)
        for j, a in enumerate(members):
            for b in members[j + 1:]:
                if not adjacency[a, b]:
                    raise StructuralInvariantViolation(
                        f"Clique {key} is not complete: {a} and {b} "
                        "are not adjacent"
                    )
