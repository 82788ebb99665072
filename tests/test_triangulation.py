"""Tests for cliqueflow/inference/triangulation.py.

Covers:
- Maximum cardinality ordering (ties, disconnected graphs)
- Fill-in: chordality, preservation of the original edges
- Maximal clique extraction
- Adjacency validation
"""

from __future__ import annotations

import itertools

import numpy as np
import pytest

from cliqueflow.core.errors import StructuralInvariantViolation
from cliqueflow.inference.triangulation import (
    as_adjacency,
    check_cliques_complete,
    fill_in,
    find_cliques,
    is_chordal,
    is_perfect_elimination_order,
    max_cardinality_order,
)


# ------------------------------------------------------------------ #
#  Helpers
# ------------------------------------------------------------------ #

def _graph(n: int, edges) -> np.ndarray:
    adj = np.zeros((n, n), dtype=bool)
    for a, b in edges:
        adj[a, b] = adj[b, a] = True
    return adj


def _random_graph(n: int, p: float, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    upper = np.triu(rng.random((n, n)) < p, k=1)
    return upper | upper.T


def _triangulate(adj: np.ndarray):
    adj = adj.copy()
    order = max_cardinality_order(adj)
    fill_in(order, adj)
    order = max_cardinality_order(adj)
    return order, adj


# ------------------------------------------------------------------ #
#  Ordering
# ------------------------------------------------------------------ #

class TestMaxCardinalityOrder:
    """Tests for maximum cardinality search."""

    def test_empty_graph(self):
        assert max_cardinality_order(np.zeros((0, 0), dtype=bool)) == []

    def test_starts_with_zero(self):
        adj = _graph(4, [(1, 2), (2, 3)])
        assert max_cardinality_order(adj)[0] == 0

    def test_chain(self):
        adj = _graph(4, [(0, 1), (1, 2), (2, 3)])
        assert max_cardinality_order(adj) == [0, 1, 2, 3]

    def test_prefers_most_ordered_neighbours(self):
        # 3 is adjacent to both 0 and 1, 2 only to 1
        adj = _graph(4, [(0, 1), (1, 2), (0, 3), (1, 3)])
        assert max_cardinality_order(adj) == [0, 1, 3, 2]

    def test_ties_break_to_lowest_id(self):
        adj = _graph(4, [(0, 3), (0, 2), (0, 1)])
        assert max_cardinality_order(adj) == [0, 1, 2, 3]

    def test_disconnected_graph(self):
        """Isolated vertices are still ordered, by id."""
        adj = _graph(5, [(3, 4)])
        assert max_cardinality_order(adj) == [0, 1, 2, 3, 4]

    def test_is_permutation(self):
        adj = _random_graph(12, 0.3, seed=1)
        assert sorted(max_cardinality_order(adj)) == list(range(12))


# ------------------------------------------------------------------ #
#  Fill-in
# ------------------------------------------------------------------ #

class TestFillIn:
    """Tests for Tarjan-Yannakakis fill-in."""

    def test_four_cycle_gets_a_chord(self):
        adj = _graph(4, [(0, 1), (1, 2), (2, 3), (3, 0)])
        assert not is_chordal(adj)
        _, tri = _triangulate(adj)
        assert is_chordal(tri)
        assert tri[0, 2] or tri[1, 3]

    def test_mutates_and_returns_input(self):
        adj = _graph(4, [(0, 1), (1, 2), (2, 3), (3, 0)])
        order = max_cardinality_order(adj)
        result = fill_in(order, adj)
        assert result is adj
        assert adj.sum() > 8

    def test_chordal_graph_unchanged(self):
        adj = _graph(4, [(0, 1), (1, 2), (0, 2), (2, 3)])
        before = adj.copy()
        fill_in(max_cardinality_order(adj), adj)
        np.testing.assert_array_equal(adj, before)

    @pytest.mark.parametrize("seed", range(8))
    def test_random_graphs_become_chordal(self, seed):
        adj = _random_graph(10, 0.3, seed=seed)
        order, tri = _triangulate(adj)
        assert is_chordal(tri)
        assert is_perfect_elimination_order(order, tri)

    @pytest.mark.parametrize("seed", range(8))
    def test_original_edges_preserved(self, seed):
        """Fill-in only adds edges."""
        adj = _random_graph(10, 0.3, seed=seed)
        _, tri = _triangulate(adj)
        assert np.all(tri[adj])

    def test_result_symmetric(self):
        adj = _random_graph(9, 0.35, seed=42)
        _, tri = _triangulate(adj)
        np.testing.assert_array_equal(tri, tri.T)


# ------------------------------------------------------------------ #
#  Cliques
# ------------------------------------------------------------------ #

class TestFindCliques:
    """Tests for maximal clique extraction."""

    def test_chain_cliques(self):
        adj = _graph(3, [(0, 1), (1, 2)])
        order, tri = _triangulate(adj)
        cliques = find_cliques(order, tri)
        found = sorted(sorted(c) for c in cliques if c is not None)
        assert found == [[0, 1], [1, 2]]
        assert cliques[0] is None

    def test_triangle_is_one_clique(self):
        adj = _graph(3, [(0, 1), (1, 2), (0, 2)])
        order, tri = _triangulate(adj)
        found = [c for c in find_cliques(order, tri) if c is not None]
        assert found == [{0, 1, 2}]

    def test_isolated_vertices(self):
        adj = _graph(3, [])
        order, tri = _triangulate(adj)
        found = sorted(sorted(c) for c in find_cliques(order, tri) if c is not None)
        assert found == [[0], [1], [2]]

    @pytest.mark.parametrize("seed", range(8))
    def test_maximality(self, seed):
        """No clique is a subset of another."""
        adj = _random_graph(10, 0.3, seed=seed)
        order, tri = _triangulate(adj)
        cliques = [c for c in find_cliques(order, tri) if c is not None]
        for a, b in itertools.permutations(cliques, 2):
            assert not a <= b

    @pytest.mark.parametrize("seed", range(8))
    def test_cliques_are_complete_and_cover_edges(self, seed):
        adj = _random_graph(10, 0.3, seed=seed)
        order, tri = _triangulate(adj)
        cliques = find_cliques(order, tri)
        check_cliques_complete(cliques, tri)
        for a, b in zip(*np.nonzero(np.triu(tri))):
            assert any(c is not None and {a, b} <= c for c in cliques)

    def test_check_cliques_complete_rejects(self):
        adj = _graph(3, [(0, 1)])
        with pytest.raises(StructuralInvariantViolation, match="not complete"):
            check_cliques_complete([{0, 1, 2}, None, None], adj)


# ------------------------------------------------------------------ #
#  Adjacency validation
# ------------------------------------------------------------------ #

class TestAsAdjacency:
    def test_copies_and_clears_diagonal(self):
        raw = [[1, 1], [1, 0]]
        adj = as_adjacency(raw)
        assert adj.dtype == bool
        assert not adj[0, 0]
        assert adj[0, 1]

    def test_caller_matrix_untouched(self):
        raw = np.eye(2, dtype=bool)
        as_adjacency(raw)
        assert raw[0, 0]

    def test_not_square(self):
        with pytest.raises(StructuralInvariantViolation, match="square"):
            as_adjacency(np.zeros((2, 3), dtype=bool))

    def test_not_symmetric(self):
        with pytest.raises(StructuralInvariantViolation, match="symmetric"):
            as_adjacency([[0, 1], [0, 0]])

    def test_wrong_size(self):
        with pytest.raises(StructuralInvariantViolation, match="expected 3"):
            as_adjacency(np.zeros((2, 2)), num_variables=3)

    def test_empty(self):
        assert as_adjacency([]).shape == (0, 0)
