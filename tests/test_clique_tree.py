"""Tests for cliqueflow/inference/clique_tree.py.

Covers:
- Separators from the running union of processed cliques
- Parent selection and root detection
- Arena construction (indices, children, separators)
- Running intersection property on random graphs
- Traversal orders
"""

from __future__ import annotations

import networkx as nx
import numpy as np
import pytest

from cliqueflow.core.errors import StructuralInvariantViolation
from cliqueflow.inference.clique_tree import (
    CliqueState,
    build_clique_tree,
    check_running_intersection,
    find_parent_cliques,
    find_separators,
)
from cliqueflow.inference.triangulation import (
    fill_in,
    find_cliques,
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


def _tree_for(adj: np.ndarray, cards=None):
    adj = adj.copy()
    n = adj.shape[0]
    order = max_cardinality_order(adj)
    fill_in(order, adj)
    order = max_cardinality_order(adj)
    cliques = find_cliques(order, adj)
    return build_clique_tree(order, cliques, cards or [2] * n)


# ------------------------------------------------------------------ #
#  Separators and parents
# ------------------------------------------------------------------ #

class TestSeparators:
    """Tests for find_separators / find_parent_cliques."""

    def test_chain_separators(self):
        order = [0, 1, 2, 3]
        cliques = [None, {0, 1}, {1, 2}, {2, 3}]
        seps = find_separators(order, cliques)
        assert seps == [None, set(), {1}, {2}]

    def test_chain_parents(self):
        order = [0, 1, 2, 3]
        cliques = [None, {0, 1}, {1, 2}, {2, 3}]
        seps = find_separators(order, cliques)
        assert find_parent_cliques(order, cliques, seps) == [-1, -1, 1, 2]

    def test_parent_is_first_covering_clique(self):
        # both {0, 1} and {1, 2} cover separator {1} of {1, 3}
        order = [0, 1, 2, 3]
        cliques = [None, {0, 1}, {1, 2}, {1, 3}]
        seps = find_separators(order, cliques)
        assert seps[3] == {1}
        assert find_parent_cliques(order, cliques, seps)[3] == 1

    def test_uncovered_separator_raises(self):
        order = [0, 1, 2]
        cliques = [{0}, {1}, {0, 1, 2}]
        seps = [set(), set(), {0, 1}]
        with pytest.raises(StructuralInvariantViolation, match="No clique covers"):
            find_parent_cliques(order, cliques, seps)


# ------------------------------------------------------------------ #
#  Arena
# ------------------------------------------------------------------ #

class TestBuildCliqueTree:
    """Tests for the index-based clique tree."""

    def test_chain_tree(self):
        tree = _tree_for(_graph(3, [(0, 1), (1, 2)]), cards=[2, 3, 4])
        assert [c.nodes for c in tree.cliques] == [(0, 1), (1, 2)]
        assert tree.roots == [0]
        child = tree.cliques[1]
        assert child.parent == 0
        assert tree.cliques[0].children == [1]
        sep = tree.parent_separator(1)
        assert sep.nodes == (1,)
        assert (sep.child, sep.parent) == (1, 0)
        assert child.cardinalities == (3, 4)
        assert child.size == 12
        assert child.state is CliqueState.UNINITIALIZED

    def test_root_has_no_separator(self):
        tree = _tree_for(_graph(3, [(0, 1), (1, 2)]))
        assert tree.parent_separator(0) is None
        assert tree.cliques[0].is_root

    def test_disconnected_graph_has_several_roots(self):
        tree = _tree_for(_graph(4, [(0, 1), (2, 3)]))
        assert len(tree.roots) == 2
        assert tree.separators == []

    def test_parents_precede_children(self):
        tree = _tree_for(_random_graph(12, 0.25, seed=3))
        for clique in tree.cliques:
            assert clique.parent < clique.index

    def test_clique_of_and_containing(self):
        tree = _tree_for(_graph(4, [(0, 1), (1, 2), (2, 3)]))
        assert tree.clique_of(1) == 0
        assert tree.containing(1) == [0, 1]
        assert 2 in tree.cliques[tree.clique_of(3)]

    def test_clique_of_missing_variable(self):
        tree = _tree_for(_graph(2, [(0, 1)]))
        with pytest.raises(StructuralInvariantViolation, match="not in any clique"):
            tree.clique_of(7)

    def test_str_lists_cliques(self):
        tree = _tree_for(_graph(3, [(0, 1), (1, 2)]))
        text = str(tree)
        assert "Clique 0 (0, 1)" in text
        assert "parent 0" in text


# ------------------------------------------------------------------ #
#  Running intersection
# ------------------------------------------------------------------ #

class TestRunningIntersection:
    """The cliques holding any variable form a connected subtree."""

    @pytest.mark.parametrize("seed", range(10))
    def test_random_graphs(self, seed):
        tree = _tree_for(_random_graph(12, 0.25, seed=seed))
        check_running_intersection(tree)

    @pytest.mark.parametrize("seed", range(5))
    def test_paths_contain_shared_variables(self, seed):
        """Every clique on the path between two holders also holds the variable."""
        tree = _tree_for(_random_graph(10, 0.3, seed=seed))
        graph = tree.to_networkx()
        for variable in range(tree.num_variables):
            holders = tree.containing(variable)
            for a in holders:
                for b in holders:
                    if a < b and nx.has_path(graph, a, b):
                        for index in tree.path(a, b):
                            assert variable in tree.cliques[index].nodes

    def test_forest(self):
        tree = _tree_for(_random_graph(15, 0.2, seed=11))
        graph = tree.to_networkx()
        assert nx.is_forest(graph)
        assert nx.number_connected_components(graph) == len(tree.roots)

    def test_violation_detected(self):
        tree = _tree_for(_graph(4, [(0, 1), (1, 2), (2, 3)]))
        # pretend the leaf clique also holds variable 0
        leaf = tree.cliques[-1]
        leaf.nodes = leaf.nodes + (0,)
        with pytest.raises(StructuralInvariantViolation, match="Running intersection"):
            check_running_intersection(tree)


# ------------------------------------------------------------------ #
#  Traversals
# ------------------------------------------------------------------ #

class TestTraversal:
    def test_post_order_children_first(self):
        tree = _tree_for(_random_graph(12, 0.25, seed=5))
        for root in tree.roots:
            seen = set()
            for index in tree.post_order(root):
                assert all(child in seen for child in tree.cliques[index].children)
                seen.add(index)

    def test_pre_order_parents_first(self):
        tree = _tree_for(_random_graph(12, 0.25, seed=5))
        visited = []
        for root in tree.roots:
            visited.extend(tree.pre_order(root))
        assert sorted(visited) == list(range(len(tree.cliques)))
        position = {index: i for i, index in enumerate(visited)}
        for clique in tree.cliques:
            if not clique.is_root:
                assert position[clique.parent] < position[clique.index]
