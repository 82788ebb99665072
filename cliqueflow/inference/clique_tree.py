"""Clique tree (junction tree) construction.

The tree is an arena: :class:`CliqueTree` owns a list of :class:`Clique`
and a list of :class:`Separator` objects, and every link between them is
an integer index into those lists.  Cliques are stored in elimination
order, so a parent always has a lower index than its children.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import networkx as nx
import numpy as np

from cliqueflow.core.errors import StructuralInvariantViolation
from cliqueflow.inference.factor import FactorTable

logger = logging.getLogger(__name__)


class CliqueState(enum.Enum):
    """Propagation progress of a single clique."""

    UNINITIALIZED = "uninitialized"
    UPDATED_UP = "updated_up"
    UPDATED_DOWN = "updated_down"


@dataclass
class Separator:
    """Variables shared by a clique and its parent, with cached messages.

    ``child_message`` is the child's belief marginalized onto ``nodes``;
    ``parent_message`` is the parent's.  Both are normalized.
    """

    index: int
    nodes: Tuple[int, ...]
    child: int
    parent: int
    child_message: Optional[FactorTable] = None
    parent_message: Optional[FactorTable] = None


@dataclass
class Clique:
    """A maximal clique of the chordal graph and its tables."""

    index: int
    key: int  # variable whose elimination generated the clique
    nodes: Tuple[int, ...]
    cardinalities: Tuple[int, ...]
    parent: int = -1
    separator: Optional[int] = None
    children: List[int] = field(default_factory=list)
    potential: Optional[FactorTable] = None
    belief: Optional[FactorTable] = None
    marginals: Dict[int, np.ndarray] = field(default_factory=dict)
    claimed: List[int] = field(default_factory=list)
    state: CliqueState = CliqueState.UNINITIALIZED

    @property
    def is_root(self) -> bool:
        return self.parent < 0

    @property
    def size(self) -> int:
        return int(np.prod(self.cardinalities, dtype=np.int64))

    def __contains__(self, variable: int) -> bool:
        return variable in self.nodes


@dataclass
class CliqueTree:
    """Forest of cliques joined by separators."""

    num_variables: int
    order: List[int]
    cliques: List[Clique] = field(default_factory=list)
    separators: List[Separator] = field(default_factory=list)

    @property
    def roots(self) -> List[int]:
        return [c.index for c in self.cliques if c.is_root]

    def parent_separator(self, clique: int) -> Optional[Separator]:
        sep = self.cliques[clique].separator
        return None if sep is None else self.separators[sep]

    def containing(self, variable: int) -> List[int]:
        """Indices of all cliques that contain *variable*."""
        return [c.index for c in self.cliques if variable in c.nodes]

    def clique_of(self, variable: int) -> int:
        """Index of the first clique containing *variable*."""
        for clique in self.cliques:
            if variable in clique.nodes:
                return clique.index
        raise StructuralInvariantViolation(
            f"Variable {variable} is not in any clique"
        )

    def pre_order(self, root: int) -> Iterator[int]:
        """Cliques of the subtree under *root*, parents before children."""
        stack = [root]
        while stack:
            index = stack.pop()
            yield index
            stack.extend(reversed(self.cliques[index].children))

    def post_order(self, root: int) -> List[int]:
        """Cliques of the subtree under *root*, children before parents."""
        return list(reversed(list(self._reverse_pre_order(root))))

    def _reverse_pre_order(self, root: int) -> Iterator[int]:
        stack = [root]
        while stack:
            index = stack.pop()
            yield index
            stack.extend(self.cliques[index].children)

    def to_networkx(self) -> nx.Graph:
        """Undirected graph with one node per clique and one edge per separator."""
        graph = nx.Graph()
        for clique in self.cliques:
            graph.add_node(clique.index, nodes=clique.nodes)
        for sep in self.separators:
            graph.add_edge(sep.child, sep.parent, separator=sep.nodes)
        return graph

    def path(self, a: int, b: int) -> List[int]:
        """Cliques on the tree path from clique *a* to clique *b*."""
        return nx.shortest_path(self.to_networkx(), a, b)

    def __str__(self) -> str:
        lines = []
        for root in self.roots:
            for index in self.pre_order(root):
                clique = self.cliques[index]
                sep = self.parent_separator(index)
                lines.append(
                    f"Clique {clique.index} {clique.nodes} "
                    f"S{sep.nodes if sep is not None else ()} "
                    f"parent {clique.parent}"
                )
        return "\n".join(lines)


# ------------------------------------------------------------------ #
#  Separators and parent links
# ------------------------------------------------------------------ #

def find_separators(
    order: List[int], cliques: List[Optional[Set[int]]]
) -> List[Optional[Set[int]]]:
    """Calculate separator sets in the clique tree.

    Walking *order*, each clique's separator is its intersection with the
    union of all cliques processed before it.
    """
    separators: List[Optional[Set[int]]] = [None] * len(cliques)
    processed: Set[int] = set()
    for node in order:
        clique = cliques[node]
        if clique is not None:
            separators[node] = clique & processed
            processed |= clique
    return separators


def find_parent_cliques(
    order: List[int],
    cliques: List[Optional[Set[int]]],
    separators: List[Optional[Set[int]]],
) -> List[int]:
    """Pick each clique's parent: the first earlier clique covering its separator.

    Returns a list indexed by variable id holding the key of the parent
    clique, or -1 for roots and non-maximal candidates.

    Raises
    ------
    StructuralInvariantViolation
        If a non-empty separator is covered by no earlier clique.
    """
    parents = [-1] * len(cliques)
    seen: List[int] = []
    for node in order:
        clique = cliques[node]
        if clique is None:
            continue
        sep = separators[node]
        if sep:
            for other in seen:
                if sep <= cliques[other]:
                    parents[node] = other
                    break
            else:
                raise StructuralInvariantViolation(
                    f"No clique covers separator {sorted(sep)} of "
                    f"clique {sorted(clique)}"
                )
        seen.append(node)
    return parents


def build_clique_tree(
    order: List[int],
    cliques: List[Optional[Set[int]]],
    cardinalities: Sequence[int],
) -> CliqueTree:
    """Assemble the arena from cliques, separators and parent links."""
    separators = find_separators(order, cliques)
    parents = find_parent_cliques(order, cliques, separators)

    tree = CliqueTree(num_variables=len(cardinalities), order=list(order))
    key_to_index: Dict[int, int] = {}
    for node in order:
        clique = cliques[node]
        if clique is None:
            continue
        if not clique:
            raise StructuralInvariantViolation(f"Clique {node} is empty")
        members = tuple(sorted(clique))
        entry = Clique(
            index=len(tree.cliques),
            key=node,
            nodes=members,
            cardinalities=tuple(int(cardinalities[v]) for v in members),
        )
        key_to_index[node] = entry.index
        tree.cliques.append(entry)

        if parents[node] >= 0:
            parent_index = key_to_index[parents[node]]
            sep = Separator(
                index=len(tree.separators),
                nodes=tuple(sorted(separators[node])),
                child=entry.index,
                parent=parent_index,
            )
            tree.separators.append(sep)
            entry.parent = parent_index
            entry.separator = sep.index
            tree.cliques[parent_index].children.append(entry.index)
        elif separators[node]:
            raise StructuralInvariantViolation(
                f"Root clique {members} has non-empty separator "
                f"{sorted(separators[node])}"
            )

        logger.debug(
            "Clique %d %s S%s parent clique %d",
            node, members, tuple(sorted(separators[node])), parents[node],
        )
    return tree


# ------------------------------------------------------------------ #
#  Structural checks
# ------------------------------------------------------------------ #

def check_running_intersection(tree: CliqueTree) -> None:
    """Raise unless the cliques holding each variable form a connected subtree."""
    graph = tree.to_networkx()
    if graph.number_of_nodes() and not nx.is_forest(graph):
        raise StructuralInvariantViolation("Clique graph is not a forest")
    for variable in range(tree.num_variables):
        holders = tree.containing(variable)
        if not holders:
            raise StructuralInvariantViolation(
                f"Variable {variable} is not in any clique"
            )
        if not nx.is_connected(graph.subgraph(holders)):
            raise StructuralInvariantViolation(
                f"Running intersection violated for variable {variable}: "
                f"cliques {holders} are not contiguous"
            )
