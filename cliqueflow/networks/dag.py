"""Directed acyclic graph (DAG) based Bayesian network.

Provides :class:`BeliefNetwork`, a high-level interface for building
and querying discrete Bayesian networks.  The graph structure is stored
in a :class:`networkx.DiGraph`; conditional probability distributions
(CPDs) are stored in a dictionary keyed by node name.

The network is the model the junction-tree engine consumes: it supplies
the moral graph as a boolean adjacency matrix (:meth:`moralize`), the
cardinality of every variable, and one :class:`ConditionalTable` per
variable.  Variables are numbered in insertion order.

Inference methods:

* :meth:`BeliefNetwork.marginal` – unconditional marginal.
* :meth:`BeliefNetwork.infer` – posterior given the observed evidence.
* :meth:`BeliefNetwork.compile` – a calibrated
  :class:`~cliqueflow.inference.junction_tree.MarginCalculator`.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import networkx as nx
import numpy as np

from cliqueflow.core.context import InferenceConfig, InferenceContext
from cliqueflow.core.types import ConditionalTable, Variable
from cliqueflow.inference.junction_tree import MarginCalculator


class BeliefNetwork:
    """Bayesian network backed by a :class:`networkx.DiGraph`.

    Each node has a name, a list of discrete states, and either a
    prior distribution (root nodes) or a conditional probability
    table (child nodes).  Evidence can be set on any node with
    :meth:`observe`, and queries answered with :meth:`marginal`
    and :meth:`infer`.

    Examples
    --------
    >>> bn = BeliefNetwork()
    >>> bn.add_node("A", np.array([0.4, 0.6]), states=["a0", "a1"])
    >>> bn.add_node("B", np.array([[0.9, 0.1], [0.3, 0.7]]),
    ...             parents=["A"], states=["b0", "b1"])
    >>> bn.marginal("B")
    array([...])
    """

    def __init__(self) -> None:
        self._graph: nx.DiGraph = nx.DiGraph()
        # name -> numpy array (prior for roots, CPT for children)
        self._cpds: Dict[str, np.ndarray] = {}
        # name -> list of state labels
        self._states: Dict[str, List[str]] = {}
        # name -> parent names, in CPT axis order
        self._parents: Dict[str, List[str]] = {}
        # name -> state index (observed evidence)
        self._evidence: Dict[str, int] = {}
        # calibrated engine, rebuilt after structural changes
        self._calculator: Optional[MarginCalculator] = None

    # ------------------------------------------------------------------ #
    #  Graph construction
    # ------------------------------------------------------------------ #

    def add_node(
        self,
        name: str,
        distribution: np.ndarray,
        parents: Optional[List[str]] = None,
        states: Optional[List[str]] = None,
    ) -> None:
        """Add a node to the network.

        Parameters
        ----------
        name : str
            Unique identifier for this variable.
        distribution : numpy.ndarray
            For root nodes (no parents): a 1-D array of prior
            probabilities.  For child nodes: a CPT of shape
            ``(p1_states, ..., pk_states, self_states)``.
        parents : list of str, optional
            Names of parent nodes.  Must already exist in the network.
        states : list of str, optional
            Labels for this variable's states.  If *None*, defaults to
            ``["s0", "s1", ...]``.

        Raises
        ------
        ValueError
            If *name* already exists, a parent is missing, or the
            distribution does not match the parents' states or does not
            sum to one.
        """
        if name in self._graph:
            raise ValueError(f"Node '{name}' already exists")

        parents = parents or []
        for p in parents:
            if p not in self._graph:
                raise ValueError(
                    f"Parent '{p}' must be added before child '{name}'"
                )

        dist = np.asarray(distribution, dtype=np.float64)
        num_states = dist.shape[-1] if dist.ndim else 0

        if states is None:
            states = [f"s{i}" for i in range(num_states)]

        if len(states) != num_states:
            raise ValueError(
                f"Number of states ({len(states)}) does not match "
                f"distribution shape ({num_states})"
            )

        expected = tuple(len(self._states[p]) for p in parents) + (num_states,)
        if dist.shape != expected:
            raise ValueError(
                f"Distribution for '{name}' has shape {dist.shape}, "
                f"expected {expected}"
            )
        tolerance = InferenceContext.current_config().tolerance
        if not np.allclose(dist.sum(axis=-1), 1.0, atol=tolerance, rtol=0.0):
            raise ValueError(
                f"Distribution for '{name}' must sum to 1 over its states"
            )

        self._graph.add_node(name)
        for p in parents:
            self._graph.add_edge(p, name)

        self._cpds[name] = dist
        self._states[name] = list(states)
        self._parents[name] = list(parents)
        self._calculator = None

    # ------------------------------------------------------------------ #
    #  Evidence
    # ------------------------------------------------------------------ #

    def observe(self, variable: str, evidence: object) -> None:
        """Set observed evidence on a variable.

        Parameters
        ----------
        variable : str
            Name of the observed variable.
        evidence : str or int
            The observed state (label string) or state index (int).

        Raises
        ------
        ValueError
            If the variable does not exist or the evidence value is
            invalid.
        """
        if variable not in self._graph:
            raise ValueError(f"Variable '{variable}' not in network")

        states = self._states[variable]
        if isinstance(evidence, (int, np.integer)):
            idx = int(evidence)
            if not 0 <= idx < len(states):
                raise ValueError(
                    f"State index {idx} out of range for '{variable}'"
                )
        else:
            if evidence not in states:
                raise ValueError(
                    f"'{evidence}' is not a valid state of '{variable}'. "
                    f"Valid states: {states}"
                )
            idx = states.index(evidence)

        self._evidence[variable] = idx

    def clear_evidence(self) -> None:
        """Remove all observed evidence."""
        self._evidence.clear()

    # ------------------------------------------------------------------ #
    #  Model description for the junction-tree engine
    # ------------------------------------------------------------------ #

    def index(self, name: str) -> int:
        """Variable id of node *name* (its insertion position)."""
        if name not in self._graph:
            raise ValueError(f"Variable '{name}' not in network")
        return self.nodes.index(name)

    @property
    def cardinalities(self) -> List[int]:
        """Number of states of each variable, by variable id."""
        return [len(self._states[name]) for name in self.nodes]

    def variables(self) -> List[Variable]:
        return [Variable(name=n, states=list(self._states[n])) for n in self.nodes]

    def conditional_tables(self) -> List[ConditionalTable]:
        """One :class:`ConditionalTable` per variable, by variable id."""
        ids = {name: i for i, name in enumerate(self.nodes)}
        tables = []
        for name in self.nodes:
            parents = [ids[p] for p in self.get_parents(name)]
            cards = [len(self._states[p]) for p in self.get_parents(name)]
            cards.append(len(self._states[name]))
            tables.append(
                ConditionalTable(ids[name], parents, cards, self._cpds[name].copy())
            )
        return tables

    def moralize(self) -> np.ndarray:
        """Adjacency matrix of the moral graph.

        Co-parents of every node are married and edge directions are
        dropped, turning the DAG into an undirected graph.
        """
        moral = nx.moral_graph(self._graph)
        if not self.nodes:
            return np.zeros((0, 0), dtype=bool)
        return nx.to_numpy_array(moral, nodelist=self.nodes) != 0

    # ------------------------------------------------------------------ #
    #  Inference
    # ------------------------------------------------------------------ #

    def compile(self, config: Optional[InferenceConfig] = None) -> MarginCalculator:
        """Return a new calibrated calculator with the current evidence entered."""
        calc = MarginCalculator(self.cardinalities, self.conditional_tables(), config)
        calc.process(self.moralize())
        for name, idx in self._evidence.items():
            calc.set_evidence(self.index(name), idx)
        return calc

    def _engine(self) -> MarginCalculator:
        """Cached calculator, brought in line with the observed evidence."""
        if self._calculator is None:
            calc = MarginCalculator(self.cardinalities, self.conditional_tables())
            calc.process(self.moralize())
            self._calculator = calc
        calc = self._calculator
        wanted = {self.index(name): idx for name, idx in self._evidence.items()}
        entered = calc.evidence
        if any(wanted.get(v) != idx for v, idx in entered.items()):
            calc.retract_evidence()
            entered = {}
        for v, idx in wanted.items():
            if entered.get(v) != idx:
                calc.set_evidence(v, idx)
        return calc

    def marginal(self, query: str) -> np.ndarray:
        """Return the unconditional marginal P(query).

        Parameters
        ----------
        query : str
            Name of the query variable.

        Returns
        -------
        numpy.ndarray
            Probability distribution over the states of *query*.
        """
        variable = self.index(query)
        evidence = self._evidence
        self._evidence = {}
        try:
            return self._engine().get_margin(variable)
        finally:
            self._evidence = evidence

    def infer(self, query: str) -> np.ndarray:
        """Return P(query | evidence) using current evidence.

        Parameters
        ----------
        query : str
            Name of the query variable.

        Returns
        -------
        numpy.ndarray
            Posterior probability distribution over the states of *query*.

        Raises
        ------
        DegenerateNormalizationError
            If the evidence has zero probability under the model.
        """
        variable = self.index(query)
        return self._engine().get_margin(variable)

    # ------------------------------------------------------------------ #
    #  Queries
    # ------------------------------------------------------------------ #

    @property
    def nodes(self) -> List[str]:
        """Return node names in insertion (topological) order."""
        return list(self._graph.nodes)

    @property
    def edges(self) -> List[tuple[str, str]]:
        """Return directed edges as (parent, child) tuples."""
        return list(self._graph.edges())

    @property
    def evidence(self) -> Dict[str, int]:
        """Return current evidence as {variable: state_index}."""
        return dict(self._evidence)

    def get_parents(self, name: str) -> List[str]:
        """Return parent names for *name*, in CPT axis order."""
        return list(self._parents[name])

    def get_states(self, name: str) -> List[str]:
        """Return the state labels for a variable."""
        return list(self._states[name])

    def __repr__(self) -> str:
        return (
            f"BeliefNetwork(nodes={list(self._graph.nodes)}, "
            f"edges={list(self._graph.edges)})"
        )
