"""Example usage of the cliqueflow package.

This example demonstrates the core features of the cliqueflow package including:
- Building a discrete Bayesian network
- Exact marginals from a calibrated junction tree
- Incremental evidence and retraction
- Working with MarginCalculator directly
- Using the InferenceContext context manager
"""

import logging

import numpy as np

from cliqueflow import (
    BeliefNetwork,
    ConditionalTable,
    DegenerateNormalizationError,
    InferenceContext,
    MarginCalculator,
)


def _asia_network():
    """The classic 'Asia' chest clinic network."""
    bn = BeliefNetwork()
    yes_no = ["yes", "no"]
    bn.add_node("asia", np.array([0.01, 0.99]), states=yes_no)
    bn.add_node("smoke", np.array([0.5, 0.5]), states=yes_no)
    bn.add_node("tub", np.array([[0.05, 0.95], [0.01, 0.99]]),
                parents=["asia"], states=yes_no)
    bn.add_node("lung", np.array([[0.1, 0.9], [0.01, 0.99]]),
                parents=["smoke"], states=yes_no)
    bn.add_node("bronc", np.array([[0.6, 0.4], [0.3, 0.7]]),
                parents=["smoke"], states=yes_no)
    # deterministic OR of tub and lung
    either = np.array([
        [[1.0, 0.0], [1.0, 0.0]],
        [[1.0, 0.0], [0.0, 1.0]],
    ])
    bn.add_node("either", either, parents=["tub", "lung"], states=yes_no)
    bn.add_node("xray", np.array([[0.98, 0.02], [0.05, 0.95]]),
                parents=["either"], states=yes_no)
    dysp = np.array([
        [[0.9, 0.1], [0.7, 0.3]],
        [[0.8, 0.2], [0.1, 0.9]],
    ])
    bn.add_node("dysp", dysp, parents=["bronc", "either"], states=yes_no)
    return bn


def network_example():
    """Demonstrate marginals and posteriors on a Bayesian network."""
    print("=" * 60)
    print("Belief Network Example")
    print("=" * 60)

    bn = _asia_network()
    print("\n1. Prior marginals P(X = yes)")
    for name in bn.nodes:
        print(f"   {name:>6}: {bn.marginal(name)[0]:.4f}")

    print("\n2. Posteriors given dysp = yes, xray = yes")
    bn.observe("dysp", "yes")
    bn.observe("xray", "yes")
    for name in ("tub", "lung", "bronc"):
        print(f"   {name:>6}: {bn.infer(name)[0]:.4f}")

    print("\n3. Adding smoke = no")
    bn.observe("smoke", "no")
    print(f"     lung: {bn.infer('lung')[0]:.4f}")

    print("\n4. Calibrated junction tree")
    calc = bn.compile()
    print(calc.tree)


def calculator_example():
    """Demonstrate MarginCalculator on a raw adjacency matrix."""
    print("\n" + "=" * 60)
    print("MarginCalculator Example")
    print("=" * 60)

    # A -- B -- C -- D -- A: a four-cycle that needs a chord
    cards = [2, 2, 2, 2]
    tables = [
        ConditionalTable(0, [], [2], [0.3, 0.7]),
        ConditionalTable(1, [0], [2, 2], [0.9, 0.1, 0.2, 0.8]),
        ConditionalTable(3, [0], [2, 2], [0.6, 0.4, 0.5, 0.5]),
        ConditionalTable(2, [1, 3], [2, 2, 2],
                         [0.99, 0.01, 0.7, 0.3, 0.6, 0.4, 0.05, 0.95]),
    ]
    adjacency = np.zeros((4, 4), dtype=bool)
    for a, b in [(0, 1), (1, 2), (2, 3), (3, 0), (1, 3)]:
        adjacency[a, b] = adjacency[b, a] = True

    calc = MarginCalculator(cards, tables)
    margins = calc.process(adjacency)
    print("\n1. Prior margins")
    for v, margin in margins.items():
        print(f"   {v}: {np.round(margin, 4)}")

    print("\n2. Evidence C = 0")
    for v, margin in calc.set_evidence(2, 0).items():
        print(f"   {v}: {np.round(margin, 4)}")

    print("\n3. Retracting evidence")
    print(f"   A: {np.round(calc.retract_evidence()[0], 4)}")

    print("\n4. Contradictory evidence")
    calc.set_evidence(0, 0)
    try:
        calc.set_evidence(0, 1)
    except DegenerateNormalizationError as exc:
        print(f"   rejected: {exc}")
    print(f"   evidence kept: {calc.evidence}")


def context_manager_example():
    """Demonstrate the InferenceContext context manager."""
    print("\n" + "=" * 60)
    print("InferenceContext Example")
    print("=" * 60)

    bn = _asia_network()
    with InferenceContext(validate=True, max_workers=2) as ctx:
        calc = bn.compile()
        print(f"\n   Context active: {InferenceContext.get_active_context() is ctx}")
        print(f"   Config: {calc.config}")
    print(f"   After exiting: {InferenceContext.get_active_context()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("\n" + "=" * 60)
    print("cliqueflow Package Examples")
    print("=" * 60)

    network_example()
    calculator_example()
    context_manager_example()

    print("\n" + "=" * 60)
    print("Examples completed successfully!")
    print("=" * 60 + "\n")
