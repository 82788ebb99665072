"""Network (model) representations consumed by the inference engine."""

from cliqueflow.networks.dag import BeliefNetwork

__all__ = ["BeliefNetwork"]
