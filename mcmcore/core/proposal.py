"""
Template class file for proposal
"""

# Imports
import numpy as np
from typing import Protocol, Tuple
from mcmcore.core.state import ChainState


class ProposalProtocol(Protocol):
    """
    Protocol for proposal distributions used by Metropolis-Hastings kernels
    """

    def sample(self, current_state: ChainState, rng: np.random.Generator) -> ChainState:
        """Generate a candidate position from the current state (position only, no density)"""
        raise NotImplementedError("Implement sample method")

    def proposal_logpdf(self, current_state: ChainState, proposed_state: ChainState) -> Tuple[float, float]:
        """Compute forward (proposed given current) and reverse (current given proposed) log probability"""
        raise NotImplementedError("Implement proposal_logpdf method")
