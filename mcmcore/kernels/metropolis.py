"""
Class file for the Metropolis-Hastings kernel
"""

# Imports
import numpy as np
from mcmcore.core.state import ChainState
from mcmcore.core.kernel import KernelProtocol, TunableProtocol, evaluate_candidate
from mcmcore.core.proposal import ProposalProtocol
from mcmcore.core.model import ModelProtocol
from mcmcore.exceptions import ConfigurationError


class MetropolisHastingsKernel(KernelProtocol):
    """
    Metropolis-Hastings kernel for MCMC sampling.

    The kernel owns its proposal. With a zero-drift GaussianRandomWalk this is
    the fixed-step random-walk Metropolis sampler; asymmetric proposals get the
    Hastings correction through `proposal.proposal_logpdf`.

    Examples:
        >>> kernel = MetropolisHastingsKernel(model, GaussianRandomWalk.isotropic(1, step_size=1.0))
    """

    def __init__(self, model: ModelProtocol, proposal: ProposalProtocol):
        """
        Initialize the Metropolis-Hastings kernel with a model and a proposal.
        """
        self.model = model
        self.proposal = proposal

    def propose(self, current: ChainState, rng: np.random.Generator) -> ChainState:
        """
        Generate a candidate state from the current state using the proposal.
        """
        proposed_position = self.proposal.sample(current, rng).position
        return evaluate_candidate(self.model, proposed_position, current)

    def log_acceptance_ratio(self, current: ChainState, proposed: ChainState) -> float:
        """
        Compute the log acceptance ratio for the proposed state.
        """
        logq_forward, logq_reverse = self.proposal.proposal_logpdf(current, proposed)
        return (proposed.log_posterior + logq_reverse) - (current.log_posterior + logq_forward)

    def get_tunable(self) -> float:
        """Scale of the proposal"""
        if not isinstance(self.proposal, TunableProtocol):
            raise ConfigurationError(f"{type(self.proposal).__name__} has no tunable parameter")
        return self.proposal.get_tunable()

    def set_tunable(self, value: float) -> None:
        self.proposal.set_tunable(value)
