"""
Class file for the adaptive Metropolis kernel (Haario et al.)

Reference: Haario, H., E. Saksman, and J. Tamminen. "An Adaptive Metropolis
Algorithm." Bernoulli 7, no. 2 (2001): 223-242.
"""

# Imports
from typing import Tuple

import numpy as np

from mcmcore.core.kernel import metropolis_step
from mcmcore.core.model import ModelProtocol
from mcmcore.core.state import ChainState
from mcmcore.kernels.metropolis import MetropolisHastingsKernel
from mcmcore.proposals.gaussianproposal import GaussianRandomWalk
from mcmcore.utils.logging import McmcoreLogger
from mcmcore.utils.tools import (
    RunningMoments,
    is_positive_definite,
    nearest_positive_definite,
    optimal_acceptance,
    optimal_scale,
)

logger = McmcoreLogger.module_logger(__name__)


class AdaptiveMetropolisKernel(MetropolisHastingsKernel):
    """
    Random-walk Metropolis kernel that learns its proposal covariance.

    Every visited position (accepted or repeated) updates a running mean and
    covariance. From `adapt_start` visited states on, every `adapt_interval`
    iterations the proposal covariance is reset to

        (2.38^2 / d) * (empirical covariance + eps * I).

    The proposal scale on top of that covariance stays tunable, so an
    AdaptiveTuner can be attached as well. Learning stops for good once
    `freeze()` is called; the chain runner does this at `adapt_until`.

    Attributes:
        target_acceptance (float): Optimal acceptance rate for this
            dimension, 0.44 for d == 1 and 0.234 otherwise. The default
            tuner factory steers towards it unless the config sets a target.
    """

    def __init__(self, model: ModelProtocol, initial_cov: np.ndarray, scale: float = 1.0, adapt_start: int = 100, adapt_interval: int = 50, eps: float = 1e-06):
        initial_cov = np.atleast_2d(np.asarray(initial_cov, dtype=float))
        dim = initial_cov.shape[0]
        if adapt_start < 2:
            raise ValueError("adapt_start must be >= 2 to estimate a covariance")
        if adapt_interval < 1:
            raise ValueError("adapt_interval must be >= 1")

        super().__init__(model, GaussianRandomWalk(mu=np.zeros((dim, 1)), sigma=initial_cov, scale=scale))
        self.dim = dim
        self.adapt_start = adapt_start
        self.adapt_interval = adapt_interval
        self.eps = eps
        self.moments = RunningMoments(dim)
        self.target_acceptance = optimal_acceptance(dim)
        self.frozen = False
        self.n_rescales = 0

    def step(self, current: ChainState, rng: np.random.Generator) -> Tuple[ChainState, bool]:
        state, accepted = metropolis_step(self, current, rng)

        if not self.frozen:
            self.moments.update(state.position)
            count = self.moments.count
            if count >= self.adapt_start and count % self.adapt_interval == 0:
                self._rescale()

        return state, accepted

    def _rescale(self) -> None:
        """Reset the proposal covariance from the running estimate"""
        cov = optimal_scale(self.dim) * (self.moments.covariance + self.eps * np.eye(self.dim))
        if not is_positive_definite(cov):
            cov = nearest_positive_definite(cov)
        self.proposal.cov = cov
        self.n_rescales += 1
        logger.debug("Adaptive Metropolis covariance update %d after %d states", self.n_rescales, self.moments.count)

    def freeze(self) -> None:
        """Stop learning the covariance; the kernel is time-homogeneous from here on"""
        self.frozen = True
