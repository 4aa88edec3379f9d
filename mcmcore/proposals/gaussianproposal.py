"""
Gaussian-based proposals for MCMC sampling
"""

from typing import Tuple

import numpy as np

from mcmcore.core.proposal import ProposalProtocol
from mcmcore.core.state import ChainState
from mcmcore.utils.tools import cholesky_factor, lognormpdf


class _GaussianBase:
    """Shared covariance handling: proposal covariance is scale**2 * sigma"""

    def __init__(self, mu: np.ndarray, sigma: np.ndarray, scale: float = 1.0):
        self.mu = np.asarray(mu, dtype=float)
        if self.mu.ndim != 2 or self.mu.shape[1] != 1:
            raise ValueError(f"mu must have shape (d, 1), got {self.mu.shape}")
        if not scale > 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.scale = float(scale)
        self.cov = sigma

    @property
    def cov(self) -> np.ndarray:
        """Unscaled covariance"""
        return self._cov

    @cov.setter
    def cov(self, sigma: np.ndarray) -> None:
        sigma = np.atleast_2d(np.asarray(sigma, dtype=float))
        if sigma.shape != (self.dim, self.dim):
            raise ValueError(f"sigma must have shape ({self.dim}, {self.dim}), got {sigma.shape}")
        self._chol = cholesky_factor(sigma)
        self._cov = sigma

    @property
    def dim(self) -> int:
        return self.mu.shape[0]

    @property
    def proposal_cov(self) -> np.ndarray:
        """Effective proposal covariance"""
        return self.scale**2 * self._cov

    @property
    def proposal_chol(self) -> np.ndarray:
        return self.scale * self._chol

    def get_tunable(self) -> float:
        return self.scale

    def set_tunable(self, value: float) -> None:
        self.scale = float(value)

    def _draw(self, rng: np.random.Generator) -> np.ndarray:
        return self.proposal_chol @ rng.standard_normal((self.dim, 1))


class GaussianRandomWalk(_GaussianBase, ProposalProtocol):
    """Random walk proposal centered at current state (plus optional drift mu)"""

    def __init__(self, mu: np.ndarray, sigma: np.ndarray, scale: float = 1.0):
        super().__init__(mu, sigma, scale)

    @classmethod
    def isotropic(cls, dim: int, step_size: float = 1.0) -> "GaussianRandomWalk":
        """Zero-drift walk with covariance step_size**2 * I"""
        return cls(mu=np.zeros((dim, 1)), sigma=np.eye(dim), scale=step_size)

    @property
    def is_symmetric(self) -> bool:
        return not np.any(self.mu)

    def sample(self, current_state: ChainState, rng: np.random.Generator) -> ChainState:
        """Generate candidate state from current state"""
        step = self.mu + self._draw(rng)
        return ChainState(position=current_state.position + step)

    def proposal_logpdf(self, current_state: ChainState, proposed_state: ChainState) -> Tuple[float, float]:
        """Calculate forward and reverse log probability"""
        if self.is_symmetric:
            # q(x'|x) == q(x|x'), the correction cancels
            return 0.0, 0.0
        chol = self.proposal_chol
        logq_forward = lognormpdf(proposed_state.position, current_state.position + self.mu, chol=chol)
        logq_reverse = lognormpdf(current_state.position, proposed_state.position + self.mu, chol=chol)

        return logq_forward, logq_reverse


class IndependentProposal(_GaussianBase, ProposalProtocol):
    """Independent proposal from fixed Gaussian distribution"""

    def __init__(self, mu: np.ndarray, sigma: np.ndarray, scale: float = 1.0):
        super().__init__(mu, sigma, scale)

    def sample(self, _: ChainState, rng: np.random.Generator) -> ChainState:
        return ChainState(position=self.mu + self._draw(rng))

    def proposal_logpdf(self, current_state: ChainState, proposed_state: ChainState) -> Tuple[float, float]:
        """Calculate forward and reverse log probability"""
        chol = self.proposal_chol
        logq_forward = lognormpdf(proposed_state.position, self.mu, chol=chol)
        logq_reverse = lognormpdf(current_state.position, self.mu, chol=chol)
        return logq_forward, logq_reverse
