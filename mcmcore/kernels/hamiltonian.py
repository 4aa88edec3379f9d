"""
Class file for the Hamiltonian Monte Carlo kernel
"""

# Imports
import math
from typing import Callable, Optional, Tuple

import numpy as np

from mcmcore.core.kernel import KernelProtocol, evaluate_candidate
from mcmcore.core.model import DENSITY_ERRORS, ModelProtocol
from mcmcore.core.state import ChainState
from mcmcore.utils.logging import McmcoreLogger

logger = McmcoreLogger.module_logger(__name__)


class HamiltonianKernel(KernelProtocol):
    """
    Hamiltonian Monte Carlo with a leapfrog integrator and diagonal mass matrix.

    Each step draws a fresh momentum p ~ N(0, M) from the chain's generator,
    integrates `n_leapfrog` leapfrog steps of size `step_size` and accepts with

        log r = [log pi(x') - K(p')] - [log pi(x) - K(p)],  K(p) = p^T M^{-1} p / 2.

    The momentum is discarded after every step, so the momentum flip needed
    for reversibility does not change K and is left out.

    Args:
        model: Target density.
        gradient: Callable returning the gradient of the log-density at a
            (d, 1) position, as a (d, 1) or (d,) array.
        step_size: Leapfrog step size. Tunable.
        n_leapfrog: Number of leapfrog steps per proposal.
        mass: Diagonal of the mass matrix, shape (d,) or (d, 1). Identity if None.
        jitter: If positive, the step size is drawn uniformly from
            [(1 - jitter) * step_size, (1 + jitter) * step_size] every step.
    """

    def __init__(self, model: ModelProtocol, gradient: Callable[[np.ndarray], np.ndarray], step_size: float = 0.1, n_leapfrog: int = 10, mass: Optional[np.ndarray] = None, jitter: float = 0.0):
        if not step_size > 0:
            raise ValueError("step_size must be positive")
        if n_leapfrog < 1:
            raise ValueError("n_leapfrog must be >= 1")
        if not 0.0 <= jitter < 1.0:
            raise ValueError("jitter must lie in [0, 1)")
        self.model = model
        self.gradient = gradient
        self.step_size = float(step_size)
        self.n_leapfrog = n_leapfrog
        self.mass = None if mass is None else np.asarray(mass, dtype=float).reshape(-1, 1)
        if self.mass is not None and np.any(self.mass <= 0):
            raise ValueError("mass must be positive")
        self.jitter = jitter

    def _mass(self, dim: int) -> np.ndarray:
        if self.mass is None:
            return np.ones((dim, 1))
        if self.mass.shape[0] != dim:
            raise ValueError(f"mass has {self.mass.shape[0]} entries, state has dimension {dim}")
        return self.mass

    def _grad(self, position: np.ndarray) -> np.ndarray:
        return np.asarray(self.gradient(position), dtype=float).reshape(position.shape)

    @staticmethod
    def kinetic_energy(momentum: np.ndarray, mass: np.ndarray) -> float:
        return 0.5 * float(np.sum(momentum**2 / mass))

    def leapfrog(self, position: np.ndarray, momentum: np.ndarray, mass: np.ndarray, eps: float) -> Tuple[np.ndarray, np.ndarray]:
        """Integrate Hamilton's equations for n_leapfrog steps; returns new arrays"""
        x = position.copy()
        p = momentum + 0.5 * eps * self._grad(x)
        for i in range(self.n_leapfrog):
            x = x + eps * p / mass
            g = self._grad(x)
            if not (np.all(np.isfinite(x)) and np.all(np.isfinite(g))):
                raise FloatingPointError(f"trajectory diverged at leapfrog step {i + 1}")
            if i < self.n_leapfrog - 1:
                p = p + eps * g
        p = p + 0.5 * eps * g
        return x, p

    def propose(self, current: ChainState, rng: np.random.Generator) -> ChainState:
        """
        Draw a momentum and integrate to the candidate. The kinetic energies
        at both ends are stored in the candidate's metadata.
        """
        x0 = np.asarray(current.position, dtype=float)
        mass = self._mass(current.dim)
        p0 = np.sqrt(mass) * rng.standard_normal(x0.shape)

        eps = self.step_size
        if self.jitter > 0.0:
            eps *= 1.0 + self.jitter * (2.0 * rng.random() - 1.0)

        k0 = self.kinetic_energy(p0, mass)
        try:
            x1, p1 = self.leapfrog(x0, p0, mass, eps)
        except DENSITY_ERRORS as err:
            logger.debug("Rejecting divergent trajectory at iteration %d: %s", current.iteration + 1, err)
            return ChainState(
                position=x0.copy(),
                log_posterior=-math.inf,
                iteration=current.iteration + 1,
                metadata={"invalid_proposal": True, "kinetic_energy_current": k0},
            )

        k1 = self.kinetic_energy(p1, mass)
        return evaluate_candidate(
            self.model, x1, current,
            kinetic_energy_current=k0,
            kinetic_energy_proposed=k1,
            step_size_used=eps,
        )

    def log_acceptance_ratio(self, current: ChainState, proposed: ChainState) -> float:
        k0 = proposed.metadata["kinetic_energy_current"]
        k1 = proposed.metadata["kinetic_energy_proposed"]
        return (proposed.log_posterior - k1) - (current.log_posterior - k0)

    def get_tunable(self) -> float:
        return self.step_size

    def set_tunable(self, value: float) -> None:
        self.step_size = float(value)
