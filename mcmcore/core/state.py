"""
Chain state representation for MCMC sampling.

This module provides the ChainState dataclass which holds a single point of a
Markov chain: the position in parameter space, the target log-density at that
position, the iteration index and per-step bookkeeping.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import numpy as np


@dataclass
class ChainState:
    """
    Represents the state of a Markov chain at a single iteration.

    States are values: kernels never modify a state they receive, they build
    a new one. The position array of a state must not be written to in place
    once the state exists.

    Attributes:
        position (np.ndarray):
            Current position in parameter space. Must have shape (d, 1).

        log_posterior (Optional[float]):
            Target log-density at `position`. If None and both log_prior and
            log_likelihood are provided, computed automatically. Default: None.

        log_prior (Optional[float]):
            Log prior component, used with log_likelihood. Default: None.

        log_likelihood (Optional[float]):
            Log likelihood component, used with log_prior. Default: None.

        iteration (int):
            Iteration index. The initial state of a chain has index 0 and every
            kernel step, accepted or rejected, advances it by one.

        metadata (Optional[Dict[str, Any]]):
            Per-step information such as:
            - 'is_accepted': Whether the step that produced this state accepted
            - 'acceptance_probability': min(1, exp(log acceptance ratio))
            - 'invalid_proposal': Candidate density could not be evaluated
            - kernel-specific entries (energies, kernel index, ...)
            Default: empty dict (None allowed).

    Examples:
        Direct posterior specification:
        >>> state = ChainState(position=np.array([[1.0], [2.0]]), log_posterior=-5.2)

        Component-based specification:
        >>> state = ChainState(
        ...     position=np.array([[1.0], [2.0]]),
        ...     log_prior=-2.0,
        ...     log_likelihood=-3.2,
        ... )
        >>> state.log_posterior
        -5.2
    """

    position: np.ndarray
    """Current position in parameter space (d, 1)."""

    log_posterior: Optional[float] = None
    """Target log-density (computed from prior + likelihood if not provided)."""

    log_prior: Optional[float] = None
    log_likelihood: Optional[float] = None

    iteration: int = 0
    """Iteration index; 0 for the initial state."""

    metadata: Optional[Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.position, np.ndarray):
            raise TypeError("position must be a numpy.ndarray with shape (d, 1).")
        if self.position.ndim != 2 or self.position.shape[1] != 1:
            raise ValueError(
                f"position must have shape (d, 1), got {self.position.shape}."
            )
        if self.iteration < 0:
            raise ValueError(f"iteration must be >= 0, got {self.iteration}.")
        if self.metadata is not None and not isinstance(self.metadata, dict):
            raise TypeError("metadata must be a dict or None.")

        if (
            self.log_posterior is None
            and self.log_prior is not None
            and self.log_likelihood is not None
        ):
            self.log_posterior = self.log_prior + self.log_likelihood

    @property
    def dim(self) -> int:
        """Dimension d of the parameter space."""
        return self.position.shape[0]

    def advanced(self, **metadata: Any) -> "ChainState":
        """
        Copy of this state one iteration later, at the same position.

        This is the output of a rejected step: the chain repeats its previous
        position but the iteration index still moves forward. Keyword
        arguments become the metadata of the new state.
        """
        return replace(self, iteration=self.iteration + 1, metadata=dict(metadata))

    def __repr__(self) -> str:
        posterior_str = (
            f"posterior={self.log_posterior:.4f}"
            if self.log_posterior is not None
            else "posterior=?"
        )
        optional_str = f", metadata({len(self.metadata)})" if self.metadata else ""
        return (
            f"ChainState(position_shape={self.position.shape}, "
            f"iteration={self.iteration}, {posterior_str}{optional_str})"
        )
