"""
Symmetric proposals for integer-valued and binary parameters
"""

from typing import Tuple

import numpy as np

from mcmcore.core.proposal import ProposalProtocol
from mcmcore.core.state import ChainState


class IntegerRandomWalk(ProposalProtocol):
    """
    Symmetric random walk on the integer lattice.

    Each coordinate moves by +/- m with m ~ Geometric(p) on {1, 2, ...}.
    p is chosen so that a step has standard deviation close to `scale`:
    p = (sqrt(4 s^2 + 1) - 1) / (2 s^2).
    """

    def __init__(self, scale: float = 1.0):
        if not scale > 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.scale = float(scale)

    @property
    def success_probability(self) -> float:
        s2 = self.scale**2
        return (np.sqrt(4.0 * s2 + 1.0) - 1.0) / (2.0 * s2)

    def sample(self, current_state: ChainState, rng: np.random.Generator) -> ChainState:
        shape = current_state.position.shape
        magnitude = rng.geometric(self.success_probability, size=shape)
        sign = np.where(rng.random(shape) < 0.5, -1, 1)
        position = np.rint(current_state.position).astype(np.int64) + sign * magnitude
        return ChainState(position=position)

    def proposal_logpdf(self, current_state: ChainState, proposed_state: ChainState) -> Tuple[float, float]:
        return 0.0, 0.0

    def get_tunable(self) -> float:
        return self.scale

    def set_tunable(self, value: float) -> None:
        self.scale = float(value)


class BitFlipProposal(ProposalProtocol):
    """
    Flip `n_flips` distinct, uniformly chosen coordinates of a 0/1 vector.
    """

    def __init__(self, n_flips: int = 1):
        if n_flips < 1:
            raise ValueError(f"n_flips must be >= 1, got {n_flips}")
        self.n_flips = n_flips

    def sample(self, current_state: ChainState, rng: np.random.Generator) -> ChainState:
        dim = current_state.dim
        if self.n_flips > dim:
            raise ValueError(f"Cannot flip {self.n_flips} bits of a {dim}-dimensional state")
        flip = rng.choice(dim, size=self.n_flips, replace=False)
        position = current_state.position.copy()
        position[flip, 0] = 1 - position[flip, 0]
        return ChainState(position=position)

    def proposal_logpdf(self, current_state: ChainState, proposed_state: ChainState) -> Tuple[float, float]:
        return 0.0, 0.0
