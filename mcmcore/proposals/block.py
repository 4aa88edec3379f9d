"""
Restrict a proposal to a block of coordinates
"""

from typing import Sequence, Tuple

import numpy as np

from mcmcore.core.proposal import ProposalProtocol
from mcmcore.core.state import ChainState
from mcmcore.exceptions import ConfigurationError


class BlockProposal(ProposalProtocol):
    """
    Apply `base` to the coordinates in `indices` and leave the others fixed.

    `base` is built for the block's dimension, len(indices). Combining
    Metropolis kernels with disjoint blocks inside a CycleKernel gives a
    Metropolis-within-Gibbs sampler.

    Examples:
        >>> block = BlockProposal(GaussianRandomWalk.isotropic(2, 0.5), indices=[0, 2])
    """

    def __init__(self, base: ProposalProtocol, indices: Sequence[int]):
        indices = np.asarray(indices, dtype=int).ravel()
        if indices.size == 0:
            raise ValueError("indices must select at least one coordinate")
        if np.unique(indices).size != indices.size:
            raise ValueError("indices must not repeat")
        self.base = base
        self.indices = indices

    def _restrict(self, state: ChainState) -> ChainState:
        return ChainState(position=state.position[self.indices])

    def sample(self, current_state: ChainState, rng: np.random.Generator) -> ChainState:
        block = self.base.sample(self._restrict(current_state), rng).position
        position = current_state.position.astype(np.result_type(current_state.position, block), copy=True)
        position[self.indices] = block
        return ChainState(position=position)

    def proposal_logpdf(self, current_state: ChainState, proposed_state: ChainState) -> Tuple[float, float]:
        return self.base.proposal_logpdf(self._restrict(current_state), self._restrict(proposed_state))

    def get_tunable(self) -> float:
        if not hasattr(self.base, "get_tunable"):
            raise ConfigurationError(f"{type(self.base).__name__} has no tunable parameter")
        return self.base.get_tunable()

    def set_tunable(self, value: float) -> None:
        self.base.set_tunable(value)
