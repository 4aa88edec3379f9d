"""
Transition kernel protocols and the Metropolis accept/reject step.

Every kernel the chain runner drives satisfies `TransitionKernel`: a single
`step(state, rng)` returning the next state and whether the step accepted.
Kernels built from a candidate proposal and an acceptance ratio implement
`KernelProtocol` and inherit the shared accept/reject step, which guarantees
that a state is produced on every iteration.
"""

# Imports
import math
from typing import Protocol, Tuple, runtime_checkable

import numpy as np

from mcmcore.core.model import ModelProtocol, evaluate_model
from mcmcore.core.state import ChainState
from mcmcore.exceptions import InvalidProposal
from mcmcore.utils.logging import McmcoreLogger

logger = McmcoreLogger.module_logger(__name__)


def accept(log_ratio: float, rng: np.random.Generator) -> bool:
    """
    Metropolis acceptance test.

    Returns True when `log_ratio >= 0` without consuming randomness,
    otherwise draws u ~ U[0, 1) and accepts when log(u) < log_ratio.
    A NaN ratio is always rejected.
    """
    if log_ratio >= 0.0:
        return True
    if math.isnan(log_ratio):
        return False
    u = rng.random()
    # log(0) is -inf, which never beats a finite ratio
    with np.errstate(divide="ignore"):
        return bool(np.log(u) < log_ratio)


def acceptance_probability(log_ratio: float) -> float:
    """min(1, exp(log_ratio)), with NaN mapped to 0."""
    if math.isnan(log_ratio):
        return 0.0
    if log_ratio >= 0.0:
        return 1.0
    return math.exp(log_ratio)


@runtime_checkable
class TransitionKernel(Protocol):
    """
    Anything the chain runner can drive.
    """

    def step(self, current: ChainState, rng: np.random.Generator) -> Tuple[ChainState, bool]:
        """Advance the chain by one iteration"""
        ...


@runtime_checkable
class TunableProtocol(Protocol):
    """
    Kernels exposing a positive scalar parameter to the adaptive tuners.
    """

    def get_tunable(self) -> float:
        ...

    def set_tunable(self, value: float) -> None:
        ...


class KernelProtocol(Protocol):
    """
    Protocol for proposal-based MCMC transition kernels.
    """

    model: ModelProtocol

    def propose(self, current: ChainState, rng: np.random.Generator) -> ChainState:
        """Generate candidate state (position and density) from the current state"""
        raise NotImplementedError("Implement propose method")

    def log_acceptance_ratio(self, current: ChainState, proposed: ChainState) -> float:
        """Compute log acceptance ratio, including any Hastings correction"""
        raise NotImplementedError("Implement log_acceptance_ratio method")

    def step(self, current: ChainState, rng: np.random.Generator) -> Tuple[ChainState, bool]:
        """Propose, then accept or reject"""
        return metropolis_step(self, current, rng)


def evaluate_candidate(model: ModelProtocol, position: np.ndarray, current: ChainState, **metadata) -> ChainState:
    """
    Build the candidate state for `position`, one iteration after `current`.

    A density failure does not propagate: the candidate gets a log-density of
    -inf and is flagged with 'invalid_proposal', so the accept rule rejects it.
    """
    try:
        model_result = evaluate_model(model, position)
    except InvalidProposal as err:
        logger.debug("Rejecting invalid proposal at iteration %d: %s", current.iteration + 1, err)
        return ChainState(
            position=position,
            log_posterior=-math.inf,
            iteration=current.iteration + 1,
            metadata={**metadata, "invalid_proposal": True},
        )
    return ChainState(
        position=position,
        **model_result,
        iteration=current.iteration + 1,
        metadata=metadata,
    )


def metropolis_step(kernel: KernelProtocol, current: ChainState, rng: np.random.Generator) -> Tuple[ChainState, bool]:
    """
    One Metropolis-Hastings iteration of `kernel` from `current`.

    On acceptance the candidate is returned; on rejection a copy of the current
    state with the next iteration index. Either way exactly one state is
    produced.
    """
    proposed = kernel.propose(current, rng)

    if proposed.metadata and proposed.metadata.get("invalid_proposal"):
        log_ratio = -math.inf
    else:
        log_ratio = kernel.log_acceptance_ratio(current, proposed)

    is_accepted = accept(log_ratio, rng)
    prob = acceptance_probability(log_ratio)

    if is_accepted:
        metadata = dict(proposed.metadata or {})
        metadata.update(is_accepted=True, acceptance_probability=prob)
        proposed.metadata = metadata
        return proposed, True

    extras = {
        key: value for key, value in (proposed.metadata or {}).items()
        if key == "invalid_proposal"
    }
    return current.advanced(is_accepted=False, acceptance_probability=prob, **extras), False
