"""
Composite kernels: deterministic cycles and random mixtures of kernels
"""

# Imports
import math
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

import numpy as np

from mcmcore.core.kernel import TransitionKernel
from mcmcore.core.state import ChainState
from mcmcore.exceptions import ConfigurationError


def _check_kernels(kernels: Sequence[TransitionKernel]) -> List[TransitionKernel]:
    kernels = list(kernels)
    if not kernels:
        raise ConfigurationError("A composite kernel needs at least one sub-kernel")
    for kernel in kernels:
        if not isinstance(kernel, TransitionKernel):
            raise ConfigurationError(f"{type(kernel).__name__} does not implement step(state, rng)")
    if len({id(kernel) for kernel in kernels}) != len(kernels):
        raise ConfigurationError("The same kernel instance appears more than once")
    return kernels


def _freeze_all(kernels: Sequence[TransitionKernel]) -> None:
    for kernel in kernels:
        freeze = getattr(kernel, "freeze", None)
        if freeze is not None:
            freeze()


def contains_kernel(kernel: TransitionKernel, target: object) -> bool:
    """Whether `target` is `kernel` or one of its (nested) sub-kernels"""
    if kernel is target:
        return True
    return any(contains_kernel(sub, target) for sub in getattr(kernel, "kernels", ()))


def outcome_of(kernel: TransitionKernel, target: object, accepted: bool) -> Optional[bool]:
    """
    Whether `target` accepted during the step `kernel` just took.

    `accepted` is the flag `kernel.step` returned. For a composite the answer
    is read from the sub-kernel outcomes of its last step, recursively.
    Returns None if `target` did not run in that step, e.g. when a mixture
    drew another component.
    """
    if kernel is target:
        return accepted
    for sub, sub_accepted in zip(getattr(kernel, "kernels", ()), getattr(kernel, "last_accepted", ())):
        if contains_kernel(sub, target):
            if sub_accepted is None:
                return None
            return outcome_of(sub, target, sub_accepted)
    return None


class CycleKernel:
    """
    Apply every sub-kernel once per iteration, in order.

    The state is threaded through the sub-kernels, so each one sees the result
    of the previous one. With sub-kernels restricted to disjoint coordinate
    blocks this is a Gibbs-style block sampler.

    The output state is one iteration after the input state. The step counts
    as accepted when any sub-kernel accepted; individual flags are stored in
    metadata['sub_accepted'] and in `last_accepted`.
    """

    def __init__(self, kernels: Sequence[TransitionKernel]):
        self.kernels = _check_kernels(kernels)
        self.last_accepted: List[Optional[bool]] = [None] * len(self.kernels)

    def step(self, current: ChainState, rng: np.random.Generator) -> Tuple[ChainState, bool]:
        state = current
        flags = []
        for kernel in self.kernels:
            state, accepted = kernel.step(state, rng)
            flags.append(accepted)
        self.last_accepted = flags

        metadata = dict(state.metadata or {})
        metadata.update(is_accepted=any(flags), sub_accepted=list(flags))
        return replace(state, iteration=current.iteration + 1, metadata=metadata), any(flags)

    def freeze(self) -> None:
        _freeze_all(self.kernels)


class MixtureKernel:
    """
    Apply exactly one sub-kernel per iteration, chosen at random.

    Sub-kernel i is chosen with probability weight_i / sum(weights). The choice
    is drawn from the chain's own generator, so the mixture is reproducible
    under a fixed seed. The index of the chosen kernel is stored in
    metadata['kernel_index']; `last_accepted` holds its flag at that index and
    None for the kernels that did not run.

    Examples:
        >>> kernel = MixtureKernel([(0.8, local_kernel), (0.2, global_kernel)])

    Raises:
        ConfigurationError: If there are no sub-kernels, or any weight is not
            finite and strictly positive.
    """

    def __init__(self, weighted_kernels: Sequence[Tuple[float, TransitionKernel]]):
        weighted_kernels = list(weighted_kernels)
        if not weighted_kernels:
            raise ConfigurationError("A mixture kernel needs at least one sub-kernel")

        weights = []
        for weight, _ in weighted_kernels:
            weight = float(weight)
            if not math.isfinite(weight) or weight <= 0.0:
                raise ConfigurationError(f"Mixture weights must be finite and positive, got {weight}")
            weights.append(weight)

        total = math.fsum(weights)
        if not total > 0.0:
            raise ConfigurationError("Mixture weights must have a positive sum")

        self.kernels = _check_kernels(kernel for _, kernel in weighted_kernels)
        self.weights = np.asarray(weights) / total
        self.last_accepted: List[Optional[bool]] = [None] * len(self.kernels)

    def step(self, current: ChainState, rng: np.random.Generator) -> Tuple[ChainState, bool]:
        index = int(rng.choice(len(self.kernels), p=self.weights))
        state, accepted = self.kernels[index].step(current, rng)
        self.last_accepted = [None] * len(self.kernels)
        self.last_accepted[index] = accepted

        metadata = dict(state.metadata or {})
        metadata["kernel_index"] = index
        return replace(state, metadata=metadata), accepted

    def freeze(self) -> None:
        _freeze_all(self.kernels)
