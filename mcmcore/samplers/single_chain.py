"""
Class file for a single chain MCMC sampler.
"""

import math
import threading
from enum import Enum
from typing import Iterator, List, Optional

import numpy as np

from mcmcore.config import SamplerConfig
from mcmcore.core.kernel import TransitionKernel
from mcmcore.core.model import ModelProtocol, evaluate_model
from mcmcore.core.state import ChainState
from mcmcore.exceptions import AdaptationDivergence, ConfigurationError, InvalidInitialState, InvalidProposal
from mcmcore.kernels.composite import contains_kernel, outcome_of
from mcmcore.tuning.adapters import AdapterBase
from mcmcore.utils.logging import McmcoreLogger

logger = McmcoreLogger.module_logger(__name__)


class ChainPhase(str, Enum):
    WARMING_UP = "warming_up"
    SAMPLING = "sampling"
    DONE = "done"


class MCMCsampler:
    """
    Class for a single chain MCMC sampler.

    The sampler runs `config.burn_in` warm-up iterations followed by
    `config.n_iterations` sampling iterations, invoking the kernel exactly once
    per iteration. Warm-up states are discarded (unless `config.keep_burn_in`),
    and of the sampling iterations the 1st, (thin+1)-th, ... are emitted.

    Samples are produced lazily by `samples()`, which can be consumed once.
    Stopping early, either by abandoning the iterator or by calling `stop()`,
    is not an error.

    Attributes:
        model (ModelProtocol): The target density.
        kernel (TransitionKernel): The transition kernel, owned by this chain.
        initial_state (ChainState): Evaluated starting state (iteration 0).
        config (SamplerConfig): Iteration counts and adaptation settings.
        rng (np.random.Generator): This chain's random stream.
        tuner (AdapterBase): Optional adapter for the kernel's tunable parameter.
        chain_index (int): Index reported in errors and logs.

    A tuner may be attached to a sub-kernel of a composite kernel. It is then
    updated with that sub-kernel's own accept flag, and skipped on iterations
    where the sub-kernel did not run.
    """

    def __init__(self, model: ModelProtocol, kernel: TransitionKernel, initial_position: np.ndarray, config: Optional[SamplerConfig] = None, rng: Optional[np.random.Generator] = None, tuner: Optional[AdapterBase] = None, chain_index: int = 0, stop_event: Optional[threading.Event] = None):

        if not isinstance(kernel, TransitionKernel):
            raise ConfigurationError(f"{type(kernel).__name__} does not implement step(state, rng)")
        if tuner is not None and not contains_kernel(kernel, tuner.kernel):
            raise ConfigurationError("The tuner is attached to a kernel this sampler does not run")

        self.model = model
        self.kernel = kernel
        self.config = config if config is not None else SamplerConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.tuner = tuner
        self.chain_index = chain_index
        self.initial_state = self._initial_state(initial_position)

        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._consumed = False
        self._phase = ChainPhase.WARMING_UP if self.config.burn_in > 0 else ChainPhase.SAMPLING
        self.current_state = self.initial_state
        self.n_steps = 0
        self.n_accepted = 0

        if tuner is not None and self.config.adapt_until == 0:
            logger.warning(
                "Chain %d: a tuner was given but config.adapt_until is 0; "
                "it is frozen before the first iteration and never adapts",
                chain_index,
            )
        if self.config.adapt_until > self.config.burn_in:
            logger.warning(
                "Chain %d: adaptation continues %d iterations past burn-in; "
                "samples drawn before iteration %d are not from a time-homogeneous chain",
                chain_index, self.config.adapt_until - self.config.burn_in, self.config.adapt_until,
            )

    def _initial_state(self, initial_position: np.ndarray) -> ChainState:
        initial_position = np.asarray(initial_position)
        if initial_position.ndim == 1:
            initial_position = initial_position[:, np.newaxis]
        try:
            model_result = evaluate_model(self.model, initial_position)
        except InvalidProposal as err:
            raise InvalidInitialState(
                f"log-density cannot be evaluated at the initial position: {err}",
                chain_index=self.chain_index, position=initial_position,
            ) from err
        if not math.isfinite(model_result["log_posterior"]):
            raise InvalidInitialState(
                f"initial position has log-density {model_result['log_posterior']}",
                chain_index=self.chain_index, position=initial_position,
            )
        return ChainState(position=initial_position, **model_result, iteration=0, metadata={})

    @property
    def phase(self) -> ChainPhase:
        return self._phase

    @property
    def acceptance_rate(self) -> float:
        if self.n_steps == 0:
            return float("nan")
        return self.n_accepted / self.n_steps

    def stop(self) -> None:
        """
        Ask the chain to stop after the iteration in progress.

        This sets the chain's stop event; if it was given a `stop_event` shared
        with other chains, those stop as well.
        """
        self._stop_event.set()

    def samples(self) -> Iterator[ChainState]:
        """
        Lazy, single-use iterator over the emitted states.

        Raises:
            RuntimeError: If called a second time.
        """
        if self._consumed:
            raise RuntimeError("samples() can only be consumed once per sampler")
        self._consumed = True

        if self.config.adapt_until == 0:
            self._freeze()
        return self._iterate()

    def run(self) -> List[ChainState]:
        """
        Run the chain to completion and return the emitted states.
        """
        samples = list(self.samples())
        logger.info(
            "Chain %d finished: %d samples, %d iterations, acceptance rate %.3f",
            self.chain_index, len(samples), self.n_steps, self.acceptance_rate,
        )
        return samples

    def _iterate(self) -> Iterator[ChainState]:
        config = self.config
        state = self.current_state
        try:
            for i in range(1, config.total_iterations + 1):
                if self._stop_event.is_set():
                    logger.info("Chain %d stopped after %d iterations", self.chain_index, self.n_steps)
                    return

                self._phase = ChainPhase.WARMING_UP if i <= config.burn_in else ChainPhase.SAMPLING

                state, accepted = self.kernel.step(state, self.rng)
                self.n_steps += 1
                self.n_accepted += int(accepted)
                self.current_state = state
                self._adapt(i, accepted)

                if config.log_every and i % config.log_every == 0:
                    logger.info(
                        "Chain %d: iteration %d/%d (%s), acceptance rate %.3f",
                        self.chain_index, i, config.total_iterations, self._phase.value, self.acceptance_rate,
                    )

                if i <= config.burn_in:
                    if config.keep_burn_in:
                        yield state
                elif (i - config.burn_in - 1) % config.thin == 0:
                    yield state
        finally:
            self._phase = ChainPhase.DONE

    def _adapt(self, iteration: int, accepted: bool) -> None:
        if iteration > self.config.adapt_until:
            return
        if self.tuner is not None:
            # A tuner on a sub-kernel sees that sub-kernel's own outcome
            outcome = outcome_of(self.kernel, self.tuner.kernel, accepted)
            if outcome is not None:
                try:
                    self.tuner.update(outcome)
                except AdaptationDivergence as err:
                    err.chain_index = self.chain_index
                    raise
        if iteration == self.config.adapt_until:
            self._freeze()

    def _freeze(self) -> None:
        if self.tuner is not None:
            self.tuner.freeze()
        freeze = getattr(self.kernel, "freeze", None)
        if freeze is not None:
            freeze()
