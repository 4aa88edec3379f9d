"""
Class file for running several independent chains, sequentially or in parallel.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Sequence, Union

import numpy as np

from mcmcore.config import DEFAULT_TARGET_ACCEPTANCE, ExecutionMode, SamplerConfig
from mcmcore.core.kernel import TransitionKernel, TunableProtocol
from mcmcore.core.model import ModelProtocol
from mcmcore.core.state import ChainState
from mcmcore.exceptions import ConfigurationError, InvalidInitialState
from mcmcore.samplers.single_chain import MCMCsampler
from mcmcore.tuning.adapters import AdapterBase, AdaptiveTuner
from mcmcore.utils.logging import McmcoreLogger

logger = McmcoreLogger.module_logger(__name__)

KernelFactory = Callable[[int], TransitionKernel]
TunerFactory = Callable[[TransitionKernel, SamplerConfig], Optional[AdapterBase]]
InitialPositions = Union[np.ndarray, Sequence[np.ndarray], Callable[[int, np.random.Generator], np.ndarray]]


@dataclass
class ChainResult:
    """
    Outcome of one chain.

    A failed chain keeps the samples it emitted before failing; `error`
    holds the exception that stopped it.
    """

    chain_index: int
    seed: Any
    samples: List[ChainState] = field(default_factory=list)
    acceptance_rate: float = float("nan")
    n_steps: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def positions(self) -> np.ndarray:
        """Sample positions as an array of shape (n_samples, d)"""
        if not self.samples:
            return np.empty((0, 0))
        return np.stack([np.ravel(s.position) for s in self.samples])


@dataclass
class MultiChainResult:
    """Per-chain results, ordered by chain index"""

    chains: List[ChainResult]

    @property
    def successful(self) -> List[ChainResult]:
        return [c for c in self.chains if c.ok]

    @property
    def failed(self) -> List[ChainResult]:
        return [c for c in self.chains if not c.ok]

    def samples_by_chain(self) -> List[List[ChainState]]:
        return [c.samples for c in self.successful]

    def positions(self) -> np.ndarray:
        """
        Positions of the successful chains, shape (n_chains_ok, n_samples, d).

        Raises:
            ValueError: If no chain succeeded or the chains emitted different
                numbers of samples (e.g. after an early stop).
        """
        chains = self.successful
        if not chains:
            raise ValueError("No chain completed successfully")
        lengths = {len(c.samples) for c in chains}
        if len(lengths) != 1:
            raise ValueError(f"Chains emitted different numbers of samples: {sorted(lengths)}")
        return np.stack([c.positions() for c in chains])

    def merged(self) -> List[ChainState]:
        """All samples of the successful chains, concatenated in chain order"""
        return [s for c in self.successful for s in c.samples]

    def raise_on_failure(self) -> "MultiChainResult":
        """Re-raise the error of the first failed chain, if any"""
        failed = self.failed
        if failed:
            raise failed[0].error
        return self


def default_tuner_factory(kernel: TransitionKernel, config: SamplerConfig) -> Optional[AdapterBase]:
    """
    Robbins-Monro tuner on the kernel's tunable parameter while adapt_until > 0.

    The target is `config.target_acceptance` when set, else the kernel's own
    `target_acceptance` (the adaptive Metropolis optimum for its dimension),
    else 0.234.
    """
    if config.adapt_until == 0 or not isinstance(kernel, TunableProtocol):
        return None
    target = config.target_acceptance
    if target is None:
        target = getattr(kernel, "target_acceptance", DEFAULT_TARGET_ACCEPTANCE)
    try:
        return AdaptiveTuner(kernel, target_acceptance=target, adapt_until=config.adapt_until)
    except ConfigurationError:
        # Kernels such as a Metropolis kernel around a fixed proposal expose
        # the protocol without a tunable parameter
        return None


class MultiChainSampler:
    """
    Run `config.n_chains` independent chains of the same model.

    Every chain gets its own kernel from `kernel_factory(chain_index)`, its own
    tuner from `tuner_factory(kernel, config)` and its own random generator.
    Chain i always uses seed i, whatever the execution mode, so a sequential
    and a parallel run with the same seed produce the same samples per chain.

    Args:
        model: Target density, shared read-only by all chains.
        kernel_factory: Returns a fresh kernel for a chain index.
        initial_positions: One (d, 1) array used by every chain, a sequence of
            n_chains arrays, or a callable (chain_index, rng) -> array drawing
            the start from the chain's own generator.
        config: Sampler options.
        seed: Entropy for numpy.random.SeedSequence. None draws fresh entropy.
        seed_fn: Optional (seed, chain_index) -> seed override of the default
            SeedSequence(seed).spawn(n_chains) derivation.
        tuner_factory: Builds the adapter for a chain's kernel, or returns None.

    Examples:
        >>> sampler = MultiChainSampler(model, lambda i: MetropolisHastingsKernel(model, GaussianRandomWalk.isotropic(2, 0.5)), np.zeros((2, 1)), SamplerConfig(n_chains=4), seed=42)
        >>> result = sampler.run()
    """

    def __init__(self, model: ModelProtocol, kernel_factory: KernelFactory, initial_positions: InitialPositions, config: Optional[SamplerConfig] = None, seed: Optional[int] = None, seed_fn: Optional[Callable[[Optional[int], int], Any]] = None, tuner_factory: Optional[TunerFactory] = default_tuner_factory):

        self.model = model
        self.kernel_factory = kernel_factory
        self.config = config if config is not None else SamplerConfig()
        self.tuner_factory = tuner_factory
        self.initial_positions = self._check_initial_positions(initial_positions)

        n_chains = self.config.n_chains
        if seed_fn is not None:
            self.seeds = [seed_fn(seed, i) for i in range(n_chains)]
        else:
            self.seeds = np.random.SeedSequence(seed).spawn(n_chains)

        self._stop_event = threading.Event()
        self._chains: List[MCMCsampler] = []

    def _check_initial_positions(self, initial_positions: InitialPositions) -> InitialPositions:
        if callable(initial_positions):
            return initial_positions
        if isinstance(initial_positions, np.ndarray) and initial_positions.ndim <= 2 and (
            initial_positions.ndim < 2 or initial_positions.shape[1] == 1
        ):
            return initial_positions
        positions = list(initial_positions)
        if len(positions) != self.config.n_chains:
            raise ConfigurationError(
                f"Got {len(positions)} initial positions for {self.config.n_chains} chains"
            )
        return positions

    def _initial_position(self, chain_index: int, rng: np.random.Generator) -> np.ndarray:
        if callable(self.initial_positions):
            return self.initial_positions(chain_index, rng)
        if isinstance(self.initial_positions, np.ndarray):
            return self.initial_positions
        return self.initial_positions[chain_index]

    def stop(self) -> None:
        """
        Ask every chain to stop after its current iteration.

        The request is sticky: chains built after it, including those of a
        later `run()`, stop before their first iteration.
        """
        self._stop_event.set()
        for chain in list(self._chains):
            chain.stop()

    def _build_chains(self) -> List[Union[MCMCsampler, ChainResult]]:
        """
        Construct every chain before any of them runs. Chains whose initial
        state is invalid are returned as failed results. Each chain has its
        own stop event, so stopping one chain leaves its siblings running.
        """
        chains = []
        kernels = []
        self._chains = []
        for i, seed in enumerate(self.seeds):
            kernel = self.kernel_factory(i)
            if any(kernel is k for k in kernels):
                raise ConfigurationError(
                    f"kernel_factory returned the same kernel instance for chain {i}; "
                    "kernels hold per-chain state and cannot be shared"
                )
            kernels.append(kernel)

            rng = np.random.default_rng(seed)
            tuner = self.tuner_factory(kernel, self.config) if self.tuner_factory is not None else None
            try:
                chain = MCMCsampler(
                    self.model, kernel, self._initial_position(i, rng), self.config,
                    rng=rng, tuner=tuner, chain_index=i,
                )
            except InvalidInitialState as err:
                logger.error("Chain %d failed: %s", i, err)
                chains.append(ChainResult(chain_index=i, seed=seed, error=err))
                continue

            self._chains.append(chain)
            if self._stop_event.is_set():
                chain.stop()
            chains.append(chain)
        return chains

    def _run_chain(self, chain: MCMCsampler) -> ChainResult:
        result = ChainResult(chain_index=chain.chain_index, seed=self.seeds[chain.chain_index])
        try:
            for state in chain.samples():
                result.samples.append(state)
        except Exception as err:
            logger.error("Chain %d failed after %d iterations: %s", chain.chain_index, chain.n_steps, err)
            result.error = err
        result.acceptance_rate = chain.acceptance_rate
        result.n_steps = chain.n_steps
        return result

    def iter_completed(self) -> Iterator[ChainResult]:
        """
        Yield chain results as chains finish: in index order when sequential,
        in completion order when parallel.
        """
        chains = self._build_chains()
        pending = [c for c in chains if isinstance(c, MCMCsampler)]
        for failed in (c for c in chains if isinstance(c, ChainResult)):
            yield failed

        if self.config.execution_mode == ExecutionMode.SEQUENTIAL:
            for chain in pending:
                yield self._run_chain(chain)
            return

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = [executor.submit(self._run_chain, chain) for chain in pending]
            try:
                for future in as_completed(futures):
                    yield future.result()
            finally:
                # Consumer stopped early: let running chains finish quickly
                if not all(f.done() for f in futures):
                    for chain in pending:
                        chain.stop()

    def run(self) -> MultiChainResult:
        """
        Run all chains and return their results ordered by chain index.
        """
        logger.info(
            "Running %d chains (%s), %d iterations each",
            self.config.n_chains, self.config.execution_mode.value, self.config.total_iterations,
        )
        results = sorted(self.iter_completed(), key=lambda r: r.chain_index)
        result = MultiChainResult(chains=results)
        if result.failed:
            logger.warning(
                "%d of %d chains failed: %s",
                len(result.failed), len(results), [c.chain_index for c in result.failed],
            )
        return result
