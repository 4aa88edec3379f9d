"""
Class file for the acceptance-rate adapters

Adapters tune the scalar parameter of a kernel (a proposal scale, an HMC step
size, ...) from the stream of accept/reject outcomes. One adapter is attached
to one kernel instance and is never shared between chains.
"""

# Imports
import math
from dataclasses import dataclass
from typing import Optional

from mcmcore.core.kernel import TunableProtocol
from mcmcore.exceptions import AdaptationDivergence, ConfigurationError
from mcmcore.utils.logging import McmcoreLogger

logger = McmcoreLogger.module_logger(__name__)


@dataclass
class AdaptationRecord:
    """
    Counters of a tuned kernel. Both counters only ever increase.

    Attributes:
        iterations: Outcomes passed to `update`, including any that arrive
            after the adapter's own `adapt_until` froze it. The chain runner
            stops calling `update` once the config's `adapt_until` is reached.
        accepted: Accepted iterations among them.
        target_rate: Acceptance rate the adapter steers towards.
    """

    target_rate: float
    iterations: int = 0
    accepted: int = 0

    def record(self, accepted: bool) -> None:
        self.iterations += 1
        if accepted:
            self.accepted += 1

    @property
    def acceptance_rate(self) -> float:
        if self.iterations == 0:
            return float("nan")
        return self.accepted / self.iterations


class AdapterBase:
    """Base class for scale adaptation strategies"""

    def __init__(self, kernel: TunableProtocol, target_acceptance: float = 0.234, adapt_until: Optional[int] = None):
        if not isinstance(kernel, TunableProtocol):
            raise ConfigurationError(f"{type(kernel).__name__} has no tunable parameter")
        if not 0.0 < target_acceptance < 1.0:
            raise ConfigurationError(f"target_acceptance must lie in (0, 1), got {target_acceptance}")
        if adapt_until is not None and adapt_until < 0:
            raise ConfigurationError(f"adapt_until must be >= 0, got {adapt_until}")

        initial = kernel.get_tunable()
        if not (math.isfinite(initial) and initial > 0.0):
            raise ConfigurationError(f"Initial tunable value must be finite and positive, got {initial}")

        self.kernel = kernel
        self.adapt_until = adapt_until
        self.record = AdaptationRecord(target_rate=target_acceptance)
        self.n_adapted = 0
        self._frozen = adapt_until == 0

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Stop adapting for good"""
        if not self._frozen:
            logger.debug(
                "Adaptation frozen after %d updates, value %.6g, acceptance %.3f",
                self.n_adapted, self.kernel.get_tunable(), self.record.acceptance_rate,
            )
        self._frozen = True

    def update(self, accepted: bool) -> None:
        """Record one iteration's outcome and adapt unless frozen"""
        self.record.record(accepted)
        if self._frozen:
            return

        self.n_adapted += 1
        self._adapt(accepted)

        if self.adapt_until is not None and self.n_adapted >= self.adapt_until:
            self.freeze()

    def _adapt(self, accepted: bool) -> None:
        raise NotImplementedError("Subclass must implement _adapt method")

    def _set(self, value: float) -> None:
        if not (math.isfinite(value) and value > 0.0):
            raise AdaptationDivergence(
                f"{type(self).__name__} drove the tunable parameter of "
                f"{type(self.kernel).__name__} to {value} after {self.n_adapted} updates",
                value=value,
            )
        self.kernel.set_tunable(value)


class AdaptiveTuner(AdapterBase):
    """
    Robbins-Monro scale adaptation (Andrieu and Thoms 2008, Algorithm 4).

    After each iteration n = 1, 2, ... while not frozen:

        log(scale) += gain / n**kappa * (accept_indicator - target_rate)

    With kappa in (0.5, 1] the step sizes shrink (diminishing adaptation), and
    freezing after `adapt_until` iterations makes the remaining chain a
    time-homogeneous Markov chain.

    Examples:
        >>> tuner = AdaptiveTuner(kernel, target_acceptance=0.234, adapt_until=5000)
    """

    def __init__(self, kernel: TunableProtocol, target_acceptance: float = 0.234, adapt_until: Optional[int] = None, kappa: float = 0.6, gain: float = 1.0):
        super().__init__(kernel, target_acceptance, adapt_until)
        if not 0.5 < kappa <= 1.0:
            raise ConfigurationError(f"kappa must lie in (0.5, 1], got {kappa}")
        if not gain > 0.0:
            raise ConfigurationError(f"gain must be positive, got {gain}")
        self.kappa = kappa
        self.gain = gain
        self.log_scale = math.log(kernel.get_tunable())

    def step_size(self, n: int) -> float:
        """Robbins-Monro step gain / n**kappa"""
        return self.gain / n**self.kappa

    def _adapt(self, accepted: bool) -> None:
        gamma = self.step_size(self.n_adapted)
        self.log_scale += gamma * (float(accepted) - self.record.target_rate)
        try:
            value = math.exp(self.log_scale)
        except OverflowError:
            value = math.inf
        self._set(value)


class WindowedScaleTuner(AdapterBase):
    """
    Windowed scale adaptation with a fixed factor table.

    Every `interval` iterations the acceptance rate over the window is
    computed and the scale is multiplied by:

        rate < 0.001 -> 0.1,  rate < 0.05 -> 0.5,  rate < 0.2 -> 0.9,
        rate > 0.95  -> 10,   rate > 0.75 -> 2,    rate > 0.5 -> 1.1

    and left unchanged otherwise. The table does not look at the target
    rate; target_acceptance only labels the record.
    """

    def __init__(self, kernel: TunableProtocol, interval: int = 50, target_acceptance: float = 0.234, adapt_until: Optional[int] = None):
        super().__init__(kernel, target_acceptance, adapt_until)
        if interval < 1:
            raise ConfigurationError(f"interval must be >= 1, got {interval}")
        self.interval = interval
        self._window_accepted = 0
        self._window_size = 0

    @staticmethod
    def factor(rate: float) -> float:
        if rate < 0.001:
            return 0.1
        if rate < 0.05:
            return 0.5
        if rate < 0.2:
            return 0.9
        if rate > 0.95:
            return 10.0
        if rate > 0.75:
            return 2.0
        if rate > 0.5:
            return 1.1
        return 1.0

    def _adapt(self, accepted: bool) -> None:
        self._window_size += 1
        self._window_accepted += int(accepted)
        if self._window_size < self.interval:
            return

        rate = self._window_accepted / self._window_size
        self._window_size = 0
        self._window_accepted = 0
        self._set(self.kernel.get_tunable() * self.factor(rate))
