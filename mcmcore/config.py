"""
Configuration for chain runners and the multi-chain sampler.

All options are validated once, when the config is created, so that a bad
option fails before any sampling iteration is executed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml

from mcmcore.exceptions import ConfigurationError


DEFAULT_TARGET_ACCEPTANCE = 0.234


class ExecutionMode(str, Enum):
    """How the multi-chain sampler schedules its chains."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass
class SamplerConfig:
    """
    Options shared by the single-chain and multi-chain samplers.

    Attributes
    ----------
    n_iterations : int
        Number of sampling iterations per chain, after burn-in. Must be >= 1.
    burn_in : int
        Number of initial iterations whose states are discarded. Must be >= 0.
    thin : int
        Keep every thin-th sampling iteration. Must be >= 1.
    n_chains : int
        Number of independent chains (multi-chain sampler only). Must be >= 1.
    target_acceptance : float, optional
        Acceptance rate the default tuner steers towards. Must lie in (0, 1).
        None uses the kernel's own `target_acceptance` when it has one (the
        adaptive Metropolis kernel does) and DEFAULT_TARGET_ACCEPTANCE
        otherwise.
    adapt_until : int
        Iteration (counted from the first burn-in iteration) after which all
        adaptation is frozen. 0 disables adaptation.
    execution_mode : ExecutionMode or str
        'sequential' or 'parallel'.
    max_workers : int, optional
        Size of the worker pool in parallel mode. None lets the executor
        decide.
    keep_burn_in : bool
        Also emit the burn-in states (unthinned) ahead of the samples.
    log_every : int
        Log progress every this many iterations. 0 disables progress logs.

    Examples
    --------
    >>> config = SamplerConfig(n_iterations=10_000, burn_in=1_000, thin=2)
    >>> config = SamplerConfig.from_dict({"n_chains": 4, "execution_mode": "parallel"})
    """

    n_iterations: int = 1000
    burn_in: int = 0
    thin: int = 1
    n_chains: int = 1
    target_acceptance: Optional[float] = None
    adapt_until: int = 0
    execution_mode: Union[ExecutionMode, str] = ExecutionMode.SEQUENTIAL
    max_workers: Optional[int] = None
    keep_burn_in: bool = False
    log_every: int = 0

    def __post_init__(self) -> None:
        errors = []

        if not _is_int(self.n_iterations) or self.n_iterations < 1:
            errors.append(f"n_iterations must be an integer >= 1, got {self.n_iterations!r}")
        if not _is_int(self.burn_in) or self.burn_in < 0:
            errors.append(f"burn_in must be an integer >= 0, got {self.burn_in!r}")
        if not _is_int(self.thin) or self.thin < 1:
            errors.append(f"thin must be an integer >= 1, got {self.thin!r}")
        if not _is_int(self.n_chains) or self.n_chains < 1:
            errors.append(f"n_chains must be an integer >= 1, got {self.n_chains!r}")
        if not _is_int(self.adapt_until) or self.adapt_until < 0:
            errors.append(f"adapt_until must be an integer >= 0, got {self.adapt_until!r}")
        if not _is_int(self.log_every) or self.log_every < 0:
            errors.append(f"log_every must be an integer >= 0, got {self.log_every!r}")
        if self.max_workers is not None and (not _is_int(self.max_workers) or self.max_workers < 1):
            errors.append(f"max_workers must be None or an integer >= 1, got {self.max_workers!r}")

        if self.target_acceptance is not None:
            try:
                target = float(self.target_acceptance)
            except (TypeError, ValueError):
                target = float("nan")
            if not 0.0 < target < 1.0:
                errors.append(f"target_acceptance must lie in (0, 1), got {self.target_acceptance!r}")

        try:
            self.execution_mode = ExecutionMode(self.execution_mode)
        except ValueError:
            allowed = ", ".join(mode.value for mode in ExecutionMode)
            errors.append(f"execution_mode must be one of {allowed}, got {self.execution_mode!r}")

        if errors:
            raise ConfigurationError("Invalid sampler configuration: " + "; ".join(errors))

    @property
    def total_iterations(self) -> int:
        """Kernel invocations per chain (burn-in plus sampling)."""
        return self.burn_in + self.n_iterations

    @property
    def n_samples(self) -> int:
        """Number of post burn-in samples emitted per chain."""
        return -(-self.n_iterations // self.thin)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["execution_mode"] = self.execution_mode.value
        return out

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> "SamplerConfig":
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown sampler option(s): {', '.join(unknown)}")
        return cls(**options)

    @classmethod
    def from_yaml(cls, path: Union[str, Path], section: Optional[str] = None) -> "SamplerConfig":
        """
        Load a config from a YAML file.

        Parameters
        ----------
        path : str or Path
            YAML file holding a mapping of options.
        section : str, optional
            Read the options from this top-level key instead of the root.
        """
        with open(path, "r") as f:
            options = yaml.safe_load(f) or {}

        if section is not None:
            if section not in options:
                raise ConfigurationError(f"Section '{section}' not found in {path}")
            options = options[section] or {}

        if not isinstance(options, dict):
            raise ConfigurationError(f"Expected a mapping of sampler options in {path}")
        return cls.from_dict(options)
