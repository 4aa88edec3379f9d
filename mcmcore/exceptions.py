"""
Exception hierarchy for the sampling engine.

Errors fall into two groups. Configuration errors are raised synchronously
while objects are constructed, before any iteration runs. Sampling errors
(invalid initial states, diverging adaptation) are fatal for the chain that
raised them only; the multi-chain sampler records them per chain.
InvalidProposal is the one error that never escapes a kernel: a candidate
whose density cannot be evaluated is simply rejected.
"""

from typing import Any, Optional


class McmcoreError(Exception):
    """Base class for all errors raised by mcmcore."""


class ConfigurationError(McmcoreError, ValueError):
    """Invalid sampler, kernel or tuner configuration."""


class InvalidProposal(McmcoreError):
    """
    The target density could not be evaluated at a candidate position.

    Models may raise this directly to signal an out-of-support input.
    Kernels catch it and treat the candidate as rejected.
    """


class InvalidInitialState(McmcoreError):
    """The target density could not be evaluated at the starting position."""

    def __init__(self, message: str, chain_index: Optional[int] = None, position: Any = None):
        super().__init__(message)
        self.chain_index = chain_index
        self.position = position

    def __str__(self) -> str:
        base = super().__str__()
        if self.chain_index is None:
            return base
        return f"chain {self.chain_index}: {base}"


class AdaptationDivergence(McmcoreError, FloatingPointError):
    """A tuned proposal parameter became non-finite or non-positive."""

    def __init__(self, message: str, value: float = float("nan"), chain_index: Optional[int] = None):
        super().__init__(message)
        self.value = value
        self.chain_index = chain_index

    def __str__(self) -> str:
        base = super().__str__()
        if self.chain_index is None:
            return base
        return f"chain {self.chain_index}: {base}"
