from mcmcore.config import ExecutionMode, SamplerConfig
from mcmcore.core.state import ChainState
from mcmcore.exceptions import (
    AdaptationDivergence,
    ConfigurationError,
    InvalidInitialState,
    InvalidProposal,
    McmcoreError,
)
from mcmcore.kernels import (
    AdaptiveMetropolisKernel,
    CycleKernel,
    HamiltonianKernel,
    MetropolisHastingsKernel,
    MixtureKernel,
    SliceKernel,
)
from mcmcore.samplers import ChainPhase, MCMCsampler, MultiChainSampler
from mcmcore.tuning import AdaptiveTuner, WindowedScaleTuner

__version__ = "0.1.0"

__all__ = [
    "ChainState",
    "SamplerConfig",
    "ExecutionMode",
    "MetropolisHastingsKernel",
    "AdaptiveMetropolisKernel",
    "SliceKernel",
    "HamiltonianKernel",
    "CycleKernel",
    "MixtureKernel",
    "AdaptiveTuner",
    "WindowedScaleTuner",
    "MCMCsampler",
    "ChainPhase",
    "MultiChainSampler",
    "McmcoreError",
    "ConfigurationError",
    "InvalidProposal",
    "InvalidInitialState",
    "AdaptationDivergence",
]
