from mcmcore.samplers.multi_chain import ChainResult, MultiChainResult, MultiChainSampler, default_tuner_factory
from mcmcore.samplers.single_chain import ChainPhase, MCMCsampler

__all__ = [
    "MCMCsampler",
    "ChainPhase",
    "MultiChainSampler",
    "ChainResult",
    "MultiChainResult",
    "default_tuner_factory",
]
