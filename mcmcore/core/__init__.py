from mcmcore.core.kernel import (
    KernelProtocol,
    TransitionKernel,
    TunableProtocol,
    accept,
    acceptance_probability,
    metropolis_step,
)
from mcmcore.core.model import ModelProtocol, evaluate_model
from mcmcore.core.proposal import ProposalProtocol
from mcmcore.core.state import ChainState

__all__ = [
    "ChainState",
    "ModelProtocol",
    "evaluate_model",
    "ProposalProtocol",
    "TransitionKernel",
    "KernelProtocol",
    "TunableProtocol",
    "accept",
    "acceptance_probability",
    "metropolis_step",
]
