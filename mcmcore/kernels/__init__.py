from mcmcore.kernels.adaptive_metropolis import AdaptiveMetropolisKernel
from mcmcore.kernels.composite import CycleKernel, MixtureKernel
from mcmcore.kernels.hamiltonian import HamiltonianKernel
from mcmcore.kernels.metropolis import MetropolisHastingsKernel
from mcmcore.kernels.slice import SliceKernel

__all__ = [
    "MetropolisHastingsKernel",
    "AdaptiveMetropolisKernel",
    "SliceKernel",
    "HamiltonianKernel",
    "CycleKernel",
    "MixtureKernel",
]
