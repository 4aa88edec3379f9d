# Some imports
import numpy as np
from typing import Any, Dict

from mcmcore import (
    CycleKernel,
    HamiltonianKernel,
    MetropolisHastingsKernel,
    MixtureKernel,
    MultiChainSampler,
    SamplerConfig,
    SliceKernel,
)
from mcmcore.proposals import BlockProposal, GaussianRandomWalk
from mcmcore.utils.logging import McmcoreLogger
from mcmcore.utils.post_processing import summarize

logger = McmcoreLogger.get_logger("mcmcore.examples")

# Lets define the banana model
# The input is a single sample x of shape (2, 1)
# The output is the log posterior, here split into prior and likelihood
# Other entries in the dict (like a qoi) are carried along and ignored by the sampler

def banana_model(x: np.ndarray) -> Dict[str, Any]:
    """
    Banana-shaped posterior: x1 ~ N(0, 1), x2 | x1 ~ N(x1^2, 0.5^2)
    """
    x1, x2 = x[0, 0], x[1, 0]
    return {
        "log_prior": -0.5 * x1**2,
        "log_likelihood": -0.5 * ((x2 - x1**2) / 0.5) ** 2,
        "qoi": x1 + x2,
    }

def banana_gradient(x: np.ndarray) -> np.ndarray:
    x1, x2 = x[0, 0], x[1, 0]
    r = (x2 - x1**2) / 0.25
    return np.array([[-x1 + 2.0 * x1 * r], [-r]])

# Every chain needs its own kernel, so we hand the sampler a factory
# Here: mostly cheap Gibbs-style block updates, sometimes an HMC move across the banana

def kernel_factory(chain_index: int):
    gibbs = CycleKernel([
        MetropolisHastingsKernel(banana_model, BlockProposal(GaussianRandomWalk.isotropic(1, 0.8), indices=[0])),
        SliceKernel(banana_model, width=0.5, indices=[1]),
    ])
    hmc = HamiltonianKernel(banana_model, banana_gradient, step_size=0.05, n_leapfrog=20)
    return MixtureKernel([(0.8, gibbs), (0.2, hmc)])

# The sampler options can also live in a YAML file: SamplerConfig.from_yaml("run.yaml", section="sampler")
config = SamplerConfig(
    n_iterations=5000,
    burn_in=1000,
    thin=2,
    n_chains=4,
    execution_mode="parallel",
    log_every=2000,
)

# Start every chain from its own draw around the origin
sampler = MultiChainSampler(
    banana_model,
    kernel_factory,
    lambda chain_index, rng: rng.standard_normal((2, 1)),
    config,
    seed=2024,
)
result = sampler.run().raise_on_failure()

for chain in result.chains:
    summary = summarize(chain.samples)
    logger.info(
        "Chain %d: mean %s, std %s, acceptance %.3f",
        chain.chain_index, np.round(summary["mean"], 3), np.round(summary["std"], 3), chain.acceptance_rate,
    )

# The exact mean is (0, 1)
pooled = summarize(result.merged())
logger.info("Pooled mean over %d samples: %s", pooled["n_samples"], np.round(pooled["mean"], 3))
