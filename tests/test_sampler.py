import logging
import math

import pytest
import numpy as np

from mcmcore.config import SamplerConfig
from mcmcore.core.state import ChainState
from mcmcore.exceptions import AdaptationDivergence, ConfigurationError, InvalidInitialState
from mcmcore.kernels.adaptive_metropolis import AdaptiveMetropolisKernel
from mcmcore.kernels.composite import CycleKernel, MixtureKernel
from mcmcore.kernels.metropolis import MetropolisHastingsKernel
from mcmcore.kernels.slice import SliceKernel
from mcmcore.proposals.block import BlockProposal
from mcmcore.proposals.gaussianproposal import GaussianRandomWalk
from mcmcore.samplers.single_chain import ChainPhase, MCMCsampler
from mcmcore.tuning.adapters import AdaptiveTuner
from mcmcore.utils.post_processing import get_position_from_states

# --------------------------------------------------
# Mock classes
# --------------------------------------------------
def standard_normal(x):
    return -0.5 * float(np.sum(x**2))

def flat(x):
    return 0.0

class CountingKernel:
    """Kernel that always moves by +1 and counts its invocations."""
    def __init__(self):
        self.calls = 0

    def step(self, current, rng):
        self.calls += 1
        position = current.position + 1.0
        return ChainState(position=position, log_posterior=0.0, iteration=current.iteration + 1, metadata={"is_accepted": True}), True

# --------------------------------------------------
# Fixtures
# --------------------------------------------------
@pytest.fixture
def kernel():
    return MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1, step_size=1.0))

@pytest.fixture
def initial_position():
    return np.zeros((1, 1))

# --------------------------------------------------
# Iteration counts, burn-in and thinning
# --------------------------------------------------
def test_one_sample_per_iteration_without_thinning(initial_position):
    kernel = CountingKernel()
    config = SamplerConfig(n_iterations=25)
    samples = MCMCsampler(flat, kernel, initial_position, config).run()

    assert len(samples) == 25
    assert kernel.calls == 25
    assert [s.iteration for s in samples] == list(range(1, 26))

@pytest.mark.parametrize("n_iterations, thin", [(10, 3), (9, 3), (10, 1), (7, 10)])
def test_thinning_emits_every_thin_th_sampling_iteration(initial_position, n_iterations, thin):
    kernel = CountingKernel()
    config = SamplerConfig(n_iterations=n_iterations, burn_in=5, thin=thin)
    sampler = MCMCsampler(flat, kernel, initial_position, config)
    samples = sampler.run()

    assert len(samples) == math.ceil(n_iterations / thin) == config.n_samples
    assert [s.iteration for s in samples] == list(range(6, 6 + n_iterations, thin))
    assert kernel.calls == sampler.n_steps == 5 + n_iterations

def test_keep_burn_in_emits_warm_up_states(initial_position):
    config = SamplerConfig(n_iterations=10, burn_in=5, thin=3, keep_burn_in=True)
    samples = MCMCsampler(flat, CountingKernel(), initial_position, config).run()
    assert [s.iteration for s in samples] == [1, 2, 3, 4, 5, 6, 9, 12, 15]

def test_rejected_iterations_repeat_the_previous_position(initial_position):
    kernel = MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1, step_size=4.0))
    sampler = MCMCsampler(standard_normal, kernel, initial_position, SamplerConfig(n_iterations=300), rng=np.random.default_rng(0))
    samples = sampler.run()

    assert len(samples) == 300
    previous = sampler.initial_state
    n_rejected = 0
    for state in samples:
        assert state.iteration == previous.iteration + 1
        if not state.metadata["is_accepted"]:
            n_rejected += 1
            assert np.array_equal(state.position, previous.position)
        previous = state
    assert n_rejected > 0
    assert sampler.n_accepted == 300 - n_rejected
    assert np.isclose(sampler.acceptance_rate, sampler.n_accepted / 300)

# --------------------------------------------------
# Laziness, single use and stopping
# --------------------------------------------------
def test_samples_are_lazy(initial_position):
    kernel = CountingKernel()
    sampler = MCMCsampler(flat, kernel, initial_position, SamplerConfig(n_iterations=100))
    iterator = sampler.samples()
    assert kernel.calls == 0

    first = next(iterator)
    assert first.iteration == 1
    assert kernel.calls == 1

def test_samples_can_only_be_consumed_once(initial_position):
    sampler = MCMCsampler(flat, CountingKernel(), initial_position, SamplerConfig(n_iterations=5))
    list(sampler.samples())
    with pytest.raises(RuntimeError):
        sampler.samples()

def test_stop_ends_the_sequence_after_the_current_iteration(initial_position):
    kernel = CountingKernel()
    sampler = MCMCsampler(flat, kernel, initial_position, SamplerConfig(n_iterations=100))
    collected = []
    for state in sampler.samples():
        collected.append(state)
        if len(collected) == 3:
            sampler.stop()

    assert len(collected) == 3
    assert kernel.calls == 3
    assert sampler.phase == ChainPhase.DONE

def test_phase_transitions(initial_position):
    sampler = MCMCsampler(flat, CountingKernel(), initial_position, SamplerConfig(n_iterations=3, burn_in=2, keep_burn_in=True))
    assert sampler.phase == ChainPhase.WARMING_UP

    phases = []
    for _ in sampler.samples():
        phases.append(sampler.phase)

    assert phases == [ChainPhase.WARMING_UP] * 2 + [ChainPhase.SAMPLING] * 3
    assert sampler.phase == ChainPhase.DONE

# --------------------------------------------------
# Initial state
# --------------------------------------------------
def test_initial_state_is_evaluated(kernel):
    sampler = MCMCsampler(standard_normal, kernel, np.array([1.0, 2.0]))
    assert sampler.initial_state.position.shape == (2, 1)
    assert sampler.initial_state.log_posterior == -2.5
    assert sampler.initial_state.iteration == 0

@pytest.mark.parametrize("model", [
    lambda x: -math.inf,
    lambda x: math.nan,
    lambda x: math.log(-1.0),
])
def test_invalid_initial_state(kernel, initial_position, model):
    with pytest.raises(InvalidInitialState) as err:
        MCMCsampler(model, kernel, initial_position, chain_index=3)
    assert err.value.chain_index == 3
    assert "chain 3" in str(err.value)

def test_non_kernel_is_a_configuration_error(initial_position):
    with pytest.raises(ConfigurationError):
        MCMCsampler(standard_normal, object(), initial_position)

# --------------------------------------------------
# Adaptation
# --------------------------------------------------
def test_adaptation_freezes_at_adapt_until(kernel, initial_position):
    tuner = AdaptiveTuner(kernel)
    config = SamplerConfig(n_iterations=100, burn_in=50, adapt_until=50)
    MCMCsampler(standard_normal, kernel, initial_position, config, rng=np.random.default_rng(1), tuner=tuner).run()

    assert tuner.frozen
    assert tuner.n_adapted == 50
    assert tuner.record.iterations == 50

def test_adapt_until_zero_freezes_the_kernel(initial_position):
    kernel = AdaptiveMetropolisKernel(standard_normal, initial_cov=np.eye(1), adapt_start=10, adapt_interval=10)
    MCMCsampler(standard_normal, kernel, initial_position, SamplerConfig(n_iterations=50)).run()
    assert kernel.frozen
    assert kernel.n_rescales == 0

def test_adaptation_past_burn_in_is_logged(kernel, initial_position, caplog):
    package_logger = logging.getLogger("mcmcore")
    package_logger.addHandler(caplog.handler)
    try:
        MCMCsampler(standard_normal, kernel, initial_position, SamplerConfig(burn_in=10, adapt_until=20))
    finally:
        package_logger.removeHandler(caplog.handler)
    assert any(r.levelno == logging.WARNING and "past burn-in" in r.getMessage() for r in caplog.records)

def test_adaptation_divergence_carries_chain_index(initial_position):
    kernel = MetropolisHastingsKernel(flat, GaussianRandomWalk.isotropic(1, step_size=1.0))
    tuner = AdaptiveTuner(kernel, gain=1e4)
    sampler = MCMCsampler(flat, kernel, initial_position, SamplerConfig(adapt_until=10), tuner=tuner, chain_index=2)
    with pytest.raises(AdaptationDivergence) as err:
        sampler.run()
    assert err.value.chain_index == 2
    assert sampler.phase == ChainPhase.DONE

def test_tuner_must_belong_to_the_kernel(kernel, initial_position):
    other = MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1))
    with pytest.raises(ConfigurationError):
        MCMCsampler(standard_normal, kernel, initial_position, tuner=AdaptiveTuner(other))

    # A tuner on a sub-kernel of a composite is fine
    cycle = CycleKernel([kernel, other])
    MCMCsampler(standard_normal, cycle, initial_position, tuner=AdaptiveTuner(other))

def test_tuner_without_adapt_until_is_logged(kernel, initial_position, caplog):
    tuner = AdaptiveTuner(kernel, adapt_until=200)
    package_logger = logging.getLogger("mcmcore")
    package_logger.addHandler(caplog.handler)
    try:
        sampler = MCMCsampler(standard_normal, kernel, initial_position, SamplerConfig(n_iterations=300), tuner=tuner)
    finally:
        package_logger.removeHandler(caplog.handler)
    assert any(r.levelno == logging.WARNING and "adapt_until is 0" in r.getMessage() for r in caplog.records)

    sampler.run()
    assert tuner.frozen
    assert tuner.n_adapted == 0
    assert kernel.get_tunable() == 1.0

def test_runner_stops_updating_the_tuner_at_adapt_until(kernel, initial_position):
    # The tuner freezes itself first but keeps counting until the runner stops
    tuner = AdaptiveTuner(kernel, adapt_until=20)
    config = SamplerConfig(n_iterations=100, burn_in=50, adapt_until=50)
    MCMCsampler(standard_normal, kernel, initial_position, config, rng=np.random.default_rng(3), tuner=tuner).run()

    assert tuner.n_adapted == 20
    assert tuner.record.iterations == 50

def test_tuner_on_cycle_sub_kernel_follows_its_own_acceptance():
    slice_kernel = SliceKernel(standard_normal, indices=[0])
    block = MetropolisHastingsKernel(standard_normal, BlockProposal(GaussianRandomWalk.isotropic(1, step_size=1.0), indices=[1]))
    tuner = AdaptiveTuner(block, target_acceptance=0.234)
    config = SamplerConfig(n_iterations=4_000, burn_in=5_000, adapt_until=5_000)
    sampler = MCMCsampler(standard_normal, CycleKernel([slice_kernel, block]), np.zeros((2, 1)), config, rng=np.random.default_rng(11), tuner=tuner)

    samples = sampler.run()

    assert tuner.record.iterations == 5_000
    block_acceptance = np.mean([s.metadata["sub_accepted"][1] for s in samples])
    assert np.isclose(block_acceptance, 0.234, atol=0.05)
    # A 1-d random walk accepts 23.4% of moves at a scale of about 5
    assert 2.0 < block.get_tunable() < 12.0
    # The slice step always accepts, so the cycle as a whole does too
    assert sampler.acceptance_rate == 1.0

def test_tuner_on_mixture_component_skips_iterations_it_did_not_run():
    cautious = MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1, step_size=0.01))
    tuned = MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1, step_size=1.0))
    tuner = AdaptiveTuner(tuned, target_acceptance=0.44)
    config = SamplerConfig(n_iterations=6_000, burn_in=6_000, adapt_until=6_000, keep_burn_in=True)
    mixture = MixtureKernel([(0.5, cautious), (0.5, tuned)])
    samples = MCMCsampler(standard_normal, mixture, np.zeros((1, 1)), config, rng=np.random.default_rng(5), tuner=tuner).run()

    warm_up, kept = samples[:6_000], samples[6_000:]
    assert tuner.record.iterations == sum(s.metadata["kernel_index"] == 1 for s in warm_up)

    tuned_steps = [s.metadata["is_accepted"] for s in kept if s.metadata["kernel_index"] == 1]
    assert np.isclose(np.mean(tuned_steps), 0.44, atol=0.05)
    assert 1.0 < tuned.get_tunable() < 5.0

# --------------------------------------------------
# Target recovery
# --------------------------------------------------
def test_one_dimensional_standard_normal_scenario(kernel, initial_position):
    config = SamplerConfig(n_iterations=10_000, burn_in=1_000, thin=1)
    sampler = MCMCsampler(standard_normal, kernel, initial_position, config, rng=np.random.default_rng(42))
    samples = sampler.run()

    positions = get_position_from_states(samples)
    assert positions.shape == (1, 10_000)
    assert abs(np.mean(positions)) < 0.05
    assert abs(np.var(positions) - 1.0) < 0.1

def test_same_seed_same_chain(initial_position):
    def chain():
        kernel = MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1, step_size=1.0))
        return MCMCsampler(standard_normal, kernel, initial_position, SamplerConfig(n_iterations=200), rng=np.random.default_rng(7)).run()

    a, b = chain(), chain()
    assert np.array_equal(get_position_from_states(a), get_position_from_states(b))
