"""
Tests for the Metropolis-Hastings and adaptive Metropolis kernels
"""

import numpy as np
import pytest
from scipy.stats import norm

from mcmcore.core.state import ChainState
from mcmcore.exceptions import ConfigurationError
from mcmcore.kernels.adaptive_metropolis import AdaptiveMetropolisKernel
from mcmcore.kernels.metropolis import MetropolisHastingsKernel
from mcmcore.proposals.discrete import BitFlipProposal
from mcmcore.proposals.gaussianproposal import GaussianRandomWalk, IndependentProposal
from mcmcore.utils.post_processing import get_position_from_states


def standard_normal(x):
    return -0.5 * float(np.sum(x**2))


def run_kernel(kernel, x0, n, seed):
    rng = np.random.default_rng(seed)
    state = ChainState(position=x0, log_posterior=kernel.model(x0))
    states = []
    for _ in range(n):
        state, _ = kernel.step(state, rng)
        states.append(state)
    return states


# --------------------------------------------------
# Fixtures
# --------------------------------------------------
@pytest.fixture
def rw_kernel():
    return MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(2, step_size=1.0))


# --------------------------------------------------
# Metropolis-Hastings
# --------------------------------------------------
def test_symmetric_walk_ratio_is_density_difference(rw_kernel):
    current = ChainState(position=np.array([[0.0], [0.0]]), log_posterior=0.0)
    proposed = ChainState(position=np.array([[1.0], [1.0]]), log_posterior=-1.0)
    assert np.isclose(rw_kernel.log_acceptance_ratio(current, proposed), -1.0)


def test_hastings_correction_for_independent_proposal():
    proposal = IndependentProposal(mu=np.zeros((1, 1)), sigma=np.array([[4.0]]))
    kernel = MetropolisHastingsKernel(standard_normal, proposal)

    current = ChainState(position=np.array([[1.0]]), log_posterior=-0.5)
    proposed = ChainState(position=np.array([[-2.0]]), log_posterior=-2.0)

    expected = (-2.0 + norm.logpdf(1.0, scale=2.0)) - (-0.5 + norm.logpdf(-2.0, scale=2.0))
    assert np.isclose(kernel.log_acceptance_ratio(current, proposed), expected)


def test_independence_sampler_with_target_as_proposal_always_accepts():
    proposal = IndependentProposal(mu=np.zeros((1, 1)), sigma=np.eye(1))
    kernel = MetropolisHastingsKernel(standard_normal, proposal)
    states = run_kernel(kernel, np.zeros((1, 1)), 200, seed=3)
    assert all(s.metadata["is_accepted"] for s in states)


def test_rejected_steps_repeat_position_and_advance_iteration():
    kernel = MetropolisHastingsKernel(standard_normal, GaussianRandomWalk.isotropic(1, step_size=5.0))
    states = run_kernel(kernel, np.zeros((1, 1)), 500, seed=0)

    rejected = 0
    for prev, nxt in zip(states[:-1], states[1:]):
        assert nxt.iteration == prev.iteration + 1
        if not nxt.metadata["is_accepted"]:
            rejected += 1
            assert np.array_equal(nxt.position, prev.position)
            assert nxt.log_posterior == prev.log_posterior
    assert rejected > 0


def test_standard_normal_moments(rw_kernel):
    states = run_kernel(rw_kernel, np.zeros((2, 1)), 20000, seed=11)
    positions = get_position_from_states(states, burnin=0.1)

    assert np.allclose(np.mean(positions, axis=1), 0.0, atol=0.1)
    assert np.allclose(np.var(positions, axis=1), 1.0, atol=0.15)


def test_tunable_parameter_is_the_proposal_scale(rw_kernel):
    assert rw_kernel.get_tunable() == 1.0
    rw_kernel.set_tunable(0.5)
    assert rw_kernel.proposal.scale == 0.5
    assert np.allclose(rw_kernel.proposal.proposal_cov, 0.25 * np.eye(2))


def test_untunable_proposal_raises_configuration_error():
    kernel = MetropolisHastingsKernel(standard_normal, BitFlipProposal())
    with pytest.raises(ConfigurationError):
        kernel.get_tunable()


# --------------------------------------------------
# Adaptive Metropolis
# --------------------------------------------------
def test_adaptive_metropolis_learns_correlation():
    cov = np.array([[1.0, 0.8], [0.8, 1.0]])
    prec = np.linalg.inv(cov)

    def correlated(x):
        return -0.5 * float(x.T @ prec @ x)

    kernel = AdaptiveMetropolisKernel(correlated, initial_cov=0.1 * np.eye(2), adapt_start=200, adapt_interval=50)
    assert kernel.target_acceptance == 0.234

    run_kernel(kernel, np.zeros((2, 1)), 5000, seed=5)

    assert kernel.n_rescales > 0
    learned = kernel.proposal.cov
    assert learned[0, 1] > 0.0
    corr = learned[0, 1] / np.sqrt(learned[0, 0] * learned[1, 1])
    assert np.isclose(corr, 0.8, atol=0.15)


def test_adaptive_metropolis_freeze_stops_learning():
    kernel = AdaptiveMetropolisKernel(standard_normal, initial_cov=np.eye(1), adapt_start=10, adapt_interval=10)
    assert kernel.target_acceptance == 0.44

    run_kernel(kernel, np.zeros((1, 1)), 100, seed=2)
    kernel.freeze()
    n_rescales, count, cov = kernel.n_rescales, kernel.moments.count, kernel.proposal.cov.copy()

    run_kernel(kernel, np.zeros((1, 1)), 100, seed=2)
    assert kernel.n_rescales == n_rescales
    assert kernel.moments.count == count
    assert np.array_equal(kernel.proposal.cov, cov)


def test_adaptive_metropolis_rejects_bad_settings():
    with pytest.raises(ValueError):
        AdaptiveMetropolisKernel(standard_normal, initial_cov=np.eye(2), adapt_start=1)
    with pytest.raises(ValueError):
        AdaptiveMetropolisKernel(standard_normal, initial_cov=np.eye(2), adapt_interval=0)
