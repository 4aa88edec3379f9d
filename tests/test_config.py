import pytest

from mcmcore.config import ExecutionMode, SamplerConfig
from mcmcore.exceptions import ConfigurationError


def test_defaults():
    config = SamplerConfig()
    assert config.n_iterations == 1000
    assert config.burn_in == 0
    assert config.thin == 1
    assert config.n_chains == 1
    assert config.target_acceptance is None
    assert config.adapt_until == 0
    assert config.execution_mode is ExecutionMode.SEQUENTIAL


def test_derived_counts():
    config = SamplerConfig(n_iterations=10, burn_in=4, thin=3)
    assert config.total_iterations == 14
    assert config.n_samples == 4


def test_execution_mode_accepts_strings():
    assert SamplerConfig(execution_mode="parallel").execution_mode is ExecutionMode.PARALLEL


@pytest.mark.parametrize("options", [
    {"n_chains": 0},
    {"thin": 0},
    {"n_iterations": 0},
    {"burn_in": -1},
    {"adapt_until": -5},
    {"target_acceptance": 0.0},
    {"target_acceptance": 1.0},
    {"target_acceptance": "high"},
    {"execution_mode": "distributed"},
    {"max_workers": 0},
    {"log_every": -1},
    {"thin": 1.5},
    {"n_chains": True},
])
def test_invalid_options(options):
    with pytest.raises(ConfigurationError):
        SamplerConfig(**options)


def test_all_problems_are_reported_together():
    with pytest.raises(ConfigurationError) as err:
        SamplerConfig(n_chains=0, thin=0)
    message = str(err.value)
    assert "n_chains" in message
    assert "thin" in message


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        SamplerConfig(thin=0)


def test_dict_round_trip():
    config = SamplerConfig(n_iterations=50, n_chains=4, execution_mode="parallel", max_workers=2)
    options = config.to_dict()
    assert options["execution_mode"] == "parallel"
    assert SamplerConfig.from_dict(options) == config


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigurationError):
        SamplerConfig.from_dict({"n_iterations": 10, "n_walkers": 4})


def test_from_yaml(tmp_path):
    path = tmp_path / "sampler.yaml"
    path.write_text(
        "n_iterations: 2000\n"
        "burn_in: 500\n"
        "thin: 2\n"
        "n_chains: 4\n"
        "execution_mode: parallel\n"
    )
    config = SamplerConfig.from_yaml(path)
    assert config.n_iterations == 2000
    assert config.burn_in == 500
    assert config.thin == 2
    assert config.n_chains == 4
    assert config.execution_mode is ExecutionMode.PARALLEL


def test_from_yaml_section(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(
        "model:\n"
        "  name: banana\n"
        "sampler:\n"
        "  n_iterations: 300\n"
        "  adapt_until: 100\n"
    )
    config = SamplerConfig.from_yaml(path, section="sampler")
    assert config.n_iterations == 300
    assert config.adapt_until == 100

    with pytest.raises(ConfigurationError):
        SamplerConfig.from_yaml(path, section="missing")


def test_from_yaml_validates(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("thin: 0\n")
    with pytest.raises(ConfigurationError):
        SamplerConfig.from_yaml(path)
