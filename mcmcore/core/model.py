"""
Model interfaces for MCMC sampling.

This module provides the ModelProtocol that target densities implement and
the helpers kernels use to evaluate them. The engine only needs the target
log-density; models are validated automatically when evaluated.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Protocol, Union, runtime_checkable

import numpy as np

from mcmcore.exceptions import InvalidProposal

#: Exceptions raised by a model that mean "this input is outside the support".
DENSITY_ERRORS = (InvalidProposal, ValueError, ArithmeticError, np.linalg.LinAlgError)

_POSTERIOR_KEYS = ("log_posterior", "log_prior", "log_likelihood")


@runtime_checkable
class ModelProtocol(Protocol):
    """
    Protocol defining the required interface for target densities.

    A model must be callable, accept a parameter vector of shape (d, 1), be a
    pure function of it, and return either the log-density as a number or a
    dictionary specified via:

    **Option 1 - Direct posterior:**
        Return dict with 'log_posterior' key.

    **Option 2 - Component-based:**
        Return dict with both 'log_prior' and 'log_likelihood' keys.

    Other keys are allowed and ignored by the engine.

    An input outside the support is signalled by returning NaN, by returning
    -inf (zero density), or by raising InvalidProposal / ValueError /
    ArithmeticError.

    Examples:
        Function::

            def my_model(params: np.ndarray) -> float:
                return -0.5 * float(np.sum(params ** 2))

        Component-based::

            def my_model(params: np.ndarray) -> dict:
                return {
                    "log_prior": -0.5 * np.sum(params ** 2),
                    "log_likelihood": -np.sum((params - 1.0) ** 2),
                }
    """

    def __call__(self, params: np.ndarray) -> Union[float, Dict[str, Any]]:
        ...


def validate_model_output(output: Union[float, Dict[str, Any]]) -> None:
    """
    Validate that model output satisfies ModelProtocol.

    Raises:
        TypeError: If output is neither a real number nor a dict.
        ValueError: If the dict posterior specification is invalid.
    """
    if isinstance(output, (int, float, np.integer, np.floating)) and not isinstance(output, bool):
        return
    if isinstance(output, np.ndarray) and output.size == 1:
        return
    if not isinstance(output, dict):
        raise TypeError(f"Model must return a number or dict, got {type(output).__name__}.")

    has_log_posterior = "log_posterior" in output
    has_log_prior = "log_prior" in output
    has_log_likelihood = "log_likelihood" in output

    if not has_log_posterior and not (has_log_prior and has_log_likelihood):
        raise ValueError(
            f"Model output must contain either:\n"
            f"  1. 'log_posterior' key, OR\n"
            f"  2. Both 'log_prior' AND 'log_likelihood' keys\n"
            f"Got: {list(output.keys())}"
        )

    if has_log_posterior and (has_log_prior or has_log_likelihood):
        raise ValueError(
            f"Cannot mix 'log_posterior' with component specifications. "
            f"Got: {list(output.keys())}"
        )


def evaluate_model(model: ModelProtocol, position: np.ndarray) -> Dict[str, float]:
    """
    Evaluate a model and normalise its output to ChainState keyword arguments.

    Args:
        model: Target density.
        position: Parameter vector of shape (d, 1).

    Returns:
        Dict with 'log_posterior' and, for component-based models,
        'log_prior' and 'log_likelihood'. All values are Python floats.

    Raises:
        InvalidProposal: If the model signals an invalid input, or the
            resulting log-density is NaN or +inf. -inf is a legal value.
        TypeError, ValueError: If the model output is malformed. These are
            programming errors and are not converted.
    """
    try:
        output = model(position)
    except DENSITY_ERRORS as err:
        raise InvalidProposal(f"log-density evaluation failed: {err}") from err

    validate_model_output(output)

    if isinstance(output, dict):
        result = {key: float(output[key]) for key in _POSTERIOR_KEYS if key in output}
        if "log_posterior" not in result:
            result["log_posterior"] = result["log_prior"] + result["log_likelihood"]
    else:
        result = {"log_posterior": float(np.asarray(output).reshape(-1)[0])}

    log_posterior = result["log_posterior"]
    if math.isnan(log_posterior) or log_posterior == math.inf:
        raise InvalidProposal(f"log-density evaluated to {log_posterior}")
    return result
