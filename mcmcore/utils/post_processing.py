"""
Helpers for turning emitted chain states into arrays and simple summaries
"""
import numpy as np

from mcmcore.core.state import ChainState

from typing import Dict, List, Optional


def get_position_from_states(samples: List[ChainState], burnin: Optional[float] = 0.0) -> np.ndarray:
    """
    From a list of ChainState objects, extract the position of each state.

    Parameters
    ----------
    samples : list of ChainState
        List of ChainState objects.
    burnin : float, optional
        Fraction of samples to discard from the front. Default is 0.0.

    Returns
    -------
    positions : np.ndarray
        2D numpy array of shape (d, N), where d is the number of dimensions and N is the number of samples.
    """

    if not isinstance(samples, list) or len(samples) == 0:
        raise ValueError("Samples should be a non-empty list of ChainState objects.")
    if not all(isinstance(s, ChainState) for s in samples):
        raise ValueError("All samples should be ChainState objects.")
    if not 0.0 <= burnin < 1.0:
        raise ValueError("Burn-in must be a fraction in [0, 1).")

    positions = [np.ravel(s.position) for s in samples]
    n_burnin = int(len(positions) * burnin)

    # (d, N)
    return np.column_stack(positions[n_burnin:])


def acceptance_rate(samples: List[ChainState]) -> float:
    """
    Fraction of states whose producing step was accepted, read from the
    'is_accepted' metadata. States without the flag are not counted.
    """
    flags = [s.metadata["is_accepted"] for s in samples if s.metadata and "is_accepted" in s.metadata]
    if not flags:
        return float("nan")
    return float(np.mean(flags))


def summarize(samples: List[ChainState]) -> Dict[str, np.ndarray]:
    """
    Per-coordinate sample mean, variance (ddof=1) and standard deviation.

    Returns
    -------
    summary : dict
        {'n_samples': int, 'mean': (d,), 'variance': (d,), 'std': (d,),
         'acceptance_rate': float}
    """
    positions = get_position_from_states(samples)
    variance = np.var(positions, axis=1, ddof=1) if positions.shape[1] > 1 else np.zeros(positions.shape[0])
    return {
        "n_samples": positions.shape[1],
        "mean": np.mean(positions, axis=1),
        "variance": variance,
        "std": np.sqrt(variance),
        "acceptance_rate": acceptance_rate(samples),
    }
