"""
Script housing some helper functions
"""

# Imports
from typing import Optional

import numpy as np
import scipy.linalg


def lognormpdf(x: np.ndarray, mean: Optional[np.ndarray] = None, cov: Optional[np.ndarray] = None, chol: Optional[np.ndarray] = None) -> np.ndarray:

    """Compute log pdf of a multivariate Normal distribution.

    Inputs
    ------
    x : (d, N) array
        Points at which to evaluate the log PDF
    mean : (d, 1) or (d,) array
        Mean of the distribution (column vector or 1D array)
    cov : (d, d) array
        Covariance matrix
    chol : (d, d) array, optional
        Lower Cholesky factor of cov. Used instead of cov when given.

    Returns
    -------
    logpdf : float or (N,) array
        Log PDF value(s) - scalar if N=1, array otherwise
    """

    # Convert scalars to arrays for unified handling
    if np.isscalar(x):
        x = np.array([[x]], dtype=float)
    elif isinstance(x, np.ndarray) and x.ndim == 1:
        x = x[:, np.newaxis]

    d, N = x.shape

    if mean is None:
        mean = np.zeros(d, dtype=float)
    elif np.isscalar(mean):
        mean = np.array([mean], dtype=float)
    else:
        mean = np.asarray(mean, dtype=float).flatten()

    if chol is None:
        if cov is None:
            cov = np.eye(d, dtype=float)
        elif np.isscalar(cov):
            cov = np.array([[cov]], dtype=float)
        chol = cholesky_factor(np.asarray(cov, dtype=float))

    diff = x - mean[:, np.newaxis]

    # Solve L z = (x - mu); the quadratic form is |z|^2
    z = scipy.linalg.solve_triangular(chol, diff, lower=True)
    inexp = np.einsum("ij,ij->j", z, z)
    log_det = 2.0 * np.sum(np.log(np.diag(chol)))

    logpdf = -0.5 * (d * np.log(2.0 * np.pi) + log_det) - 0.5 * inexp

    # If N=1, return a scalar
    if N == 1:
        return logpdf.item()
    # Otherwise, return as a 1D array
    else:
        return logpdf.flatten()


def cholesky_factor(A: np.ndarray) -> np.ndarray:
    """
    Lower Cholesky factor of a symmetric positive definite matrix.

    Raises
    ------
    np.linalg.LinAlgError
        If A is not positive definite.
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    return scipy.linalg.cholesky(A, lower=True)


def nearest_positive_definite(A):
    """Find the nearest positive definite matrix to A."""
    B = (A + A.T) / 2
    _, s, V = np.linalg.svd(B)

    H = np.dot(V.T * s, V)

    A2 = (B + H) / 2
    A3 = (A2 + A2.T) / 2

    if is_positive_definite(A3):
        return A3

    spacing = np.spacing(np.linalg.norm(A))
    I = np.eye(A.shape[0])
    k = 1
    while not is_positive_definite(A3):
        mineig = np.min(np.real(np.linalg.eigvals(A3)))
        A3 += I * (-mineig * k**2 + spacing)
        k += 1

    return A3


def is_positive_definite(A: np.ndarray) -> bool:
    """
    Check if a matrix A is positive definite by attempting Cholesky decomposition.
    """
    try:
        scipy.linalg.cholesky(A, lower=True)
        return True
    except np.linalg.LinAlgError:
        return False


def optimal_scale(dim: int) -> float:
    """Optimal random-walk covariance scaling 2.38^2 / d (Gelman, Roberts and Gilks)."""
    return 2.38**2 / dim


def optimal_acceptance(dim: int) -> float:
    """Asymptotically optimal random-walk acceptance rate: 0.44 in 1-D, 0.234 otherwise."""
    return 0.44 if dim == 1 else 0.234


class RunningMoments:
    """
    Running mean and covariance of column vectors (Welford's online algorithm).

    Attributes
    ----------
    count : int
        Number of vectors seen.
    mean : (d, 1) array
    """

    def __init__(self, dim: int):
        self.dim = dim
        self.count = 0
        self.mean = np.zeros((dim, 1))
        self._m2 = np.zeros((dim, dim))

    def update(self, x: np.ndarray) -> None:
        x = np.asarray(x, dtype=float).reshape(self.dim, 1)
        self.count += 1
        delta = x - self.mean
        self.mean = self.mean + delta / self.count
        self._m2 = self._m2 + delta @ (x - self.mean).T

    @property
    def covariance(self) -> np.ndarray:
        """Unbiased sample covariance (zeros until two vectors are seen)."""
        if self.count < 2:
            return np.zeros((self.dim, self.dim))
        return self._m2 / (self.count - 1)
