"""
Utility functions for MUPE regression.

Provides:
- Mean-one lognormal multiplicative errors with a target CV
- Synthetic multiplicative-error data sets for demonstrations and tests
"""

import numpy as np
import pandas as pd


def lognormal_sigma(cv_error):
    """
    Log-space standard deviation giving a lognormal with coefficient of
    variation ``cv_error``.

    Examples
    --------
    >>> round(lognormal_sigma(0.3), 4)
    0.2936
    """
    return np.sqrt(np.log(1 + cv_error ** 2))


def lognormal_errors(n, cv_error, random_state=None):
    """
    Draw multiplicative errors with mean 1 and coefficient of variation
    ``cv_error``.

    Parameters
    ----------
    n : int
        Number of draws.

    cv_error : float
        Coefficient of variation (e.g., 0.3 = 30%).

    random_state : int or None, default=None
        Random seed for reproducibility.

    Returns
    -------
    errors : ndarray of shape (n,)
    """
    if random_state is not None:
        np.random.seed(random_state)

    if cv_error <= 0:
        return np.ones(n)

    sigma = lognormal_sigma(cv_error)
    # mu = -sigma^2/2 gives E[exp(N(mu, sigma))] = 1
    return np.exp(np.random.normal(-0.5 * sigma ** 2, sigma, n))


def generate_multiplicative_data(
    func,
    n_obs,
    cv_error=0.3,
    x_ranges=None,
    response='y',
    random_state=None
):
    """
    Generate data from ``y = func(x) * epsilon`` with lognormal epsilon.

    Parameters
    ----------
    func : callable
        ``func(data) -> ndarray`` computing the true (noise-free) response
        from a DataFrame of predictors.

    n_obs : int
        Number of observations.

    cv_error : float, default=0.3
        Coefficient of variation for the multiplicative error.

    x_ranges : dict or None, default=None
        ``{column: (low, high)}``; each predictor is drawn uniformly from
        its range. Defaults to ``{'x1': (1, 100)}``.

    response : str, default='y'
        Name of the response column.

    random_state : int or None, default=None
        Random seed for reproducibility.

    Returns
    -------
    data : DataFrame
        Predictor columns, the response column, and ``y_true`` holding the
        noise-free values.

    Examples
    --------
    >>> df = generate_multiplicative_data(
    ...     lambda d: 180 + 6 * d['x1'],
    ...     n_obs=20,
    ...     cv_error=0.3,
    ...     x_ranges={'x1': (10, 100)},
    ...     random_state=42
    ... )
    >>> df.shape
    (20, 3)
    """
    if x_ranges is None:
        x_ranges = {'x1': (1, 100)}

    if random_state is not None:
        np.random.seed(random_state)

    data = pd.DataFrame({
        name: np.random.uniform(low, high, n_obs)
        for name, (low, high) in x_ranges.items()
    })

    y_true = np.asarray(func(data), dtype=float)
    data[response] = y_true * lognormal_errors(n_obs, cv_error)
    data['y_true'] = y_true
    return data
