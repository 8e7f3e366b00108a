"""
Shared Iteratively Re-weighted Least Squares machinery.

Both MUPE fitters run the same fixed-point iteration: fit with the current
weights, derive the next weights as the inverse squared fitted values,
and stop once the largest fractional change in any parameter drops to
``tol`` or the iteration counter reaches ``max_iter``.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
import pandas as pd

from ..exceptions import ZeroFittedValueError

logger = logging.getLogger(__name__)

DEFAULT_TOL = 1e-5
DEFAULT_MAX_ITER = 200
DEFAULT_MAX_INNER_ITER = 10


@dataclass(frozen=True)
class IterationRecord:
    """Snapshot of one outer iteration.

    ``weights`` are the weights that produced this fit (None for the
    unweighted first fit of the linear fitter); ``conv`` is the relative
    change against the previous parameter vector (None when there is no
    previous vector).
    """
    iteration: int
    params: pd.Series
    weights: Optional[np.ndarray]
    fitted: np.ndarray
    conv: Optional[float]


@dataclass(frozen=True)
class IRLSOutcome:
    """Final state of :func:`run_irls`."""
    fit: object
    params: pd.Series
    weights: np.ndarray
    n_iter: int
    conv: float
    converged: bool
    history: Tuple[IterationRecord, ...]


def check_options(tol, max_iter, max_inner_iter=None):
    """Validate the outer/inner iteration settings."""
    if not tol > 0:
        raise ValueError(f"tol must be positive, got {tol}")
    if int(max_iter) != max_iter or max_iter < 1:
        raise ValueError(f"max_iter must be a positive integer, got {max_iter}")
    if max_inner_iter is not None and (
            int(max_inner_iter) != max_inner_iter or max_inner_iter < 1):
        raise ValueError(
            f"max_inner_iter must be a positive integer, got {max_inner_iter}"
        )


def mupe_weights(fitted):
    """Compute MUPE weights ``1 / fitted**2``.

    Parameters
    ----------
    fitted : array-like
        Fitted values from the previous iteration.

    Returns
    -------
    ndarray
        Weight per observation.

    Raises
    ------
    ZeroFittedValueError
        If any fitted value is exactly zero or not finite.

    Examples
    --------
    >>> mupe_weights([1.0, 2.0, 4.0])
    array([1.    , 0.25  , 0.0625])
    """
    fitted = np.asarray(fitted, dtype=float)
    bad = (fitted == 0) | ~np.isfinite(fitted)
    if np.any(bad):
        raise ZeroFittedValueError(np.flatnonzero(bad))
    return 1.0 / fitted ** 2


def relative_change(new, old):
    """Largest fractional change ``max |(new - old) / new|``.

    A parameter that is exactly zero in both vectors has not changed and
    contributes 0. One that is zero only in ``new`` contributes ``inf``.
    """
    new = np.asarray(new, dtype=float)
    old = np.asarray(old, dtype=float)
    if new.shape != old.shape:
        raise ValueError(
            f"Parameter vectors differ in length: {new.shape} vs {old.shape}"
        )

    diff = np.abs(new - old)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = diff / np.abs(new)
    ratio = np.where(diff == 0, 0.0, ratio)
    return float(np.max(ratio)) if ratio.size else 0.0


def run_irls(solve: Callable, params, weights, n_iter=0,
             tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER, history=(),
             verbose=0):
    """Run the MUPE reweighting loop.

    Parameters
    ----------
    solve : callable
        ``solve(params, weights) -> fit`` where ``fit`` exposes ``params``
        (pandas Series) and ``fitted`` (ndarray). ``params`` is the previous
        estimate, usable as a warm start.
    params : pandas.Series
        Parameter vector the first step is compared against.
    weights : ndarray
        Weights for the first step.
    n_iter : int, default=0
        Iterations already performed before entering the loop.
    tol : float, default=1e-5
        Convergence threshold on :func:`relative_change`.
    max_iter : int, default=200
        Hard cap on the iteration counter.
    history : tuple of IterationRecord
        Records of iterations already performed.
    verbose : int, default=0
        2 logs each iteration at INFO instead of DEBUG.

    Returns
    -------
    IRLSOutcome
    """
    level = logging.INFO if verbose >= 2 else logging.DEBUG
    records = list(history)

    while True:
        fit = solve(params, weights)
        next_weights = mupe_weights(fit.fitted)
        conv = relative_change(fit.params, params)
        n_iter += 1
        records.append(IterationRecord(
            iteration=n_iter,
            params=fit.params,
            weights=weights,
            fitted=np.asarray(fit.fitted, dtype=float),
            conv=conv,
        ))
        logger.log(level, "MUPE iteration %d: conv=%.3e params=%s",
                   n_iter, conv, dict(fit.params))

        if conv <= tol or n_iter >= max_iter:
            break
        params, weights = fit.params, next_weights

    return IRLSOutcome(
        fit=fit,
        params=fit.params,
        weights=weights,
        n_iter=n_iter,
        conv=conv,
        converged=conv <= tol,
        history=tuple(records),
    )
