"""
Linear MUPE fitter.

Iteratively re-weighted least squares with weights equal to the inverse
squared predictions of the prior iteration, for linear-in-parameters
models with multiplicative error.
"""

import logging
import warnings

import pandas as pd

from .irls import (
    DEFAULT_MAX_ITER, DEFAULT_TOL, IterationRecord,
    check_options, mupe_weights, run_irls,
)
from .results import LinearMUPEResult
from .solvers import solve_wls

logger = logging.getLogger(__name__)

# No-intercept factor model, the customary MUPE cost-estimating form
FACTOR_MODEL = "y ~ 0 + x"


def fit_linear(formula=FACTOR_MODEL, data=None, tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER,
               verbose=0):
    """
    Fit a linear model by Minimum Unbiased Percent Error.

    The first iteration is an ordinary least-squares fit. Each following
    iteration refits with weights ``1 / fitted**2`` from the previous fit
    until the largest fractional parameter change is at most ``tol``.

    Parameters
    ----------
    formula : str, default="y ~ 0 + x"
        statsmodels formula, e.g. ``"y ~ x1"``. The default is the
        no-intercept factor model.
    data : DataFrame or mapping
        Table holding the variables in ``formula``. Not modified. Required.
    tol : float, default=1e-5
        Convergence threshold on the maximum fractional parameter change.
    max_iter : int, default=200
        Hard cap on outer iterations. Reaching it is not an error.
    verbose : int, default=0
        0: silent. 1: warn if the cap is reached. 2: also log each
        iteration at INFO.

    Returns
    -------
    LinearMUPEResult
        ``n_iter`` counts the OLS fit as iteration 1.

    Raises
    ------
    ZeroFittedValueError
        If a fitted value is zero when weights are computed.

    Examples
    --------
    >>> from mupe import fit_linear
    >>> result = fit_linear("y ~ x1", df)  # doctest: +SKIP
    >>> result.params, result.n_iter  # doctest: +SKIP
    """
    if data is None:
        raise TypeError("fit_linear() requires data")
    check_options(tol, max_iter)
    data = pd.DataFrame(data)

    ols = solve_wls(formula, data)
    first = IterationRecord(
        iteration=1, params=ols.params, weights=None, fitted=ols.fitted, conv=None
    )
    logger.debug("MUPE iteration 1 (OLS): params=%s", dict(ols.params))

    if max_iter == 1:
        return _build_result(formula, ols, None, 1, float('inf'), False,
                             (first,), tol, max_iter, verbose)

    def solve(params, weights):
        return solve_wls(formula, data, weights)

    outcome = run_irls(
        solve, ols.params, mupe_weights(ols.fitted),
        n_iter=1, tol=tol, max_iter=max_iter, history=(first,), verbose=verbose,
    )
    return _build_result(formula, outcome.fit, outcome.weights, outcome.n_iter,
                         outcome.conv, outcome.converged, outcome.history,
                         tol, max_iter, verbose)


def _build_result(formula, fit, weights, n_iter, conv, converged, history,
                  tol, max_iter, verbose):
    if not converged and verbose >= 1:
        warnings.warn(
            f"MUPE did not converge in {max_iter} iterations "
            f"(conv={conv:.3e} > tol={tol:g}). Returning the last fit.",
            UserWarning
        )
    logger.info("Linear MUPE finished: n_iter=%d converged=%s conv=%.3e",
                n_iter, converged, conv)

    return LinearMUPEResult(
        params=fit.params,
        fitted=fit.fitted,
        residuals=fit.residuals,
        weights=weights,
        n_iter=n_iter,
        converged=converged,
        conv=conv,
        history=history,
        model=fit.model,
        formula=formula,
        tol=tol,
        max_iter=max_iter,
    )


# Alias matching the conventional name of the technique
mupe_linear = fit_linear
