"""
Nonlinear MUPE fitter.

Iteratively re-weighted nonlinear least squares (Levenberg-Marquardt) with
weights equal to the inverse squared predictions of the prior iteration.
Each outer step gives the inner solver a small iteration budget and warm
starts it from the previous estimate, so the weights are refreshed before
any single step settles on a transient weight vector.
"""

import logging
import warnings

import numpy as np
import pandas as pd

from ..exceptions import InvalidParameterNamingError
from .formula import NonlinearFormula
from .irls import (
    DEFAULT_MAX_INNER_ITER, DEFAULT_MAX_ITER, DEFAULT_TOL,
    check_options, run_irls,
)
from .results import NonlinearMUPEResult
from .solvers import solve_nls, warn_diagnostics

logger = logging.getLogger(__name__)


def _as_start(start):
    """Normalize the initial guess to an ordered name -> float dict."""
    if isinstance(start, pd.Series):
        start = start.to_dict()
    if not isinstance(start, dict) or not start:
        raise ValueError(
            "start must be a non-empty mapping of parameter name to value, "
            "e.g. {'a': 10, 'b': 1}"
        )
    values = {str(k): float(v) for k, v in start.items()}
    bad = [k for k, v in values.items() if not np.isfinite(v)]
    if bad:
        raise ValueError(f"Initial guess is not finite for parameters {bad}")
    return values


def fit_nonlinear(formula, data, start, tol=DEFAULT_TOL, max_iter=DEFAULT_MAX_ITER,
                  max_inner_iter=DEFAULT_MAX_INNER_ITER, verbose=0):
    """
    Fit a nonlinear model by Minimum Unbiased Percent Error.

    Parameters
    ----------
    formula : str or NonlinearFormula
        R ``nls``-style formula, e.g. ``"y ~ a * x1^b * c^x2"``, or a
        prepared model object (see :class:`~mupe.regression.formula.FunctionModel`).
    data : DataFrame or mapping
        Table holding the response and predictor columns. Not modified.
    start : mapping or pandas.Series
        Initial guess keyed by parameter name. Names must appear in the
        formula. Provide values of the correct sign and order of magnitude;
        for log-linear forms the log-space OLS solution is a good choice.
    tol : float, default=1e-5
        Convergence threshold on the maximum fractional parameter change.
    max_iter : int, default=200
        Hard cap on outer iterations. Reaching it is not an error.
    max_inner_iter : int, default=10
        Levenberg-Marquardt iteration budget per outer iteration.
    verbose : int, default=0
        0: silent. 1: warn if the cap is reached. 2: also log each
        iteration at INFO and re-issue inner-solver diagnostics as
        :class:`~mupe.exceptions.InnerSolverWarning`.

    Returns
    -------
    NonlinearMUPEResult

    Raises
    ------
    InvalidParameterNamingError
        If ``start`` names do not match the formula, before any solver call.
    SolverFailure
        If the inner solver cannot produce a fit.
    ZeroFittedValueError
        If a fitted value is zero when weights are computed.

    Examples
    --------
    >>> from mupe import fit_nonlinear
    >>> result = fit_nonlinear("y ~ b0 * x1^b1", df, start={'b0': 10, 'b1': 1})  # doctest: +SKIP
    >>> result.named_params  # doctest: +SKIP
    """
    check_options(tol, max_iter, max_inner_iter)
    start = _as_start(start)
    data = pd.DataFrame(data)

    if isinstance(formula, str):
        model = NonlinearFormula(formula, list(start))
    else:
        model = formula
        missing = [p for p in model.param_names if p not in start]
        extra = [p for p in start if p not in model.param_names]
        if missing or extra:
            raise InvalidParameterNamingError(
                f"Initial guess does not match model parameters "
                f"{list(model.param_names)}: missing {missing}, unexpected {extra}"
            )
    model.validate(data)

    n_diagnostics = 0

    def solve(params, weights):
        nonlocal n_diagnostics
        fit = solve_nls(model, data, params, weights, max_inner_iter=max_inner_iter)
        n_diagnostics += len(fit.diagnostics)
        if verbose >= 2:
            warn_diagnostics(fit)
        return fit

    params0 = pd.Series([start[p] for p in model.param_names],
                        index=list(model.param_names), dtype=float)
    outcome = run_irls(
        solve, params0, np.ones(len(data)),
        n_iter=0, tol=tol, max_iter=max_iter, verbose=verbose,
    )

    if not outcome.converged and verbose >= 1:
        warnings.warn(
            f"MUPE did not converge in {max_iter} iterations "
            f"(conv={outcome.conv:.3e} > tol={tol:g}). Returning the last fit.",
            UserWarning
        )
    logger.info(
        "Nonlinear MUPE finished: n_iter=%d converged=%s conv=%.3e "
        "inner diagnostics=%d",
        outcome.n_iter, outcome.converged, outcome.conv, n_diagnostics
    )

    fit = outcome.fit
    return NonlinearMUPEResult(
        params=fit.params,
        fitted=fit.fitted,
        residuals=fit.residuals,
        weights=outcome.weights,
        n_iter=outcome.n_iter,
        converged=outcome.converged,
        conv=outcome.conv,
        history=outcome.history,
        model=fit,
        formula=model,
        tol=tol,
        max_iter=max_iter,
        start=dict(start),
        max_inner_iter=max_inner_iter,
        n_inner_diagnostics=n_diagnostics,
    )


# Alias matching the conventional name of the technique
mupe_nonlinear = fit_nonlinear
