"""
Inner least-squares solvers used by the MUPE fitters.

``solve_wls`` delegates to statsmodels' formula interface; ``solve_nls``
delegates to the MINPACK Levenberg-Marquardt implementation behind
``scipy.optimize.least_squares(method='lm')``. The MUPE fitters own only
the reweighting policy around these calls.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy.optimize import approx_fprime, least_squares

from ..exceptions import SolverFailure, InnerSolverWarning

logger = logging.getLogger(__name__)

# Smallest singular value of the column-normalized Jacobian, relative to the
# largest, below which the gradient is treated as singular
SINGULAR_RTOL = 1e-6

# Relative forward-difference step for the Jacobian
_FD_STEP = np.sqrt(np.finfo(float).eps)


@dataclass(frozen=True)
class LinearFit:
    """Weighted linear least-squares fit (statsmodels result wrapped)."""
    params: pd.Series
    fitted: np.ndarray
    residuals: np.ndarray
    model: object

    @property
    def bse(self) -> pd.Series:
        return self.model.bse


@dataclass(frozen=True)
class NLSFit:
    """Weighted nonlinear least-squares fit.

    Attributes
    ----------
    params : pandas.Series
        Parameter estimates indexed by name.
    fitted, residuals : ndarray
        Unweighted fitted values and response residuals ``y - fitted``.
    weights : ndarray
        Observation weights used for this fit.
    jacobian : ndarray
        Jacobian of the weighted residual vector at the solution.
    status : int
        scipy termination status (0: inner iteration budget reached,
        1-4: converged).
    message : str
        scipy termination message.
    nfev : int
        Residual evaluations used, excluding Jacobian differencing.
    n_inner_iter : int
        Levenberg-Marquardt iterations performed.
    diagnostics : tuple of str
        Recoverable solver diagnostics captured during the call.
    """
    params: pd.Series
    fitted: np.ndarray
    residuals: np.ndarray
    weights: np.ndarray
    jacobian: np.ndarray
    status: int
    message: str
    nfev: int
    n_inner_iter: int = 0
    diagnostics: Tuple[str, ...] = ()

    @property
    def converged(self) -> bool:
        return self.status > 0

    @property
    def df_resid(self) -> int:
        return len(self.fitted) - len(self.params)

    @property
    def scale(self) -> float:
        """Residual variance of the weighted fit."""
        wresid = np.sqrt(self.weights) * self.residuals
        dof = self.df_resid
        return float(np.sum(wresid ** 2) / dof) if dof > 0 else np.nan

    @property
    def cov_params(self) -> pd.DataFrame:
        """Asymptotic covariance ``scale * (J'J)^-1``."""
        names = self.params.index
        jtj = self.jacobian.T @ self.jacobian
        cov = self.scale * np.linalg.inv(jtj)
        return pd.DataFrame(cov, index=names, columns=names)

    @property
    def bse(self) -> pd.Series:
        """Standard errors of the parameters."""
        return pd.Series(np.sqrt(np.diag(self.cov_params)), index=self.params.index)


def _is_singular(jac):
    """Whether the Jacobian columns are (numerically) linearly dependent."""
    norms = np.linalg.norm(jac, axis=0)
    if np.any(norms == 0):
        return True
    s = np.linalg.svd(jac / norms, compute_uv=False)
    return s[-1] < SINGULAR_RTOL * s[0]


def solve_wls(formula: str, data: pd.DataFrame, weights: Optional[np.ndarray] = None):
    """Fit a (weighted) linear least-squares model from a formula.

    Parameters
    ----------
    formula : str
        statsmodels/patsy formula, e.g. ``"y ~ x1"`` or ``"y ~ 0 + x"``.
    data : DataFrame
        Table holding every variable in the formula.
    weights : ndarray or None, default=None
        Observation weights. None fits ordinary least squares.

    Returns
    -------
    LinearFit

    Notes
    -----
    Errors from statsmodels/patsy (missing columns, malformed formulas)
    propagate unchanged. Rows with missing values raise ValueError.
    Rank-deficient designs are solved with statsmodels' pseudo-inverse.
    """
    if weights is None:
        model = smf.ols(formula, data=data).fit()
    else:
        weights = np.asarray(weights, dtype=float)
        if len(weights) != len(data):
            raise ValueError(
                f"weights has {len(weights)} elements but data has {len(data)} rows"
            )
        model = smf.wls(formula, data=data, weights=weights).fit()

    if len(model.fittedvalues) != len(data):
        raise ValueError(
            f"{len(data) - len(model.fittedvalues)} rows with missing values in "
            f"the variables of {formula!r}; MUPE weights need every row"
        )

    return LinearFit(
        params=model.params,
        fitted=np.asarray(model.fittedvalues, dtype=float),
        residuals=np.asarray(model.resid, dtype=float),
        model=model,
    )


class _InnerBudgetReached(Exception):
    """Stops MINPACK once the LM iteration budget is spent."""


def solve_nls(model, data: pd.DataFrame, params, weights, max_inner_iter: int = 10):
    """Fit a weighted nonlinear least-squares model with Levenberg-Marquardt.

    Minimizes ``sum(weights * (y - f(x, params))**2)``.

    Parameters
    ----------
    model : NonlinearFormula or FunctionModel
        Model exposing ``param_names``, ``observed(data)`` and
        ``evaluate(data, params)``.
    data : DataFrame
        Observations.
    params : pandas.Series or mapping
        Starting values, keyed by parameter name.
    weights : ndarray
        Observation weights.
    max_inner_iter : int, default=10
        Levenberg-Marquardt iteration budget. An iteration starts with a
        forward-difference Jacobian at the current iterate and ends when a
        trial step is accepted. Once the budget is spent the solver stops
        at the last accepted iterate.

    Returns
    -------
    NLSFit
        Reaching the iteration budget is not a failure: the fit is
        returned with ``status == 0`` and a diagnostic entry.

    Raises
    ------
    SolverFailure
        If residuals are not finite at the starting point, MINPACK reports
        improper input, the solution is not finite, or the Jacobian at the
        solution is rank-deficient.
    """
    names = list(model.param_names)
    x0 = np.array([float(params[p]) for p in names])
    y = model.observed(data)
    sqrt_w = np.sqrt(np.asarray(weights, dtype=float))

    def weighted_residuals(theta):
        return sqrt_w * (y - model.evaluate(data, theta))

    # distinct points where MINPACK asked for the Jacobian; each starts an
    # LM iteration once a trial step is evaluated from it
    iterates = []
    jacobians = []
    counts = {'n_iter': 0, 'nfev': 0}

    def jacobian(theta):
        theta = np.array(theta, dtype=float)
        if not iterates or not np.array_equal(theta, iterates[-1]):
            iterates.append(theta)
            step = _FD_STEP * np.maximum(1.0, np.abs(theta))
            jacobians.append(np.atleast_2d(approx_fprime(theta, weighted_residuals, step)))
        return jacobians[-1]

    def residuals(theta):
        if len(iterates) > counts['n_iter']:
            if len(iterates) > max_inner_iter:
                raise _InnerBudgetReached
            counts['n_iter'] = len(iterates)
        counts['nfev'] += 1
        return weighted_residuals(theta)

    fp_errors = []

    def record_fp_error(kind, flag):
        message = f"Floating point {kind} while evaluating the model"
        if message not in fp_errors:
            fp_errors.append(message)

    # numpy floating-point errors while LM probes trial points are
    # recoverable; the callback is scoped to this thread
    fp_state = dict(all='call', under='ignore', call=record_fp_error)
    with np.errstate(**fp_state):
        try:
            result = least_squares(residuals, x0, jac=jacobian, method='lm')
        except _InnerBudgetReached:
            result = None
        except ValueError as e:
            raise SolverFailure(f"Nonlinear solver failed: {e}") from e

    if result is None:
        theta = iterates[-1]
        jac = jacobians[-1]
        status = 0
        message = f"Inner iteration budget of {max_inner_iter} reached"
        budget_note = f"{message} ({counts['nfev']} evaluations)"
    else:
        if result.status == -1:
            raise SolverFailure(f"Nonlinear solver failed: {result.message}")
        budget_note = None
        theta = result.x
        jac = np.atleast_2d(result.jac)
        status = int(result.status)
        message = str(result.message)

    with np.errstate(**fp_state):
        fitted = model.evaluate(data, theta)

    diagnostics = list(fp_errors)
    if budget_note:
        diagnostics.append(budget_note)

    if not (np.all(np.isfinite(theta)) and np.all(np.isfinite(fitted))):
        raise SolverFailure(
            f"Nonlinear solver produced a non-finite solution: "
            f"{dict(zip(names, theta))}"
        )

    if _is_singular(jac):
        raise SolverFailure(
            f"Singular gradient at parameter estimates {dict(zip(names, theta))}"
        )

    for entry in diagnostics:
        logger.debug("Inner solver diagnostic: %s", entry)

    return NLSFit(
        params=pd.Series(theta, index=names, dtype=float),
        fitted=fitted,
        residuals=y - fitted,
        weights=np.asarray(weights, dtype=float),
        jacobian=jac,
        status=status,
        message=message,
        nfev=counts['nfev'],
        n_inner_iter=counts['n_iter'],
        diagnostics=tuple(diagnostics),
    )


def warn_diagnostics(fit):
    """Re-issue captured inner-solver diagnostics as InnerSolverWarning."""
    for message in fit.diagnostics:
        warnings.warn(message, InnerSolverWarning, stacklevel=2)
