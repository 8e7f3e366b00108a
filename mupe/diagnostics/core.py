"""
Fit statistics for MUPE results.

Provides:
- Standard Percent Error (SPE), the MUPE analogue of the standard error
- Mean percent error (bias), which MUPE drives toward zero
- MAPE, SEE, R-squared and Pearson R-squared
"""

from dataclasses import dataclass
from typing import Dict

import numpy as np


@dataclass(frozen=True)
class FitStatistics:
    """Fit quality statistics for a MUPE result."""
    n_obs: int
    n_params: int
    dof: int
    spe: float
    see: float
    mean_percent_error: float
    mape: float
    r2: float
    pearson_r2: float
    n_iter: int
    converged: bool

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            'Observations': self.n_obs,
            'Parameters': self.n_params,
            'DOF': self.dof,
            'SPE': self.spe,
            'SEE': self.see,
            'Mean Percent Error': self.mean_percent_error,
            'MAPE': self.mape,
            'R2': self.r2,
            'Pearson R2': self.pearson_r2,
            'MUPE Iterations': self.n_iter,
            'Converged': self.converged,
        }


def compute_fit_statistics(result):
    """
    Compute fit statistics for a MUPE result.

    Percent errors are taken relative to the fitted values,
    ``(y - y_hat) / y_hat``, which is the error MUPE makes unbiased.

    Parameters
    ----------
    result : MUPEResult
        Result from ``fit_linear`` or ``fit_nonlinear``.

    Returns
    -------
    FitStatistics

    Examples
    --------
    >>> stats = compute_fit_statistics(result)  # doctest: +SKIP
    >>> print(f"SPE: {stats.spe:.2%}")  # doctest: +SKIP
    """
    fitted = np.asarray(result.fitted, dtype=float)
    residuals = np.asarray(result.residuals, dtype=float)
    y = fitted + residuals

    n = len(fitted)
    p = len(result.params)
    dof = n - p

    pct_errors = residuals / fitted
    sse = np.sum(residuals ** 2)
    sspe = np.sum(pct_errors ** 2)

    # Guard against saturated fits
    denom = dof if dof > 0 else np.nan
    spe = float(np.sqrt(sspe / denom))
    see = float(np.sqrt(sse / denom))

    ss_total = np.sum((y - np.mean(y)) ** 2)
    r2 = float(1 - sse / ss_total) if ss_total > 0 else 0.0

    if n > 1 and np.std(y) > 0 and np.std(fitted) > 0:
        pearson_r2 = float(np.corrcoef(y, fitted)[0, 1] ** 2)
    else:
        pearson_r2 = np.nan

    return FitStatistics(
        n_obs=n,
        n_params=p,
        dof=dof,
        spe=spe,
        see=see,
        mean_percent_error=float(np.mean(pct_errors)),
        mape=float(np.mean(np.abs(pct_errors))),
        r2=r2,
        pearson_r2=pearson_r2,
        n_iter=result.n_iter,
        converged=result.converged,
    )
