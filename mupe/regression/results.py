"""
Immutable result objects returned by the MUPE fitters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .irls import IterationRecord


@dataclass(frozen=True)
class MUPEResult(ABC):
    """
    Converged (or iteration-capped) MUPE fit.

    Attributes
    ----------
    params : pandas.Series
        Parameter estimates indexed by name.
    fitted : ndarray
        Fitted values of the final fit.
    residuals : ndarray
        Response residuals ``y - fitted`` of the final fit.
    weights : ndarray or None
        Weights that produced the final fit.
    n_iter : int
        Outer iterations performed. Equals ``max_iter`` when the loop was
        stopped by the cap.
    converged : bool
        Whether the final relative change satisfied ``conv <= tol``.
    conv : float
        Relative change between the last two parameter vectors.
    history : tuple of IterationRecord
        One snapshot per outer iteration.
    model : object
        Inner-solver fit of the final iteration.
    formula : object
        The model specification that was fitted.
    tol, max_iter
        Loop settings used.
    """
    params: pd.Series
    fitted: np.ndarray
    residuals: np.ndarray
    weights: Optional[np.ndarray]
    n_iter: int
    converged: bool
    conv: float
    history: Tuple[IterationRecord, ...]
    model: object
    formula: object
    tol: float
    max_iter: int

    method = 'MUPE'

    @property
    def named_params(self) -> Dict[str, float]:
        return {k: float(v) for k, v in self.params.items()}

    @property
    def bse(self) -> pd.Series:
        """Standard errors reported by the inner solver for the final fit."""
        return self.model.bse

    @property
    def n_obs(self) -> int:
        return len(self.fitted)

    def percent_errors(self) -> np.ndarray:
        """Residuals relative to the fitted values, ``residual / fitted``."""
        return self.residuals / self.fitted

    def mean_percent_error(self) -> float:
        """Mean of ``residual / fitted``; near zero for a converged MUPE fit."""
        return float(np.mean(self.percent_errors()))

    @abstractmethod
    def predict(self, data):
        """Predict the response at new predictor values."""

    def statistics(self):
        """Fit statistics (see :func:`mupe.diagnostics.compute_fit_statistics`)."""
        from ..diagnostics.core import compute_fit_statistics
        return compute_fit_statistics(self)

    def summary(self) -> str:
        """Return a text summary of the fit."""
        stats = self.statistics()
        bse = self.bse
        lines = [
            "=" * 60,
            f"{self.method} Regression Summary",
            "=" * 60,
            f"Formula: {getattr(self.formula, 'formula', self.formula)}",
            f"Observations: {self.n_obs}",
            f"MUPE iterations: {self.n_iter} (max {self.max_iter})",
            f"Converged: {self.converged} (conv={self.conv:.3e}, tol={self.tol:g})",
            "",
            f"{'Parameter':<14}{'Estimate':>14}{'Std. Error':>14}{'t value':>12}",
        ]
        for name, value in self.params.items():
            se = float(bse[name])
            t = value / se if se > 0 else np.nan
            lines.append(f"{name:<14}{value:>14.6g}{se:>14.6g}{t:>12.3f}")
        lines += [
            "",
            f"SPE: {stats.spe:.4%}",
            f"Mean percent error: {stats.mean_percent_error:.4%}",
            f"Pearson R2: {stats.pearson_r2:.4f}",
            "=" * 60,
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class LinearMUPEResult(MUPEResult):
    """Result of :func:`~mupe.regression.linear.fit_linear`.

    ``model`` is the statsmodels ``RegressionResults`` of the final
    weighted fit; its own ``summary()`` is available for the full table.
    """
    method = 'Linear MUPE'

    def predict(self, data):
        """Predict at new predictor values using the final linear fit."""
        return np.asarray(self.model.predict(data), dtype=float)


@dataclass(frozen=True)
class NonlinearMUPEResult(MUPEResult):
    """Result of :func:`~mupe.regression.nonlinear.fit_nonlinear`."""
    start: Dict[str, float] = field(default_factory=dict)
    max_inner_iter: int = 10
    # recoverable inner-solver diagnostics captured across all iterations
    n_inner_diagnostics: int = 0

    method = 'Nonlinear MUPE'

    def predict(self, data):
        """Evaluate the model expression at the final parameters."""
        return self.formula.evaluate(data, self.params)
