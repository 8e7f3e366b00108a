"""
MUPE regression module.

This module provides the linear and nonlinear MUPE fitters, the
scikit-learn estimator wrapper, and the inner solvers and reweighting
helpers they share.
"""

from .linear import fit_linear, mupe_linear
from .nonlinear import fit_nonlinear, mupe_nonlinear
from .estimator import MUPERegression, MUPE
from .results import MUPEResult, LinearMUPEResult, NonlinearMUPEResult

# Re-export helper functions for advanced usage
from .formula import NonlinearFormula, FunctionModel, split_formula, FORMULA_FUNCTIONS
from .irls import (
    mupe_weights,
    relative_change,
    run_irls,
    IterationRecord,
    DEFAULT_TOL,
    DEFAULT_MAX_ITER,
    DEFAULT_MAX_INNER_ITER,
)
from .solvers import solve_wls, solve_nls, LinearFit, NLSFit

__all__ = [
    # Fitters
    'fit_linear',
    'fit_nonlinear',
    'mupe_linear',
    'mupe_nonlinear',
    # Estimator
    'MUPERegression',
    'MUPE',
    # Results
    'MUPEResult',
    'LinearMUPEResult',
    'NonlinearMUPEResult',
    'IterationRecord',
    # Formula utilities
    'NonlinearFormula',
    'FunctionModel',
    'split_formula',
    'FORMULA_FUNCTIONS',
    # Reweighting utilities
    'mupe_weights',
    'relative_change',
    'run_irls',
    'DEFAULT_TOL',
    'DEFAULT_MAX_ITER',
    'DEFAULT_MAX_INNER_ITER',
    # Inner solvers
    'solve_wls',
    'solve_nls',
    'LinearFit',
    'NLSFit',
]
