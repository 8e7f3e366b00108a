"""
MUPE Regression
===============

Minimum Unbiased Percent Error (MUPE) regression for multiplicative-error
models, fitted by Iteratively Re-weighted Least Squares with weights equal
to the inverse squared predictions of the prior iteration.

Main Functions
--------------
fit_linear : Linear MUPE (weighted linear least squares inner step)
fit_nonlinear : Nonlinear MUPE (Levenberg-Marquardt inner step)
MUPERegression : scikit-learn compatible estimator

Quick Start
-----------
>>> import mupe
>>>
>>> # Linear model, intercept included
>>> result = mupe.fit_linear("y ~ x1", df)
>>> print(result.params, result.n_iter)
>>>
>>> # Power model with named parameters
>>> result = mupe.fit_nonlinear("y ~ b0 * x1^b1", df, start={'b0': 10, 'b1': 1})
>>> print(result.summary())

References
----------
Book, S.A. and Lao, N.Y. "Minimum-Percentage-Error Regression under
Zero-Bias Constraints." Proceedings of the 4th Annual U.S. Army
Conference on Applied Statistics.
"""

from .regression import (
    fit_linear,
    fit_nonlinear,
    mupe_linear,
    mupe_nonlinear,
    MUPERegression,
    MUPE,
    MUPEResult,
    LinearMUPEResult,
    NonlinearMUPEResult,
    IterationRecord,
    NonlinearFormula,
    FunctionModel,
    mupe_weights,
    relative_change,
    solve_wls,
    solve_nls,
    DEFAULT_TOL,
    DEFAULT_MAX_ITER,
    DEFAULT_MAX_INNER_ITER,
)
from .diagnostics import (
    FitStatistics,
    compute_fit_statistics,
    plot_fit,
)
from .exceptions import (
    MUPEError,
    ZeroFittedValueError,
    SolverFailure,
    InvalidParameterNamingError,
    InnerSolverWarning,
)
from .utils import (
    generate_multiplicative_data,
    lognormal_errors,
    lognormal_sigma,
)

__version__ = "0.1.0"

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

    # Model specification
    'NonlinearFormula',
    'FunctionModel',

    # Reweighting and solvers
    'mupe_weights',
    'relative_change',
    'solve_wls',
    'solve_nls',
    'DEFAULT_TOL',
    'DEFAULT_MAX_ITER',
    'DEFAULT_MAX_INNER_ITER',

    # Diagnostics
    'FitStatistics',
    'compute_fit_statistics',
    'plot_fit',

    # Errors
    'MUPEError',
    'ZeroFittedValueError',
    'SolverFailure',
    'InvalidParameterNamingError',
    'InnerSolverWarning',

    # Utilities
    'generate_multiplicative_data',
    'lognormal_errors',
    'lognormal_sigma',
]
