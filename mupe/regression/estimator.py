"""
MUPERegression: scikit-learn interface to the MUPE fitters.

Wraps :func:`~mupe.regression.linear.fit_linear` and
:func:`~mupe.regression.nonlinear.fit_nonlinear` behind the estimator
``fit(X, y)`` / ``predict(X)`` protocol so MUPE models can be used with
``clone``, pipelines and model-selection utilities.
"""

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_X_y, check_array, check_is_fitted

from .formula import FunctionModel
from .irls import DEFAULT_MAX_INNER_ITER, DEFAULT_MAX_ITER, DEFAULT_TOL
from .linear import fit_linear
from .nonlinear import fit_nonlinear

_RESPONSE = 'y'


class MUPERegression(RegressorMixin, BaseEstimator):
    """
    Minimum Unbiased Percent Error regression.

    Fits a multiplicative-error model by iteratively re-weighted least
    squares with weights ``1 / y_pred**2`` from the previous iteration.

    Parameters
    ----------
    fit_intercept : bool, default=True
        Whether to fit an intercept term. Ignored when ``prediction_fn``
        is given.

    prediction_fn : callable or None, default=None
        Custom prediction function with signature
        ``prediction_fn(X, params) -> y_pred`` where ``X`` is an ndarray.
        If None, a linear model ``X @ coef + intercept`` is fitted.

        Example for the power model Y = a * X1^b:
            def power_func(X, params):
                a, b = params
                return a * X[:, 0] ** b

    coef_names : list of str or None, default=None
        Names for the parameters of ``prediction_fn``. Defaults to
        b0, b1, ... for custom functions and to the X column names for
        the linear model.

    x0 : array-like or None, default=None
        Initial guess for ``prediction_fn`` parameters. Defaults to ones.

    tol : float, default=1e-5
        Convergence threshold on the maximum fractional parameter change.

    max_iter : int, default=200
        Maximum number of outer MUPE iterations.

    max_inner_iter : int, default=10
        Levenberg-Marquardt iteration budget per outer iteration
        (custom ``prediction_fn`` only).

    verbose : int, default=0
        Verbosity level. 0=silent, 1=warnings, 2=detailed.

    Attributes
    ----------
    coef_ : ndarray of shape (n_params,)
        Estimated coefficients (all parameters for ``prediction_fn``).

    intercept_ : float
        Intercept term. 0.0 if fit_intercept=False or prediction_fn is used.

    named_coef_ : dict
        Coefficients keyed by ``coef_names_in_``.

    n_iter_ : int
        Outer MUPE iterations performed.

    converged_ : bool
        Whether the reweighting loop converged before ``max_iter``.

    result_ : MUPEResult
        Full result from the underlying fitter.

    feature_names_in_ : ndarray of shape (n_features_in_,)
        Names of X columns seen during fit.

    coef_names_in_ : ndarray of shape (n_params,)
        Names of the coefficients.

    Examples
    --------
    >>> import numpy as np
    >>> from mupe import MUPERegression
    >>>
    >>> X = np.random.uniform(10, 100, size=(30, 1))
    >>> y = (180 + 6 * X[:, 0]) * np.random.lognormal(0, 0.2, 30)
    >>> model = MUPERegression().fit(X, y)
    >>> print(model.coef_, model.intercept_, model.n_iter_)

    >>> def power_func(X, params):
    ...     a, b = params
    ...     return a * X[:, 0] ** b
    >>> model = MUPERegression(prediction_fn=power_func,
    ...                        coef_names=['a', 'b'], x0=[10, 1])
    """

    def __init__(
        self,
        fit_intercept=True,
        prediction_fn=None,
        coef_names=None,
        x0=None,
        tol=DEFAULT_TOL,
        max_iter=DEFAULT_MAX_ITER,
        max_inner_iter=DEFAULT_MAX_INNER_ITER,
        verbose=0
    ):
        self.fit_intercept = fit_intercept
        self.prediction_fn = prediction_fn
        self.coef_names = coef_names
        self.x0 = x0
        self.tol = tol
        self.max_iter = max_iter
        self.max_inner_iter = max_inner_iter
        self.verbose = verbose

    def _frame(self, X, y):
        """Build the data table with safe column names X1..Xp."""
        columns = [f'X{i+1}' for i in range(X.shape[1])]
        data = pd.DataFrame(X, columns=columns)
        data[_RESPONSE] = y
        return data, columns

    def fit(self, X, y):
        """
        Fit the MUPE model.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Training data.

        y : array-like of shape (n_samples,)
            Target values.

        Returns
        -------
        self : object
            Fitted estimator.
        """
        if hasattr(X, 'columns'):
            feature_names = np.array([str(c) for c in X.columns])
        else:
            feature_names = None

        X, y = check_X_y(X, y, accept_sparse=False, y_numeric=True)
        if feature_names is None:
            feature_names = np.array([f'X{i+1}' for i in range(X.shape[1])])
        self.feature_names_in_ = feature_names
        self.n_features_in_ = X.shape[1]
        data, columns = self._frame(X, y)

        if self.prediction_fn is not None:
            self._fit_function(data, columns)
        else:
            self._fit_linear(data, columns)

        self.named_coef_ = dict(zip(self.coef_names_in_, self.coef_))
        self.n_iter_ = self.result_.n_iter
        self.converged_ = self.result_.converged
        return self

    def _fit_linear(self, data, columns):
        if self.coef_names is not None:
            if len(self.coef_names) != len(columns):
                raise ValueError(
                    f"coef_names has {len(self.coef_names)} names, "
                    f"but X has {len(columns)} features"
                )
            coef_names = np.array(self.coef_names)
        else:
            coef_names = self.feature_names_in_.copy()

        rhs = ' + '.join(columns)
        formula = f"{_RESPONSE} ~ {rhs}" if self.fit_intercept else f"{_RESPONSE} ~ 0 + {rhs}"

        self.result_ = fit_linear(
            formula, data, tol=self.tol, max_iter=self.max_iter, verbose=self.verbose
        )
        params = self.result_.params
        self.coef_ = np.asarray(params[columns], dtype=float)
        self.intercept_ = float(params['Intercept']) if self.fit_intercept else 0.0
        self.coef_names_in_ = coef_names

    def _fit_function(self, data, columns):
        if self.x0 is None and self.coef_names is None:
            raise ValueError(
                "Either x0 or coef_names is required with prediction_fn "
                "to determine the number of parameters"
            )
        if self.coef_names is not None:
            names = [str(n) for n in self.coef_names]
        else:
            names = [f'b{i}' for i in range(len(self.x0))]

        x0 = np.ones(len(names)) if self.x0 is None else np.asarray(self.x0, dtype=float)
        if len(x0) != len(names):
            raise ValueError(
                f"x0 has {len(x0)} values, but there are {len(names)} parameters"
            )

        model = FunctionModel(self.prediction_fn, columns, _RESPONSE, names)
        self.result_ = fit_nonlinear(
            model, data, start=dict(zip(names, x0)),
            tol=self.tol, max_iter=self.max_iter,
            max_inner_iter=self.max_inner_iter, verbose=self.verbose,
        )
        self.coef_ = np.asarray(self.result_.params[names], dtype=float)
        self.intercept_ = 0.0
        self.coef_names_in_ = np.array(names)

    def predict(self, X):
        """
        Predict using the fitted model.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            Samples to predict.

        Returns
        -------
        y_pred : ndarray of shape (n_samples,)
        """
        check_is_fitted(self)
        X = check_array(X, accept_sparse=False)

        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X has {X.shape[1]} features, but model was fitted "
                f"with {self.n_features_in_} features"
            )

        if self.prediction_fn is not None:
            return np.asarray(self.prediction_fn(X, self.coef_), dtype=float)

        return X @ self.coef_ + self.intercept_

    def mean_percent_error(self):
        """Mean of residual / fitted on the training data."""
        check_is_fitted(self)
        return self.result_.mean_percent_error()

    def summary(self):
        """Print a summary of the fitted model."""
        check_is_fitted(self)
        print(self.result_.summary())


# Alias for convenience
MUPE = MUPERegression
