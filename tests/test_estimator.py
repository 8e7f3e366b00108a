"""
Tests for the scikit-learn MUPERegression estimator.
"""
import numpy as np
import pandas as pd
import pytest
from sklearn.base import clone

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mupe import MUPERegression, fit_linear, fit_nonlinear
import mupe.regression.estimator as estimator_module


class TestMUPERegression:
    """Tests for the estimator wrapper."""

    @pytest.fixture
    def linear_data(self):
        np.random.seed(42)
        X = np.random.uniform(10, 100, size=(30, 2))
        y = (50 + 4 * X[:, 0] + 2 * X[:, 1]) * np.random.lognormal(-0.02, 0.2, 30)
        return X, y

    @pytest.fixture
    def power_data(self):
        np.random.seed(7)
        X = np.random.uniform(1, 50, size=(25, 1))
        y = 90 * X[:, 0] ** 0.8 * np.random.lognormal(-0.045, 0.3, 25)
        return X, y

    def test_linear_fit_matches_fit_linear(self, linear_data):
        X, y = linear_data
        model = MUPERegression().fit(X, y)

        df = pd.DataFrame({'X1': X[:, 0], 'X2': X[:, 1], 'y': y})
        result = fit_linear("y ~ X1 + X2", df)

        np.testing.assert_allclose(model.coef_, result.params[['X1', 'X2']].values)
        assert model.intercept_ == pytest.approx(result.params['Intercept'])
        assert model.n_iter_ == result.n_iter
        assert model.converged_

    def test_predict(self, linear_data):
        X, y = linear_data
        model = MUPERegression().fit(X, y)

        y_pred = model.predict(X)
        np.testing.assert_allclose(y_pred, model.result_.fitted)

    def test_no_intercept(self, linear_data):
        X, y = linear_data
        model = MUPERegression(fit_intercept=False).fit(X, y)

        assert model.intercept_ == 0.0
        assert len(model.coef_) == 2

    def test_dataframe_names(self, linear_data):
        X, y = linear_data
        X_df = pd.DataFrame(X, columns=['weight', 'power'])
        model = MUPERegression().fit(X_df, y)

        assert list(model.feature_names_in_) == ['weight', 'power']
        assert set(model.named_coef_) == {'weight', 'power'}

    def test_prediction_fn(self, power_data):
        X, y = power_data

        def power_func(X, params):
            a, b = params
            return a * X[:, 0] ** b

        model = MUPERegression(prediction_fn=power_func, coef_names=['a', 'b'],
                               x0=[10, 1])
        model.fit(X, y)

        df = pd.DataFrame({'x': X[:, 0], 'y': y})
        result = fit_nonlinear("y ~ a * x^b", df, {'a': 10, 'b': 1})

        np.testing.assert_allclose(model.coef_, result.params.values, rtol=1e-4)
        assert model.intercept_ == 0.0
        assert set(model.named_coef_) == {'a', 'b'}
        np.testing.assert_allclose(model.predict(X), power_func(X, model.coef_))

    def test_prediction_fn_requires_parameter_count(self, power_data):
        X, y = power_data
        model = MUPERegression(prediction_fn=lambda X, p: p[0] * X[:, 0])
        with pytest.raises(ValueError):
            model.fit(X, y)

    def test_x0_length_mismatch(self, power_data):
        X, y = power_data
        model = MUPERegression(prediction_fn=lambda X, p: p[0] * X[:, 0] ** p[1],
                               coef_names=['a', 'b'], x0=[1.0])
        with pytest.raises(ValueError):
            model.fit(X, y)

    def test_coef_names_checked_before_fitting(self, linear_data, monkeypatch):
        X, y = linear_data

        def fail(*args, **kwargs):
            raise AssertionError("fitter must not be called")

        monkeypatch.setattr(estimator_module, 'fit_linear', fail)
        model = MUPERegression(coef_names=['a', 'b', 'c'])

        with pytest.raises(ValueError, match="coef_names"):
            model.fit(X, y)
        for attr in ('result_', 'coef_', 'intercept_', 'coef_names_in_'):
            assert not hasattr(model, attr)

    def test_predict_wrong_features(self, linear_data):
        X, y = linear_data
        model = MUPERegression().fit(X, y)
        with pytest.raises(ValueError):
            model.predict(X[:, :1])

    def test_score(self, linear_data):
        X, y = linear_data
        model = MUPERegression().fit(X, y)
        assert model.score(X, y) <= 1

    def test_mean_percent_error(self, linear_data):
        X, y = linear_data
        model = MUPERegression().fit(X, y)
        assert abs(model.mean_percent_error()) < 1e-3


class TestSklearnCompatibility:
    """Test sklearn API compatibility."""

    def test_get_set_params(self):
        model = MUPERegression(tol=1e-6, max_iter=50)

        params = model.get_params()
        assert params['tol'] == 1e-6
        assert params['max_iter'] == 50
        assert params['max_inner_iter'] == 10

        model.set_params(max_iter=100)
        assert model.max_iter == 100

    def test_clone(self):
        model = MUPERegression(fit_intercept=False, coef_names=['a'])
        cloned = clone(model)

        assert cloned.fit_intercept is False
        assert cloned.coef_names == model.coef_names
