"""
Test suite for MUPE diagnostics and summaries.
"""
import numpy as np
import pandas as pd
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mupe import (
    fit_linear,
    fit_nonlinear,
    compute_fit_statistics,
    FitStatistics,
    generate_multiplicative_data,
    lognormal_errors,
    lognormal_sigma,
)


@pytest.fixture
def linear_result():
    data = generate_multiplicative_data(
        lambda d: 180 + 6 * d['x1'], n_obs=20, cv_error=0.3,
        x_ranges={'x1': (10, 100)}, random_state=42
    )
    return fit_linear("y ~ x1", data)


@pytest.fixture
def nonlinear_result():
    data = generate_multiplicative_data(
        lambda d: 90 * d['x1'] ** 0.8, n_obs=20, cv_error=0.4,
        x_ranges={'x1': (1, 50)}, random_state=42
    )
    return fit_nonlinear("y ~ b0 * x1^b1", data, {'b0': 10, 'b1': 1})


class TestFitStatistics:
    """Tests for compute_fit_statistics."""

    def test_basic_statistics(self, linear_result):
        stats = compute_fit_statistics(linear_result)

        assert isinstance(stats, FitStatistics)
        assert stats.n_obs == 20
        assert stats.n_params == 2
        assert stats.dof == 18
        assert stats.spe > 0
        assert stats.see > 0
        assert stats.mape > 0
        assert 0 <= stats.pearson_r2 <= 1
        assert stats.n_iter == linear_result.n_iter
        assert stats.converged

    def test_spe_definition(self, linear_result):
        stats = compute_fit_statistics(linear_result)
        pct = linear_result.residuals / linear_result.fitted

        assert stats.spe == pytest.approx(np.sqrt(np.sum(pct ** 2) / 18))
        assert stats.mean_percent_error == pytest.approx(np.mean(pct))

    def test_exact_fit(self):
        x1 = np.linspace(1, 10, 12)
        result = fit_linear("y ~ x1", pd.DataFrame({'x1': x1, 'y': 5 + 2 * x1}))
        stats = result.statistics()

        assert stats.spe == pytest.approx(0, abs=1e-10)
        assert stats.r2 == pytest.approx(1)

    def test_to_dict(self, nonlinear_result):
        d = nonlinear_result.statistics().to_dict()

        for key in ['SPE', 'SEE', 'Mean Percent Error', 'MAPE', 'R2',
                    'Pearson R2', 'MUPE Iterations', 'Converged']:
            assert key in d


class TestSummary:
    """Tests for the text summary."""

    def test_linear_summary(self, linear_result):
        text = linear_result.summary()

        assert 'Linear MUPE Regression Summary' in text
        assert 'Intercept' in text
        assert 'x1' in text
        assert f"MUPE iterations: {linear_result.n_iter}" in text

    def test_nonlinear_summary(self, nonlinear_result):
        text = nonlinear_result.summary()

        assert 'Nonlinear MUPE Regression Summary' in text
        assert 'y ~ b0 * x1^b1' in text
        assert 'b0' in text and 'b1' in text


class TestPlotting:
    """Tests for diagnostic plots."""

    def test_plot_fit(self, nonlinear_result, tmp_path):
        matplotlib = pytest.importorskip('matplotlib')
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt
        from mupe import plot_fit

        path = tmp_path / 'fit.png'
        fig = plot_fit(nonlinear_result, save_path=str(path))

        assert len(fig.axes) == 3
        assert path.exists()
        plt.close(fig)


class TestUtils:
    """Tests for synthetic data generation."""

    def test_lognormal_sigma(self):
        assert lognormal_sigma(0.3) == pytest.approx(np.sqrt(np.log(1.09)))

    def test_lognormal_errors_mean_one(self):
        errors = lognormal_errors(200000, 0.3, random_state=1)

        assert np.all(errors > 0)
        assert np.mean(errors) == pytest.approx(1.0, abs=0.01)
        assert np.std(errors) / np.mean(errors) == pytest.approx(0.3, abs=0.01)

    def test_zero_cv(self):
        np.testing.assert_array_equal(lognormal_errors(5, 0.0), np.ones(5))

    def test_generate_reproducible(self):
        kwargs = dict(func=lambda d: 2 * d['x1'] + d['x2'], n_obs=10, cv_error=0.2,
                      x_ranges={'x1': (0, 1), 'x2': (5, 6)}, random_state=3)
        a = generate_multiplicative_data(**kwargs)
        b = generate_multiplicative_data(**kwargs)

        pd.testing.assert_frame_equal(a, b)
        assert list(a.columns) == ['x1', 'x2', 'y', 'y_true']
        assert a['x2'].between(5, 6).all()
