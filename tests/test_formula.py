"""
Tests for nonlinear formula parsing and evaluation.
"""
import numpy as np
import pandas as pd
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mupe import NonlinearFormula, FunctionModel, InvalidParameterNamingError
from mupe.regression.formula import split_formula


class TestSplitFormula:
    """Tests for formula splitting."""

    def test_split(self):
        assert split_formula("y ~ a * x1^b * c^x2") == ('y', 'a * x1^b * c^x2')

    @pytest.mark.parametrize("formula", ["y b0 * x1", "y ~ a ~ b", " ~ b0", "y ~ "])
    def test_malformed(self, formula):
        with pytest.raises(ValueError):
            split_formula(formula)

    def test_not_a_string(self):
        with pytest.raises(ValueError):
            split_formula(None)


class TestNonlinearFormula:
    """Tests for NonlinearFormula."""

    @pytest.fixture
    def data(self):
        return pd.DataFrame({'x1': [1.0, 2.0, 4.0], 'x2': [0.0, 1.0, 2.0],
                             'y': [3.0, 5.0, 9.0]})

    def test_names(self):
        f = NonlinearFormula("y ~ a * x1^b * c^x2", ['a', 'b', 'c'])

        assert f.response == 'y'
        assert f.param_names == ('a', 'b', 'c')
        assert f.variables == ('x1', 'x2')

    def test_names_in_source_order(self):
        f = NonlinearFormula("y ~ c * exp(b * x2) + a * x1", ['a', 'b', 'c'])

        assert f.variables == ('x2', 'x1')

        f = NonlinearFormula("y ~ a * x1^b * c^x2 + sqrt(x3)", ['a', 'b', 'c'])
        assert f.variables == ('x1', 'x2', 'x3')

    def test_caret_is_power(self, data):
        f = NonlinearFormula("y ~ a * x1^b", ['a', 'b'])
        np.testing.assert_allclose(f.evaluate(data, [3.0, 2.0]), [3.0, 12.0, 48.0])

    def test_evaluate_with_mapping(self, data):
        f = NonlinearFormula("y ~ a * x1^b * c^x2", ['a', 'b', 'c'])
        values = f.evaluate(data, {'c': 2.0, 'a': 1.0, 'b': 1.0})
        np.testing.assert_allclose(values, [1.0, 4.0, 16.0])

    def test_functions(self, data):
        f = NonlinearFormula("y ~ exp(a + b * log(x1))", ['a', 'b'])
        np.testing.assert_allclose(f.evaluate(data, [0.0, 1.0]), data['x1'].values)

    def test_more_functions(self, data):
        f = NonlinearFormula("y ~ a * sqrt(x1) + abs(b - x2) + log10(x1) * 0", ['a', 'b'])
        expected = 2.0 * np.sqrt(data['x1'].values) + np.abs(1.0 - data['x2'].values)
        np.testing.assert_allclose(f.evaluate(data, [2.0, 1.0]), expected)

    def test_constant_expression_broadcasts(self, data):
        f = NonlinearFormula("y ~ a", ['a'])
        np.testing.assert_allclose(f.evaluate(data, [7.0]), [7.0, 7.0, 7.0])

    def test_parameter_not_in_expression(self):
        with pytest.raises(InvalidParameterNamingError, match="do not appear"):
            NonlinearFormula("y ~ b0 * x1^b1", ['b0', 'b1', 'b2'])

    def test_duplicate_parameter(self):
        with pytest.raises(InvalidParameterNamingError):
            NonlinearFormula("y ~ b0 * x1", ['b0', 'b0'])

    def test_response_as_parameter(self):
        with pytest.raises(InvalidParameterNamingError):
            NonlinearFormula("y ~ y * x1", ['y'])

    def test_unknown_name_at_validation(self, data):
        f = NonlinearFormula("y ~ a * z", ['a'])
        with pytest.raises(InvalidParameterNamingError, match="neither"):
            f.validate(data)

    def test_missing_response(self, data):
        f = NonlinearFormula("cost ~ a * x1", ['a'])
        with pytest.raises(ValueError):
            f.validate(data)

    def test_missing_values(self, data):
        data.loc[1, 'x1'] = np.nan
        f = NonlinearFormula("y ~ a * x1", ['a'])
        with pytest.raises(ValueError, match="Missing values"):
            f.validate(data)

    @pytest.mark.parametrize("rhs", [
        "__import__('os').system('true')",
        "x1.real * a",
        "a if x1 else x1",
        "[a, x1]",
        "max(a, x1)",
        "a * 'x1'",
        "log(a, x1)",
        "log2(x1) * a",
        "a * x1 @ x1",
    ])
    def test_rejects_unsupported_syntax(self, rhs):
        with pytest.raises(ValueError):
            NonlinearFormula(f"y ~ {rhs}", ['a'])

    def test_response_must_be_name(self):
        with pytest.raises(ValueError):
            NonlinearFormula("log(y) ~ a * x1", ['a'])

    def test_wrong_number_of_parameters(self, data):
        f = NonlinearFormula("y ~ a * x1^b", ['a', 'b'])
        with pytest.raises(ValueError):
            f.evaluate(data, [1.0])


class TestFunctionModel:
    """Tests for FunctionModel."""

    def test_evaluate(self):
        data = pd.DataFrame({'X1': [1.0, 2.0], 'X2': [3.0, 4.0], 'y': [0.0, 0.0]})
        model = FunctionModel(lambda X, p: p[0] * X[:, 0] + p[1] * X[:, 1],
                              ['X1', 'X2'], 'y', ['a', 'b'])

        np.testing.assert_allclose(model.evaluate(data, [1.0, 10.0]), [31.0, 42.0])
        np.testing.assert_allclose(model.evaluate(data, {'b': 1.0, 'a': 0.0}), [3.0, 4.0])

    def test_missing_column(self):
        model = FunctionModel(lambda X, p: p[0] * X[:, 0], ['X1'], 'y', ['a'])
        with pytest.raises(ValueError):
            model.validate(pd.DataFrame({'X1': [1.0]}))

    def test_not_callable(self):
        with pytest.raises(ValueError):
            FunctionModel(None, ['X1'], 'y', ['a'])
