"""
Nonlinear model formulas.

Parses R ``nls``-style formula strings such as ``"y ~ b0 * x1^b1"`` into a
:class:`NonlinearFormula` that binds parameter names, checks them against
the data, and evaluates the right-hand side with numexpr.

Only arithmetic is accepted: numeric literals, names, ``+ - * / ^ **``,
unary signs, parentheses, and calls to the functions in
:data:`FORMULA_FUNCTIONS`.
"""

import ast
from typing import Dict, List, Sequence, Tuple

import numexpr as ne
import numpy as np
import pandas as pd

from ..exceptions import InvalidParameterNamingError

# numexpr functions allowed in a formula
FORMULA_FUNCTIONS = frozenset({
    'exp', 'log', 'log10', 'sqrt', 'abs', 'sin', 'cos', 'tan',
})

_ALLOWED_NODES = (
    ast.Expression, ast.BinOp, ast.UnaryOp, ast.Call, ast.Name, ast.Load,
    ast.Constant, ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Pow,
    ast.USub, ast.UAdd,
)


def split_formula(formula: str) -> Tuple[str, str]:
    """Split ``"lhs ~ rhs"`` into its two sides.

    Raises
    ------
    ValueError
        If the formula does not contain exactly one ``~`` with text on
        both sides.

    Examples
    --------
    >>> split_formula("y ~ b0 * x1^b1")
    ('y', 'b0 * x1^b1')
    """
    if not isinstance(formula, str):
        raise ValueError(f"formula must be a string, got {type(formula).__name__}")
    parts = formula.split('~')
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        raise ValueError(
            f"formula must have the form 'response ~ expression', got {formula!r}"
        )
    return parts[0].strip(), parts[1].strip()


def _parse_expression(text: str) -> ast.Expression:
    """Parse an R-style arithmetic expression, rejecting anything else."""
    try:
        tree = ast.parse(text.replace('^', '**'), mode='eval')
    except SyntaxError as e:
        raise ValueError(f"Cannot parse expression {text!r}: {e.msg}") from e

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ValueError(
                f"Unsupported syntax {type(node).__name__} in expression {text!r}"
            )
        if isinstance(node, ast.Constant) and not isinstance(node.value, (int, float)):
            raise ValueError(f"Only numeric literals are allowed in {text!r}")
        if isinstance(node, ast.Call):
            if (not isinstance(node.func, ast.Name)
                    or node.func.id not in FORMULA_FUNCTIONS):
                raise ValueError(
                    f"Unsupported function in {text!r}. "
                    f"Allowed: {sorted(FORMULA_FUNCTIONS)}"
                )
            if node.keywords or len(node.args) != 1:
                raise ValueError(
                    f"Function {node.func.id}() takes exactly one argument"
                )
    return tree


class _NameCollector(ast.NodeVisitor):
    """Depth-first collection of value names, skipping called function names."""

    def __init__(self):
        self.names = []

    def visit_Call(self, node):
        for arg in node.args:
            self.visit(arg)

    def visit_Name(self, node):
        if node.id not in self.names:
            self.names.append(node.id)


def _names(tree: ast.Expression) -> List[str]:
    """Names referenced as values (not function names), in source order."""
    collector = _NameCollector()
    collector.visit(tree)
    return collector.names


class NonlinearFormula:
    """
    A nonlinear-in-parameters model ``response ~ expression``.

    Parameters
    ----------
    formula : str
        Formula in R ``nls`` style, e.g. ``"y ~ a * x1^b * c^x2"``.
    param_names : sequence of str
        Names in the expression that are parameters. Every other name is a
        data column.

    Raises
    ------
    InvalidParameterNamingError
        If a parameter name does not occur in the expression.
    ValueError
        If the formula cannot be parsed.

    Examples
    --------
    >>> f = NonlinearFormula("y ~ b0 * x1^b1", ["b0", "b1"])
    >>> f.variables
    ('x1',)
    >>> f.evaluate(pd.DataFrame({'x1': [1.0, 4.0]}), [2.0, 0.5])
    array([2., 4.])
    """

    def __init__(self, formula: str, param_names: Sequence[str]):
        self.formula = formula
        lhs, rhs = split_formula(formula)

        lhs_tree = _parse_expression(lhs)
        if not isinstance(lhs_tree.body, ast.Name):
            raise ValueError(f"Response must be a single column name, got {lhs!r}")
        self.response = lhs_tree.body.id
        self.expression = rhs

        self._tree = _parse_expression(rhs)
        self._source = ast.unparse(self._tree)

        param_names = [str(p) for p in param_names]
        if len(set(param_names)) != len(param_names):
            raise InvalidParameterNamingError(
                f"Duplicate parameter names in initial guess: {param_names}"
            )
        if self.response in param_names:
            raise InvalidParameterNamingError(
                f"Response '{self.response}' cannot also be a parameter"
            )

        names = _names(self._tree)
        missing = [p for p in param_names if p not in names]
        if missing:
            raise InvalidParameterNamingError(
                f"Parameters {missing} do not appear in the model expression "
                f"{rhs!r}. Names used there: {names}"
            )

        self.param_names = tuple(param_names)
        self.variables = tuple(n for n in names if n not in self.param_names)

    def __repr__(self):
        return (f"NonlinearFormula({self.formula!r}, "
                f"param_names={list(self.param_names)})")

    def validate(self, data: pd.DataFrame):
        """Check that the response and every variable are numeric columns.

        Raises
        ------
        InvalidParameterNamingError
            If the expression references a name that is neither a parameter
            nor a column of ``data``.
        ValueError
            If the response column is missing or a used column holds
            missing values.
        """
        unknown = [v for v in self.variables if v not in data.columns]
        if unknown:
            raise InvalidParameterNamingError(
                f"Names {unknown} in {self.expression!r} are neither parameters "
                f"of the initial guess {list(self.param_names)} nor columns of "
                f"the data"
            )
        if self.response not in data.columns:
            raise ValueError(f"Response column '{self.response}' not found in data")

        used = [self.response] + list(self.variables)
        if data[used].isna().to_numpy().any():
            raise ValueError(f"Missing values in columns {used}")

    def observed(self, data: pd.DataFrame) -> np.ndarray:
        """Response values as a float array."""
        return np.asarray(data[self.response], dtype=float)

    def evaluate(self, data, params) -> np.ndarray:
        """Evaluate the right-hand side.

        Parameters
        ----------
        data : DataFrame or mapping
            Must hold every name in :attr:`variables`.
        params : sequence or mapping
            Parameter values in :attr:`param_names` order, or keyed by name.

        Returns
        -------
        ndarray of shape (n_rows,)
        """
        if isinstance(params, (dict, pd.Series)):
            values = [float(params[p]) for p in self.param_names]
        else:
            values = [float(v) for v in params]
            if len(values) != len(self.param_names):
                raise ValueError(
                    f"Expected {len(self.param_names)} parameters, got {len(values)}"
                )

        namespace: Dict[str, object] = {}
        for name in self.variables:
            namespace[name] = np.asarray(data[name], dtype=float)
        namespace.update(zip(self.param_names, values))

        result = ne.evaluate(self._source, local_dict=namespace, global_dict={})
        n_rows = len(data[self.variables[0]]) if self.variables else len(data)
        return np.broadcast_to(np.asarray(result, dtype=float), (n_rows,)).copy()


class FunctionModel:
    """
    Nonlinear model backed by a ``prediction_fn(X, params)`` callable.

    Exposes the same interface as :class:`NonlinearFormula` so it can be
    passed to :func:`~mupe.regression.nonlinear.fit_nonlinear`.

    Parameters
    ----------
    prediction_fn : callable
        ``prediction_fn(X, params) -> y_pred`` with ``X`` an ndarray of
        shape (n_samples, n_features) and ``params`` an ndarray.
    feature_names : sequence of str
        Columns of the data table forming ``X``, in order.
    response : str
        Column holding the observed response.
    param_names : sequence of str
        Parameter names, in the order ``prediction_fn`` expects.
    """

    def __init__(self, prediction_fn, feature_names, response, param_names):
        if not callable(prediction_fn):
            raise ValueError("prediction_fn must be callable")
        self.prediction_fn = prediction_fn
        self.variables = tuple(feature_names)
        self.response = response
        self.param_names = tuple(param_names)
        self.formula = f"{response} ~ {getattr(prediction_fn, '__name__', 'f')}(X, params)"
        if len(set(self.param_names)) != len(self.param_names):
            raise InvalidParameterNamingError(
                f"Duplicate parameter names: {list(self.param_names)}"
            )

    def validate(self, data):
        missing = [c for c in (self.response,) + self.variables if c not in data.columns]
        if missing:
            raise ValueError(f"Columns {missing} not found in data")

    def observed(self, data):
        return np.asarray(data[self.response], dtype=float)

    def evaluate(self, data, params):
        if isinstance(params, (dict, pd.Series)):
            params = [params[p] for p in self.param_names]
        X = np.asarray(data[list(self.variables)], dtype=float)
        return np.asarray(self.prediction_fn(X, np.asarray(params, dtype=float)),
                          dtype=float).ravel()
