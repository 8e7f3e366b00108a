"""
Exception and warning types raised by the MUPE fitters.

The outer IRLS loop never recovers from an error locally: every exception
below propagates straight out of ``fit_linear`` / ``fit_nonlinear``.
Non-convergence is not an error and has no exception type; it is reported
through ``result.converged`` and ``result.n_iter``.
"""


class MUPEError(Exception):
    """Base class for errors raised by the mupe package."""


class ZeroFittedValueError(MUPEError, ZeroDivisionError):
    """A fitted value was zero or non-finite when computing MUPE weights.

    Parameters
    ----------
    rows : array-like of int
        Positional indices of the offending observations.
    """

    def __init__(self, rows, message=None):
        self.rows = list(rows)
        if message is None:
            message = (
                f"Cannot compute MUPE weights: fitted value is zero or "
                f"non-finite at rows {self.rows}"
            )
        super().__init__(message)


class SolverFailure(MUPEError, RuntimeError):
    """The inner nonlinear least-squares solver could not produce a fit."""


class InvalidParameterNamingError(MUPEError, ValueError):
    """Initial-guess parameter names do not match the model expression."""


class InnerSolverWarning(UserWarning):
    """Recoverable diagnostic emitted by the inner solver."""
