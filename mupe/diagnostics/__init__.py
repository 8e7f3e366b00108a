"""
Diagnostics module for MUPE regression.

Provides:
- Fit statistics (SPE, mean percent error, MAPE, R2)
- Diagnostic plots
"""

from .core import FitStatistics, compute_fit_statistics
from .plotting import plot_fit

__all__ = [
    'FitStatistics',
    'compute_fit_statistics',
    'plot_fit',
]
