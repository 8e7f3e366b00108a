"""
Diagnostic plotting for MUPE fits.

matplotlib is an optional dependency; install with ``pip install mupe-regression[plot]``.
"""

from typing import Optional, Tuple

import numpy as np


def plot_fit(
    result,
    figsize: Tuple[int, int] = (15, 4.5),
    save_path: Optional[str] = None,
    title: str = 'MUPE Diagnostic Plots'
):
    """
    Generate diagnostic plots for a MUPE result.

    Panels:
    1. Actual vs fitted, with the identity line
    2. Percent error ``(y - y_hat) / y_hat`` vs fitted; a MUPE fit
       scatters evenly around zero with no fan shape
    3. Convergence trace of the relative parameter change per iteration

    Parameters
    ----------
    result : MUPEResult
        Result from ``fit_linear`` or ``fit_nonlinear``.
    figsize : tuple, default=(15, 4.5)
        Figure size.
    save_path : str, optional
        If provided, save figure to this path.
    title : str, default='MUPE Diagnostic Plots'
        Figure title

    Returns
    -------
    matplotlib.figure.Figure
        The generated figure.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib is required for plot_fit()")

    fitted = np.asarray(result.fitted, dtype=float)
    actual = fitted + np.asarray(result.residuals, dtype=float)
    pct_errors = result.percent_errors()

    fig, axes = plt.subplots(1, 3, figsize=figsize)
    fig.suptitle(title, fontsize=14, fontweight='bold')

    # 1. Actual vs Fitted
    ax1 = axes[0]
    ax1.scatter(fitted, actual, alpha=0.6, edgecolors='k', linewidth=0.5)
    lo = min(fitted.min(), actual.min())
    hi = max(fitted.max(), actual.max())
    ax1.plot([lo, hi], [lo, hi], 'r--', linewidth=1)
    ax1.set_xlabel('Fitted Values')
    ax1.set_ylabel('Actual Values')
    ax1.set_title('Actual vs Fitted')

    # 2. Percent error vs Fitted
    ax2 = axes[1]
    ax2.scatter(fitted, pct_errors, alpha=0.6, edgecolors='k', linewidth=0.5)
    ax2.axhline(y=0, color='r', linestyle='--', linewidth=1)
    ax2.axhline(y=result.mean_percent_error(), color='b', linestyle=':',
                linewidth=1, label='Mean')
    ax2.set_xlabel('Fitted Values')
    ax2.set_ylabel('Percent Error')
    ax2.set_title('Percent Error vs Fitted')
    ax2.legend()

    # 3. Convergence trace
    ax3 = axes[2]
    trace = [(r.iteration, r.conv) for r in result.history
             if r.conv is not None and r.conv > 0]
    if trace:
        iters, convs = zip(*trace)
        ax3.semilogy(iters, convs, 'o-', markersize=4)
    ax3.axhline(y=result.tol, color='r', linestyle='--', linewidth=1, label='tol')
    ax3.set_xlabel('Iteration')
    ax3.set_ylabel('Max Relative Change')
    ax3.set_title(f'Convergence ({result.n_iter} iterations)')
    ax3.legend()

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig
