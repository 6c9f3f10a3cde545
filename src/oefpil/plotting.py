#########################################################################################
##
##                                DIAGNOSTIC PLOTS
##                                  (plotting.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np


# PLOTS =================================================================================

def plot_observed_vs_fitted_values(result, ax=None):
    """Scatter observed (``*``) and fitted (``o``) points in data space.

    Only drawn for two or three measured quantities.

    Returns
    -------
    matplotlib.axes.Axes or None
    """
    import matplotlib.pyplot as plt

    n = result.n
    if n not in (2, 3):
        return None

    obs = result.data.blocks
    fit = result.mu
    names = result.data.names

    if ax is None:
        fig = plt.figure(figsize=(7, 5))
        ax = fig.add_subplot(projection="3d") if n == 3 else fig.add_subplot()

    if n == 2:
        ax.plot(obs[0], obs[1], "*", label="observed")
        ax.plot(fit[0], fit[1], "o", mfc="none", label="fitted")
    else:
        ax.plot(obs[0], obs[1], obs[2], "*", label="observed")
        ax.plot(fit[0], fit[1], fit[2], "o", mfc="none", label="fitted")
        ax.set_zlabel(names[2])

    ax.set_xlabel(names[0])
    ax.set_ylabel(names[1])
    ax.set_title("EIV model: Observed vs. fitted values")
    ax.grid(True, alpha=0.3)
    ax.legend()
    return ax


def plot_observed_vs_fitted(result, ax=None):
    """Stacked fitted values against stacked observations with the identity line."""
    import matplotlib.pyplot as plt

    if ax is None:
        _, ax = plt.subplots(figsize=(6, 5))

    observed = result.data.vector
    fitted = np.concatenate(result.mu)
    xx = np.linspace(observed.min(), observed.max(), 2)

    ax.plot(xx, xx, "-", lw=1, color="gray")
    ax.plot(observed, fitted, "o", ms=5, alpha=0.7)
    ax.set_xlabel("observed")
    ax.set_ylabel("fitted")
    ax.set_title("EIV model: Observed vs. fitted values")
    ax.grid(True, alpha=0.3)
    return ax


def plot_residuals(result, ax=None):
    """Residuals of the stacked observations against their index."""
    import matplotlib.pyplot as plt

    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))

    ax.plot(np.arange(1, result.residuals.size + 1), result.residuals, "*-")
    ax.set_xlabel("index")
    ax.set_ylabel("residuals")
    ax.set_title("EIV model: Residuals values")
    ax.grid(True, alpha=0.3)
    return ax


def plot_fit(result):
    """Draw every applicable diagnostic figure for *result*.

    Returns
    -------
    list[matplotlib.figure.Figure]
        Data-space scatter (only for two or three quantities), observed vs.
        fitted, and residuals.
    """
    figures = []
    for plot in (plot_observed_vs_fitted_values, plot_observed_vs_fitted, plot_residuals):
        ax = plot(result)
        if ax is not None:
            figures.append(ax.figure)
    return figures
