#########################################################################################
##
##              OEFPIL example: straight-line calibration of an instrument
##
##  Model:   mu_y = beta_1 + beta_2 * mu_x
##  Data:    13 readings of a reference (x) and of the instrument (y), taken on
##           an increasing and a decreasing sweep.
##  Errors:  both coordinates carry an independent (type A) and a common-mode
##           (type B) uncertainty component, so Ux and Uy are full matrices.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import matplotlib.pyplot as plt

from oefpil import OEFPIL, EstimatorOptions, LoggerManager


# DATA ==================================================================================

x = np.array([4.0030, 6.7160, 9.3710, 12.0530, 15.2660, 17.3510, 20.0360,
              17.3690, 14.7180, 12.0390, 9.3760, 6.6970, 4.0080])
y = np.array([0.0, 10.1910, 20.1020, 30.1700, 42.2300, 50.0500, 60.0700,
              50.0800, 40.1150, 30.0890, 20.0950, 10.0700, 0.0])
m = len(x)

uxA, uxB = np.sqrt(0.00001444), 0.0014
uyA, uyB = np.sqrt(0.000036), np.sqrt(0.000036)

Ux = uxA**2 * np.eye(m) + uxB**2 * np.ones((m, m))
Uy = uyA**2 * np.eye(m) + uyB**2 * np.ones((m, m))

# x and y are uncorrelated, off-diagonal blocks are zero
U = [[Ux, None], [None, Uy]]


# MODEL DEFINITION ======================================================================

def line(mu, beta):
    return beta[0] + beta[1] * mu[0] - mu[1]


def line_diff_mu(mu, beta):
    return [beta[1] * np.ones_like(mu[0]), -np.ones_like(mu[1])]


def line_diff_beta(mu, beta):
    return np.column_stack([np.ones_like(mu[0]), mu[0]])


options = EstimatorOptions(
    criterion="parameterdifferences",
    method="oefpil",
    fun_diff_mu=line_diff_mu,
    fun_diff_beta=line_diff_beta,
)


# Run Example ===========================================================================

if __name__ == '__main__':

    LoggerManager().enable_console("INFO")

    est = OEFPIL([x, y], line, beta0=[0.0, 1.0], uncertainty=U, mu0=[x, y], options=options)
    result = est.fit()

    result.display()

    print("\nParameter correlation:")
    print(result.correlation)

    # compare the update rules
    for method in ("oefpilrs2", "oefpilvw"):
        other = OEFPIL([x, y], line, beta0=[0.0, 1.0], uncertainty=U,
                       options=options.replace(method=method)).fit()
        print(f"{method:>10}: beta = {other.beta}, std = {other.ubeta}")

    result.plot()
    plt.show()
