#########################################################################################
##
##                 OEFPIL example: implicit quadric fit of an ellipsoid
##
##  Model:   b1 x^2 + b2 y^2 + b3 z^2 + b4 xy + b5 xz + b6 yz
##             + b7 x + b8 y + b9 z - 1 = 0
##  Data:    15 points measured on the surface, all coordinates with the
##           same independent uncertainty sigma.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import matplotlib.pyplot as plt

from oefpil import oefpil


# DATA ==================================================================================

data = np.array([
    [-1.7909,  1.5814, -0.4781],
    [ 0.5736, -1.6966,  0.6897],
    [ 1.5810, -1.4075, -0.8098],
    [ 3.5863, -0.7379,  0.1183],
    [-0.3867, -1.0428,  1.0037],
    [ 2.8492,  1.2363,  0.3700],
    [ 3.3248, -0.6750, -0.6123],
    [-1.4188,  1.6040, -0.7219],
    [ 3.6043, -0.7860, -0.2555],
    [ 3.4583,  0.9631, -0.3130],
    [ 0.4806, -1.8653, -0.4548],
    [ 3.5146, -0.8121,  0.3495],
    [ 0.4947, -1.4210,  0.7414],
    [ 1.7172,  1.7552, -0.1043],
    [ 0.1041,  1.8793, -0.1497],
])
m, n = data.shape

sigma = 0.075
U = sigma**2 * np.eye(m * n)


# MODEL DEFINITION ======================================================================

def quadric(mu, beta):
    x, y, z = mu
    return (
        beta[0] * x**2 + beta[1] * y**2 + beta[2] * z**2
        + beta[3] * x * y + beta[4] * x * z + beta[5] * y * z
        + beta[6] * x + beta[7] * y + beta[8] * z - 1.0
    )


def center(beta):
    """Center of the quadric from the gradient condition."""
    A = np.array([
        [2 * beta[0], beta[3], beta[4]],
        [beta[3], 2 * beta[1], beta[5]],
        [beta[4], beta[5], 2 * beta[2]],
    ])
    return np.linalg.solve(A, -beta[6:9])


# Run Example ===========================================================================

if __name__ == '__main__':

    beta0 = [1, 1, 1, 0, 0, 0, 0, 0, 0]

    result = oefpil(
        data, U, quadric,
        mu0=data,
        beta0=beta0,
        options={"method": "oefpil", "criterion": "parameterdifferences"},
    )

    result.display()
    print("\ncenter of the fitted ellipsoid:", center(result.beta))

    result.plot()
    plt.show()
