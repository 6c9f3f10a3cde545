#########################################################################################
##
##            OEFPIL example: Oliver-Pharr power law of an indentation curve
##
##  Model:   F = beta_1 * (h - beta_2) ** beta_3
##  Data:    three repeated loading curves (depth h, load F) with five points
##           each.  The loads of one curve share a common-mode uncertainty.
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import matplotlib.pyplot as plt
from scipy.linalg import block_diag

from oefpil import oefpil


# DATA ==================================================================================

h = np.array([0.2505, 2.6846, 5.1221, 7.5628, 10.0018,
              0.2565, 2.6858, 5.1255, 7.5623, 9.9952,
              0.2489, 2.6830, 5.1271, 7.5603, 10.0003])
F = np.array([0.2398, 4.9412, 14.2090, 27.3720, 44.0513,
              0.2110, 4.9517, 14.2306, 27.3937, 44.0172,
              0.2303, 4.9406, 14.2690, 27.3982, 44.0611])
m = len(h)

Uh = 0.05**2 * np.eye(m)
Ublk = 0.1**2 * np.eye(m // 3) + 0.05**2 * np.ones((m // 3, m // 3))
UF = block_diag(Ublk, Ublk, Ublk)


# MODEL DEFINITION ======================================================================

def oliver_pharr(mu, beta):
    return beta[0] * (mu[0] - beta[1]) ** beta[2] - mu[1]


# Run Example ===========================================================================

if __name__ == '__main__':

    rng = np.random.default_rng(42)

    # start the latent loads slightly off the observations
    mu0 = [h, F + 0.01 * rng.standard_normal()]

    result = oefpil(
        [h, F], [Uh, UF], oliver_pharr,
        mu0=mu0,
        beta0=[1.0, 0.0, 2.0],
        options={"method": "oefpil", "criterion": "parameterdifferences"},
        verbose=True,
    )

    print(f"\nstatus: {result.status} after {result.iterations} iterations "
          f"({result.elapsed * 1e3:.1f} ms)")

    fig, ax = plt.subplots(figsize=(7, 5))
    hh = np.linspace(result.beta[1] + 1e-6, h.max(), 200)
    ax.errorbar(h, F, xerr=np.sqrt(np.diag(Uh)), yerr=np.sqrt(np.diag(UF)),
                fmt="*", label="observed")
    ax.plot(hh, oliver_pharr([hh, np.zeros_like(hh)], result.beta), "-", label="fit")
    ax.set_xlabel("depth h")
    ax.set_ylabel("load F")
    ax.legend()
    ax.grid(True, alpha=0.3)
    plt.show()
