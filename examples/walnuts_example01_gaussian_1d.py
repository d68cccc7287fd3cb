"""WALNUTS on a one-dimensional standard normal

This script draws a chain from N(0, 1) with the default macro step
dt = 0.4 and energy tolerance 0.1, compares the sample moments with the
target, and plots the histogram of the draws against the density.

Copyright (c) 2022-2026, CentraleSupelec
Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
License: GPLv3 (see LICENSE)

"""

import numpy as np
import matplotlib.pyplot as plt
from scipy.stats import norm

import walnuts.num as gnp
import walnuts as wn


def log_prob(q):
    return -0.5 * gnp.sum(q * q)


def grad_log_prob(q):
    return -q


def visualization(samples):
    x = gnp.to_np(samples)[:, 0]
    t = np.linspace(-4, 4, 200)
    fig = plt.figure()
    plt.hist(x, bins=30, density=True, alpha=0.5, label="WALNUTS draws")
    plt.plot(t, norm.pdf(t), "C1", label="N(0, 1)")
    plt.legend()
    plt.title("WALNUTS on N(0, 1)")
    plt.show()
    return fig


def main(num_samples=1000):
    samples, info = wn.walnuts_sample(
        log_prob,
        q_init=[0.0],
        num_samples=num_samples,
        grad_log_prob=grad_log_prob,
        step_size=0.4,
        max_error=0.1,
        seed=0,
        progress=False,
        verbose=1,
        log_every=250,
    )
    x = gnp.to_np(samples)[:, 0]
    print(f"mean={x.mean():.3f}  var={x.var(ddof=1):.3f}")
    print(f"mean tree depth={np.mean(gnp.to_np(info['tree_depth'])):.2f}")
    print(f"gradient evaluations={info['n_grad_evals']}")

    visualization(samples)
    return samples, info


if __name__ == "__main__":
    main()
