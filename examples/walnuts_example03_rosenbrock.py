"""WALNUTS on the Rosenbrock (banana) density

Draws from a tempered Rosenbrock density and shows the samples on top of
the contours of its potential.

Copyright (c) 2022-2026, CentraleSupelec
Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
License: GPLv3 (see LICENSE)

"""

from collections import Counter

import numpy as np
import matplotlib.pyplot as plt

import walnuts.num as gnp
import walnuts as wn
from walnuts.misc.targets import rosenbrock


def plot_rosenbrock_samples(samples, a, b, temperature, grid_n=200, contour_levels=30):
    x = gnp.to_np(samples)
    xs = np.linspace(-2.0, 2.5, grid_n)
    ys = np.linspace(-1.0, 5.0, grid_n)
    X, Y = np.meshgrid(xs, ys)
    U = ((a - X) ** 2 + b * (Y - X**2) ** 2) / temperature

    fig = plt.figure()
    plt.contour(X, Y, np.log1p(U), levels=contour_levels)
    plt.scatter(x[:, 0], x[:, 1], s=6, alpha=0.5)
    plt.xlabel("x")
    plt.ylabel("y")
    plt.title(f"WALNUTS samples on Rosenbrock (a={a}, b={b}, T={temperature})")
    plt.show()
    return fig


def main(num_samples=300):
    a, b, temperature = 1.0, 10.0, 2.0
    log_prob, grad_log_prob = rosenbrock(a=a, b=b, temperature=temperature)

    options = wn.WALNUTSOptions(step_size=0.2, max_error=0.2, max_depth=10)
    samples, info = wn.walnuts_sample(
        log_prob,
        q_init=[-1.0, 1.0],
        num_samples=num_samples,
        grad_log_prob=grad_log_prob,
        seed=42,
        progress=False,
        verbose=1,
        log_every=100,
        options=options,
    )
    print(f"mean={gnp.to_np(samples).mean(axis=0)}")
    print(f"stop reasons: {dict(Counter(info['stop_reason']))}")

    plot_rosenbrock_samples(samples, a, b, temperature)
    return samples, info


if __name__ == "__main__":
    main()
