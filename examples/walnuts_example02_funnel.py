"""WALNUTS on Neal's funnel

The funnel has a log-scale coordinate v and conditionally Gaussian
coordinates whose scale is exp(v/2). In the neck, the macro step is
refined by halving; in the mouth a single leapfrog step is enough. The
script records the step events of one transition and plots its
trajectory, coloured by the number of halvings, together with the
per-transition diagnostics.

Copyright (c) 2022-2026, CentraleSupelec
Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
License: GPLv3 (see LICENSE)

"""

import numpy as np
import matplotlib.pyplot as plt

import walnuts.num as gnp
import walnuts as wn
from walnuts.misc.targets import funnel, funnel_init
from walnuts.mcmc import EventLog, plot_trajectory, plot_walnuts_diagnostics


def main(num_samples=300, dim=2):
    log_prob, grad_log_prob = funnel(dim=dim)
    q0 = funnel_init(dim=dim, v0=-1.0)

    events = EventLog()
    samples, info = wn.walnuts_sample(
        log_prob,
        q_init=q0,
        num_samples=num_samples,
        grad_log_prob=grad_log_prob,
        step_size=0.4,
        max_error=0.3,
        seed=1,
        progress=False,
        verbose=1,
        log_every=100,
        sink=events,
    )

    v = gnp.to_np(samples)[:, 0]
    halvings = gnp.to_np(info["max_halvings"])
    print(f"mean(v)={v.mean():.3f}  std(v)={v.std(ddof=1):.3f}  (target 0, 3)")
    print(f"transitions with halvings: {np.mean(halvings > 0):.2f}")

    proposals = events.proposals()
    deepest = max(proposals, key=lambda r: len(r.trajectory))
    plot_trajectory(deepest, coords=(1, 0), show=False)
    plot_walnuts_diagnostics(info, show=False)
    plt.show()
    return samples, info


if __name__ == "__main__":
    main()
