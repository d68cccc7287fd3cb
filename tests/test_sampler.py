"""
Unit tests for the WALNUTS transition kernel and sampling driver.
"""

import unittest

import walnuts as wn
import walnuts.num as gnp
from walnuts.mcmc import (
    AcceptRecord,
    DirectionRecord,
    EventLog,
    ProposalRecord,
    Target,
    WALNUTSOptions,
    WALNUTSSampler,
    walnuts_transition,
)
from walnuts.mcmc.sampler import STOP_REASONS, _resolve_walnuts_options
from walnuts.misc import targets


def resolve(options=None, **kwargs):
    args = dict(
        step_size=0.4,
        max_error=0.1,
        max_depth=12,
        max_halvings=10,
        seed=None,
        progress=True,
        verbose=1,
        log_every=50,
    )
    args.update(kwargs)
    return _resolve_walnuts_options(options, **args)


# ======================================================================
#                           Test cases
# ======================================================================
class TestOptions(unittest.TestCase):

    def test_defaults(self):
        opts = WALNUTSOptions()
        self.assertEqual(opts.step_size, 0.4)
        self.assertEqual(opts.max_error, 0.1)
        self.assertEqual(opts.max_depth, 12)
        self.assertEqual(opts.max_halvings, 10)
        opts.validate()

    def test_invalid(self):
        for kwargs in (
            dict(step_size=0.0),
            dict(step_size=-0.1),
            dict(step_size=float("inf")),
            dict(max_error=0.0),
            dict(max_error=float("nan")),
            dict(max_depth=0),
            dict(max_halvings=0),
        ):
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    WALNUTSOptions(**kwargs).validate()

    def test_resolve_keeps_options_unless_overridden(self):
        base = WALNUTSOptions(step_size=0.2, max_depth=5, seed=3)
        opts = resolve(base)
        self.assertEqual(opts.step_size, 0.2)
        self.assertEqual(opts.max_depth, 5)
        self.assertEqual(opts.seed, 3)
        self.assertIsNot(opts, base)

        opts = resolve(base, step_size=0.3, seed=11)
        self.assertEqual(opts.step_size, 0.3)
        self.assertEqual(opts.seed, 11)
        self.assertEqual(base.step_size, 0.2)

    def test_resolve_without_options(self):
        opts = resolve(None, max_error=0.05, progress=False)
        self.assertEqual(opts.max_error, 0.05)
        self.assertFalse(opts.progress)


class TestTransition(unittest.TestCase):

    def test_info_fields(self):
        target = Target(*targets.standard_normal())
        gnp.set_seed(0)
        q, info = walnuts_transition(target, gnp.asarray([0.5, -0.5]), WALNUTSOptions())
        self.assertEqual(tuple(q.shape), (2,))
        self.assertIn(info.stop_reason, STOP_REASONS)
        self.assertGreaterEqual(info.n_macro_steps, 2 ** info.depth - 1)
        self.assertGreaterEqual(info.n_leapfrog, info.n_macro_steps)

    def test_max_depth_bounds_the_tree(self):
        target = Target(lambda q: 0.0, lambda q: 0.0 * q)
        opts = WALNUTSOptions(max_depth=3)
        gnp.set_seed(0)
        for _ in range(10):
            _, info = walnuts_transition(target, gnp.asarray([0.0]), opts)
            self.assertLessEqual(info.depth, 3)
            self.assertLessEqual(info.n_macro_steps, 7)

    def test_nan_gradient_keeps_tip(self):
        target = Target(
            lambda q: -0.5 * gnp.sum(q * q),
            lambda q: gnp.full(q.shape, gnp.nan),
        )
        q0 = gnp.asarray([1.0, 2.0])
        gnp.set_seed(0)
        q, info = walnuts_transition(target, q0, WALNUTSOptions(max_halvings=3))
        self.assertTrue(gnp.array_equal(q, q0))
        self.assertEqual(info.stop_reason, "rejected")
        self.assertEqual(info.depth, 0)
        self.assertFalse(info.moved)

    def test_non_finite_tip(self):
        target = Target(lambda q: -gnp.inf, lambda q: 0.0 * q)
        q0 = gnp.asarray([1.0])
        q, info = walnuts_transition(target, q0, WALNUTSOptions())
        self.assertTrue(gnp.array_equal(q, q0))
        self.assertEqual(info.stop_reason, "non_finite")
        self.assertEqual(info.n_macro_steps, 0)

    def test_oracle_exception_propagates(self):
        def log_prob(q):
            raise RuntimeError("boom")

        target = Target(log_prob, lambda q: -q)
        with self.assertRaises(RuntimeError):
            walnuts_transition(target, gnp.asarray([0.0]), WALNUTSOptions())

    def test_events(self):
        target = Target(*targets.standard_normal())
        log = EventLog()
        gnp.set_seed(4)
        q, info = walnuts_transition(target, gnp.asarray([0.0]), WALNUTSOptions(), sink=log)
        self.assertEqual([r.kind for r in log], ["proposal", "accept"])
        proposal = log.proposals()[0]
        self.assertTrue(gnp.array_equal(proposal.proposal, q))
        self.assertTrue(gnp.array_equal(log.of_type(AcceptRecord)[0].proposal, q))
        directions = [r for r in proposal.trajectory if isinstance(r, DirectionRecord)]
        discarded = info.n_rejected + info.n_subtree_uturns > 0
        self.assertEqual(len(directions), info.depth + discarded)
        self.assertTrue(all(d.direction in (-1, 1) for d in directions))


class TestSampler(unittest.TestCase):

    def test_chain_growth(self):
        log_prob, grad_log_prob = targets.standard_normal()
        sampler = WALNUTSSampler(
            log_prob, [0.0, 0.0], grad_log_prob, options=WALNUTSOptions(seed=0)
        )
        new = sampler.run(5)
        self.assertEqual(len(sampler.chain), 6)
        self.assertEqual(len(sampler.history), 5)
        self.assertEqual(tuple(new.shape), (5, 2))
        self.assertEqual(tuple(sampler.samples().shape), (6, 2))
        self.assertTrue(gnp.array_equal(sampler.tip, sampler.chain[-1]))
        self.assertEqual(sampler.dim, 2)
        self.assertEqual(tuple(sampler.run(0).shape), (0, 2))

    def test_invalid_init(self):
        log_prob, grad_log_prob = targets.standard_normal()
        with self.assertRaises(ValueError):
            WALNUTSSampler(log_prob, [[0.0, 0.0]], grad_log_prob)
        with self.assertRaises(ValueError):
            WALNUTSSampler(log_prob, [0.0], grad_log_prob, options=WALNUTSOptions(max_depth=0))

    def test_scalar_init(self):
        log_prob, grad_log_prob = targets.standard_normal()
        sampler = WALNUTSSampler(log_prob, 0.0, grad_log_prob)
        self.assertEqual(sampler.dim, 1)

    def test_options_can_change_between_transitions(self):
        log_prob, grad_log_prob = targets.standard_normal()
        sampler = WALNUTSSampler(log_prob, [0.0], grad_log_prob, options=WALNUTSOptions(seed=0))
        sampler.transition()
        sampler.options.step_size = 0.2
        sampler.transition()
        sampler.options.step_size = -1.0
        with self.assertRaises(ValueError):
            sampler.transition()
        self.assertEqual(len(sampler.chain), 3)


class TestWalnutsSample(unittest.TestCase):

    def test_seeded_runs_are_reproducible(self):
        log_prob, grad_log_prob = targets.funnel(dim=3)
        q0 = targets.funnel_init(dim=3)
        kwargs = dict(grad_log_prob=grad_log_prob, seed=5, progress=False, verbose=0)
        s1, _ = wn.walnuts_sample(log_prob, q0, 20, **kwargs)
        s2, _ = wn.walnuts_sample(log_prob, q0, 20, sink=EventLog(), **kwargs)
        self.assertTrue(gnp.array_equal(s1, s2))
        kwargs["seed"] = 6
        s3, _ = wn.walnuts_sample(log_prob, q0, 20, **kwargs)
        self.assertFalse(gnp.array_equal(s1, s3))

    def test_info(self):
        log_prob, grad_log_prob = targets.standard_normal()
        samples, info = wn.walnuts_sample(
            log_prob, [0.0, 0.0], 30, grad_log_prob=grad_log_prob,
            seed=0, progress=False, verbose=0,
        )
        self.assertEqual(tuple(samples.shape), (30, 2))
        for key in ("tree_depth", "n_macro_steps", "n_leapfrog", "max_halvings", "n_rejected", "moved"):
            self.assertEqual(len(info[key]), 30)
        self.assertEqual(len(info["stop_reason"]), 30)
        self.assertTrue(set(info["stop_reason"]) <= set(STOP_REASONS))
        self.assertEqual(info["step_size"], 0.4)
        self.assertEqual(info["max_error"], 0.1)
        self.assertGreater(info["n_grad_evals"], 0)

    def test_zero_samples(self):
        log_prob, grad_log_prob = targets.standard_normal()
        samples, info = wn.walnuts_sample(
            log_prob, [0.0, 0.0, 0.0], 0, grad_log_prob=grad_log_prob, progress=False, verbose=0
        )
        self.assertEqual(tuple(samples.shape), (0, 3))
        self.assertEqual(info["stop_reason"], [])

    def test_invalid_arguments(self):
        log_prob, grad_log_prob = targets.standard_normal()
        with self.assertRaises(ValueError):
            wn.walnuts_sample(log_prob, [0.0], -1, progress=False, verbose=0)
        with self.assertRaises(ValueError):
            wn.walnuts_sample(log_prob, [0.0], 5, max_error=-1.0, progress=False, verbose=0)

    def test_sink_receives_one_proposal_per_transition(self):
        log_prob, grad_log_prob = targets.standard_normal()
        log = EventLog()
        samples, _ = wn.walnuts_sample(
            log_prob, [0.0], 10, grad_log_prob=grad_log_prob,
            seed=2, progress=False, verbose=0, sink=log,
        )
        proposals = log.of_type(ProposalRecord)
        self.assertEqual(len(proposals), 10)
        for i, record in enumerate(proposals):
            self.assertTrue(gnp.array_equal(record.proposal, samples[i]))

    def test_gradient_free_target(self):
        log_prob, _ = targets.gaussian([1.0, -1.0], [[1.0, 0.3], [0.3, 0.5]])
        samples, info = wn.walnuts_sample(
            log_prob, [0.0, 0.0], 20, seed=0, progress=False, verbose=0
        )
        self.assertTrue(bool(gnp.isfinite(samples).all()))
        self.assertTrue(bool(info["moved"].any()))

    def test_stop_reason_names_the_cause(self):
        log_prob, grad_log_prob = targets.standard_normal()
        _, info = wn.walnuts_sample(
            log_prob, [0.0], 200, grad_log_prob=grad_log_prob,
            seed=0, progress=False, verbose=0,
        )
        rejected = gnp.to_np(info["n_rejected"])
        subtree_uturns = gnp.to_np(info["n_subtree_uturns"])
        for reason, n_rej, n_sub in zip(info["stop_reason"], rejected, subtree_uturns):
            if reason == "rejected":
                self.assertGreater(n_rej, 0)
            if n_sub > 0:
                self.assertEqual(reason, "uturn")
        self.assertTrue((subtree_uturns > 0).any())
        self.assertLess(info["stop_reason"].count("rejected"), 20)

    def test_gaussian_1d_short_chains(self):
        # Chains of 100 draws have lag-1 autocorrelation near 0.6, so the
        # moment bounds hold for a majority of seeds only.
        log_prob, grad_log_prob = targets.standard_normal()
        n_within = 0
        for seed in range(20):
            samples, _ = wn.walnuts_sample(
                log_prob, [0.0], 100, grad_log_prob=grad_log_prob,
                step_size=0.4, max_error=0.1, seed=seed, progress=False, verbose=0,
            )
            x = gnp.to_np(samples)[:, 0]
            self.assertEqual(x.shape, (100,))
            n_within += abs(x.mean()) <= 0.3 and abs(x.var() - 1.0) <= 0.3
        self.assertGreaterEqual(n_within, 5)

    def test_gaussian_1d_moments(self):
        log_prob, grad_log_prob = targets.standard_normal()
        samples, _ = wn.walnuts_sample(
            log_prob, [0.0], 1000, grad_log_prob=grad_log_prob,
            step_size=0.4, max_error=0.1, seed=0, progress=False, verbose=0,
        )
        x = gnp.to_np(samples)[:, 0]
        self.assertAlmostEqual(float(x.mean()), 0.0, delta=0.2)
        self.assertAlmostEqual(float(x.var()), 1.0, delta=0.3)

    def test_correlated_gaussian_moments(self):
        mean = [1.0, -2.0]
        cov = [[1.0, 0.8], [0.8, 1.0]]
        log_prob, grad_log_prob = targets.gaussian(mean, cov)
        samples, _ = wn.walnuts_sample(
            log_prob, mean, 1000, grad_log_prob=grad_log_prob,
            step_size=0.3, seed=1, progress=False, verbose=0,
        )
        x = gnp.to_np(samples)
        self.assertAlmostEqual(float(x[:, 0].mean()), 1.0, delta=0.25)
        self.assertAlmostEqual(float(x[:, 1].mean()), -2.0, delta=0.25)


if __name__ == "__main__":
    unittest.main()
