import logging
import pickle

import numpy as np
import pytest
import tensorflow as tf

import adaptivesampling.core.belief_models as bm
from adaptivesampling.core.belief_models import (MIN_RETRY_JITTER,
                                                 BeliefModelFittingError,
                                                 BeliefModelSimple,
                                                 BeliefModelSplit, Fitted,
                                                 FittingFailed, Hyperparameters,
                                                 condition_belief_model,
                                                 correlations, fit_belief_model,
                                                 generate_belief_model,
                                                 init_hyperparameters,
                                                 negative_log_likelihood,
                                                 optimize_hyperparameters,
                                                 output_correlation_matrix)
from adaptivesampling.samples import Sample

LOWER = [0.0, 0.0]
UPPER = [1.0, 1.0]


def _empty_model(sigma):
    return BeliefModelSimple(np.zeros((0, 3)), np.zeros((0, 1)),
                             Hyperparameters(sigma, 0.2, 0.01))


class TestHyperparameters:

    def test_init_single_sample(self):
        X = np.array([[0.3, 0.6, 0.0]])
        Y = np.array([[0.7]])
        theta = init_hyperparameters(X, Y, LOWER, UPPER)
        assert np.allclose(theta.sigma, [0.5 / np.sqrt(2)])
        assert theta.lengthscale == pytest.approx(0.5)
        assert theta.noise == pytest.approx(0.001)

    def test_init_sizes_sigma_to_quantities(self):
        X = np.array([[0.1, 0.2, 0.0], [0.1, 0.2, 1.0], [0.8, 0.4, 0.0]])
        Y = np.array([[1.0], [2.0], [3.0]])
        theta = init_hyperparameters(X, Y, LOWER, UPPER)
        assert len(theta.sigma) == 3
        assert theta.num_outputs == 2
        assert np.allclose(theta.sigma, np.std(Y) / np.sqrt(2))

    def test_flatten_unflatten(self):
        theta = Hyperparameters([1.0, -0.5, 0.2], 0.3, 0.05)
        restored = theta.unflatten(theta.flatten())
        assert np.allclose(restored.sigma, theta.sigma)
        assert restored.lengthscale == pytest.approx(0.3)
        assert restored.noise == pytest.approx(0.05)

        fixed = theta.unflatten(theta.flatten(learn_noise=False) + 1.0, learn_noise=False)
        assert fixed.noise == 0.05


class TestBeliefModelSimple:

    def test_single_sample_fit_reproduces_observation(self):
        sample = Sample(((0.3, 0.6), 0), 0.7)
        belief = fit_belief_model([sample], LOWER, UPPER,
                                  max_iterations=200, learn_noise=False)
        mean, std = belief(((0.3, 0.6), 0))
        assert isinstance(mean, float) and isinstance(std, float)
        assert mean == pytest.approx(0.7, abs=1e-2)
        assert 0.0009 < std < 0.002

    def test_std_grows_with_distance(self, theta):
        belief = condition_belief_model([Sample(((0.1, 0.1), 0), 1.0)], theta)
        radii = [0.0, 0.05, 0.1, 0.2, 0.4, 0.8]
        _, std = belief([((0.1 + r, 0.1), 0) for r in radii])
        assert np.all(np.diff(std) > 0)

    def test_list_query_returns_arrays(self, simple_belief):
        mean, std = simple_belief([((0.1, 0.2), 0), ((0.4, 0.9), 0)])
        assert mean.shape == (2,) and std.shape == (2,)
        mean, std = simple_belief([])
        assert mean.shape == (0,) and std.shape == (0,)

    def test_pickles(self, simple_belief):
        restored = pickle.loads(pickle.dumps(simple_belief))
        query = [((0.1, 0.2), 0), ((0.5, 0.5), 0)]
        assert np.allclose(restored(query)[0], simple_belief(query)[0])
        assert np.allclose(restored(query)[1], simple_belief(query)[1])

    def test_fits_peak(self, few_samples):
        belief = fit_belief_model(few_samples, LOWER, UPPER, learn_noise=False)
        mean, _ = belief(((0.5, 0.5), 0))
        assert mean == pytest.approx(1.0, abs=0.1)
        _, std_corner = belief(((0.0, 0.0), 0))
        for s in few_samples:
            _, std = belief(s.x)
            assert std < std_corner

    def test_no_samples(self):
        with pytest.raises(ValueError):
            fit_belief_model([], LOWER, UPPER)


class TestBeliefModelSplit:

    @pytest.fixture
    def split_belief(self, few_samples, peak_field):
        priors = [Sample((loc, 1), 0.5 * peak_field(loc))
                  for loc in [(0.1, 0.1), (0.5, 0.4), (0.9, 0.6)]]
        belief = generate_belief_model(few_samples[:3], priors, LOWER, UPPER,
                                       max_iterations=100, learn_noise=False)
        return belief

    def test_mean_from_combined_std_from_current(self, split_belief):
        assert isinstance(split_belief, BeliefModelSplit)
        query = [((0.2, 0.3), 0), ((0.7, 0.9), 0)]
        mean, std = split_belief(query)
        assert np.allclose(mean, split_belief.combined(query)[0])
        assert np.allclose(std, split_belief.current(query)[1])
        assert split_belief.theta is split_belief.current.theta

    def test_single_query(self, split_belief):
        mean, std = split_belief(((0.2, 0.3), 0))
        assert isinstance(mean, float) and isinstance(std, float)

    def test_no_priors_gives_simple(self, few_samples):
        belief = generate_belief_model(few_samples[:2], [], LOWER, UPPER,
                                       max_iterations=50, learn_noise=False)
        assert isinstance(belief, BeliefModelSimple)


class TestFittingFallback:

    @pytest.fixture
    def one_sample(self):
        return [Sample(((0.3, 0.6), 0), 0.7)]

    def test_retries_with_jitter(self, monkeypatch, caplog, one_sample):
        calls = []

        def fake_optimize(X, Y, theta0, max_iterations, learn_noise, jitter, *args):
            calls.append(jitter)
            if len(calls) == 1:
                return FittingFailed('Cholesky decomposition was not successful',
                                     Hyperparameters([2.0], 50.0, 0.001))
            return Fitted(theta0, 0.0, 1)

        monkeypatch.setattr(bm, 'optimize_hyperparameters', fake_optimize)
        with caplog.at_level(logging.WARNING, logger='adaptivesampling'):
            belief = fit_belief_model(one_sample, LOWER, UPPER)

        assert calls == [0.0, pytest.approx(0.2)]
        assert belief.jitter == pytest.approx(0.2)
        assert any('Cholesky' in r.getMessage() for r in caplog.records)

    def test_raises_after_second_failure(self, monkeypatch, one_sample):
        def fake_optimize(X, Y, theta0, *args):
            return FittingFailed('Cholesky decomposition was not successful', theta0)

        monkeypatch.setattr(bm, 'optimize_hyperparameters', fake_optimize)
        with pytest.raises(BeliefModelFittingError) as excinfo:
            fit_belief_model(one_sample, LOWER, UPPER)
        assert 'theta=' in str(excinfo.value)
        assert excinfo.value.X.shape == (1, 3)

    def test_retry_jitter_has_floor(self, monkeypatch, one_sample):
        calls = []

        def fake_optimize(X, Y, theta0, max_iterations, learn_noise, jitter, *args):
            calls.append(jitter)
            if len(calls) == 1:
                return FittingFailed('Cholesky decomposition was not successful',
                                     Hyperparameters([0.0], 0.5, 0.001))
            return Fitted(theta0, 0.0, 1)

        monkeypatch.setattr(bm, 'optimize_hyperparameters', fake_optimize)
        belief = fit_belief_model(one_sample, LOWER, UPPER)
        assert calls == [0.0, MIN_RETRY_JITTER]
        assert belief.jitter == MIN_RETRY_JITTER


class TestNonPositiveDefiniteCovariance:
    """Nearly coincident locations with a huge sigma and lengthscale give a
    covariance that is rank one in double precision."""

    @pytest.fixture
    def clustered(self):
        return [Sample(((0.5, 0.5 + i * 1e-10), 0), 0.1 * (i + 1)) for i in range(3)]

    @pytest.fixture
    def singular_theta(self):
        return Hyperparameters([1e8], 1e6, 0.0)

    def test_likelihood_raises(self, clustered, singular_theta):
        X, Y = bm._training_data(clustered)
        with pytest.raises(tf.errors.InvalidArgumentError):
            negative_log_likelihood(singular_theta, X, Y)

    def test_optimizer_reports_failure(self, clustered, singular_theta):
        X, Y = bm._training_data(clustered)
        result = optimize_hyperparameters(X, Y, singular_theta,
                                          max_iterations=50, learn_noise=False)
        assert isinstance(result, FittingFailed)
        assert 'Cholesky' in result.reason
        assert np.allclose(result.theta.sigma, [1e8])

    def test_fit_recovers_with_jitter(self, caplog, clustered, singular_theta):
        with caplog.at_level(logging.WARNING, logger='adaptivesampling'):
            belief = fit_belief_model(clustered, LOWER, UPPER, max_iterations=50,
                                      learn_noise=False, theta0=singular_theta)
        assert belief.jitter == pytest.approx(1e7)
        assert any('Cholesky' in r.getMessage() for r in caplog.records)
        mean, std = belief([((0.5, 0.5), 0), ((0.2, 0.8), 0)])
        assert np.all(np.isfinite(mean)) and np.all(np.isfinite(std))


class TestCorrelations:

    def test_fully_correlated(self):
        assert np.allclose(correlations(_empty_model([1.0, 1.0, 0.0])), [1.0], atol=1e-6)

    def test_uncorrelated(self):
        assert np.allclose(correlations(_empty_model([1.0, 0.0, 1.0])), [0.0], atol=1e-6)

    def test_matrix_has_unit_diagonal(self):
        corr = output_correlation_matrix(_empty_model([1.0, 0.3, 2.0, -0.4, 0.1, 0.7]))
        assert corr.shape == (3, 3)
        assert np.allclose(np.diag(corr), 1.0)

    def test_split_uses_combined(self):
        split = BeliefModelSplit(_empty_model([1.0, 0.0, 1.0]), _empty_model([1.0, 1.0, 0.0]))
        assert np.allclose(correlations(split), [1.0], atol=1e-6)
