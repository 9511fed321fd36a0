# Copyright 2024 The AdaptiveSampling Contributors. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Provides multi-output Gaussian process belief models along with the
functions used to fit their hyperparameters
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import tensorflow as tf
from scipy.optimize import minimize

import gpflow
from gpflow.config import default_float

from ..kernels import get_kernel
from ..kernels.coregion import (full_covariance_matrix, multi_output_kernel,
                                num_covariance_entries)
from ..samples import Sample, as_location, is_sample_input
from ..utils.misc import SQRT_EPS, jitter_fn

logger = logging.getLogger(__name__)

# bounds on the log of the lengthscale and noise during optimization
_LOG_LIMIT = 20.0

# smallest diagonal jitter used when fitting is retried
MIN_RETRY_JITTER = 1e-6


class BeliefModelFittingError(RuntimeError):
    """Raised when the hyperparameters cannot be fitted even with extra jitter."""
    def __init__(self, reason: str, theta: 'Hyperparameters',
                 X: np.ndarray, Y: np.ndarray):
        self.reason = reason
        self.theta = theta
        self.X = X
        self.Y = Y
        super().__init__(
            f"Belief model fitting failed: {reason}\n"
            f"theta={theta}\nX={X.tolist()}\nY={Y.reshape(-1).tolist()}")


@dataclass(frozen=True, eq=False)
class Hyperparameters:
    """GP hyperparameters.

    Attributes:
        sigma (ndarray): (T(T+1)/2,); Free-form output covariance parameters
        lengthscale (float): Spatial lengthscale
        noise (float): Observation noise standard deviation
    """
    sigma: np.ndarray
    lengthscale: float
    noise: float

    def __post_init__(self):
        object.__setattr__(self, 'sigma',
                           np.asarray(self.sigma, dtype=float).reshape(-1))
        object.__setattr__(self, 'lengthscale', float(self.lengthscale))
        object.__setattr__(self, 'noise', float(self.noise))

    @property
    def num_outputs(self) -> int:
        return full_covariance_matrix(self.sigma).shape[0]

    def flatten(self, learn_noise: bool = True) -> np.ndarray:
        """Unconstrained optimizer coordinates: raw sigma, log lengthscale and log noise."""
        params = [self.sigma, [np.log(self.lengthscale)]]
        if learn_noise:
            params.append([np.log(max(self.noise, SQRT_EPS))])
        return np.concatenate(params)

    def unflatten(self, params: np.ndarray, learn_noise: bool = True) -> 'Hyperparameters':
        """Maps optimizer coordinates back to hyperparameters shaped like this instance."""
        n = len(self.sigma)
        logs = np.clip(params[n:], -_LOG_LIMIT, _LOG_LIMIT)
        noise = np.exp(logs[1]) if learn_noise else self.noise
        return Hyperparameters(params[:n], np.exp(logs[0]), noise)

    def __repr__(self):
        return (f"Hyperparameters(sigma={np.round(self.sigma, 6).tolist()}, "
                f"lengthscale={self.lengthscale:.6g}, noise={self.noise:.6g})")


@dataclass(frozen=True)
class Fitted:
    """Successful hyperparameter optimization."""
    theta: Hyperparameters
    loss: float
    num_iterations: int


@dataclass(frozen=True)
class FittingFailed:
    """Hyperparameter optimization hit a covariance that is not positive definite."""
    reason: str
    theta: Hyperparameters


FitResult = Union[Fitted, FittingFailed]


def _training_data(samples: Sequence[Sample]) -> Tuple[np.ndarray, np.ndarray]:
    X = np.array([[*s.location, s.quantity] for s in samples], dtype=float).reshape(-1, 3)
    Y = np.array([s.y for s in samples], dtype=float).reshape(-1, 1)
    return X, Y


def _query_inputs(inputs) -> np.ndarray:
    return np.array([[*as_location(loc), int(q)] for loc, q in inputs],
                    dtype=float).reshape(-1, 3)


@dataclass(eq=False)
class BeliefModelSimple:
    """A multi-output GP posterior conditioned on one set of samples.

    Only numpy data is stored; the gpflow kernel is rebuilt from the
    hyperparameters on every query, so the model pickles cleanly.

    Calling the model with a single `(location, quantity)` pair returns the
    predictive mean and standard deviation as floats. Calling it with a list
    of pairs returns two arrays.

    Attributes:
        X (ndarray): (n, 3); Training inputs `[x, y, quantity]`
        Y (ndarray): (n, 1); Training observations
        theta (Hyperparameters): Fitted hyperparameters
        jitter (float): Extra diagonal term added when fitting needed it
        base_kernel (str): Name of the spatial kernel
    """
    X: np.ndarray
    Y: np.ndarray
    theta: Hyperparameters
    jitter: float = 0.0
    base_kernel: str = 'SquaredExponential'

    @property
    def noise_variance(self) -> float:
        return self.theta.noise**2 + SQRT_EPS + self.jitter

    def kernel(self) -> gpflow.kernels.Kernel:
        return multi_output_kernel(self.theta.sigma, self.theta.lengthscale,
                                   get_kernel(self.base_kernel))

    def predict(self, Xnew: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Marginal predictive distribution of the latent function.

        Args:
            Xnew (ndarray): (m, 3); Test inputs `[x, y, quantity]`

        Returns:
            mean (ndarray): (m,); Predictive means
            var (ndarray): (m,); Predictive variances
        """
        if len(Xnew) == 0:
            return np.zeros(0), np.zeros(0)
        kernel = self.kernel()
        X = tf.constant(self.X, dtype=default_float())
        Xnew = tf.constant(Xnew, dtype=default_float())
        err = tf.constant(self.Y, dtype=default_float())

        kmm = jitter_fn(kernel(X), self.noise_variance)
        kmn = kernel(X, Xnew)
        knn = kernel(Xnew, full_cov=False)

        conditional = gpflow.conditionals.base_conditional
        f_mean, f_var = conditional(kmn, kmm, knn, err, full_cov=False, white=False)
        return f_mean.numpy()[:, 0], f_var.numpy()[:, 0]

    def __call__(self, x):
        single = is_sample_input(x)
        inputs = [x] if single else list(x)
        mean, var = self.predict(_query_inputs(inputs))
        std = np.sqrt(np.maximum(var, 0.0))
        if single:
            return float(mean[0]), float(std[0])
        return mean, std


@dataclass(eq=False)
class BeliefModelSplit:
    """Pairs a model fitted to the mission samples only (`current`) with one
    fitted to prior and mission samples together (`combined`).

    Means come from `combined`, standard deviations from `current`, so the
    reported uncertainty reflects what the mission itself has measured.
    """
    current: BeliefModelSimple
    combined: BeliefModelSimple

    @property
    def theta(self) -> Hyperparameters:
        return self.current.theta

    def __call__(self, x):
        mean, _ = self.combined(x)
        _, std = self.current(x)
        return mean, std


BeliefModel = Union[BeliefModelSimple, BeliefModelSplit]


def init_hyperparameters(X: np.ndarray, Y: np.ndarray, lower, upper,
                         noise: float = 0.001) -> Hyperparameters:
    """
    Initial hyperparameters estimated from the data and the region bounds.

    Args:
        X (ndarray): (n, 3); Training inputs `[x, y, quantity]`
        Y (ndarray): (n, 1); Training observations
        lower (array-like): (2,); Lower bounds of the region
        upper (array-like): (2,); Upper bounds of the region
        noise (float): Initial observation noise standard deviation

    Returns:
        Hyperparameters: Initial values
    """
    n = len(X)
    num_outputs = int(np.max(X[:, 2])) + 1
    scale = np.std(Y) if n > 1 else 0.5
    sigma = scale / np.sqrt(2) * np.ones(num_covariance_entries(num_outputs))
    a = np.mean((np.asarray(lower, dtype=float) + np.asarray(upper, dtype=float)) / 2)
    if n == 1:
        lengthscale = a
    else:
        lengthscale = a / n + np.mean(np.std(X[:, :2], axis=0)) * (1 - 1 / n)
    return Hyperparameters(sigma, lengthscale, noise)


def negative_log_likelihood(theta: Hyperparameters, X: np.ndarray, Y: np.ndarray,
                            jitter: float = 0.0,
                            base_kernel: str = 'SquaredExponential') -> float:
    """
    Negative log marginal likelihood of a zero mean GP with the multi-output
    kernel and observation variance `noise² + √eps + jitter`.

    Raises:
        tf.errors.InvalidArgumentError: If the covariance is not positive definite
                                        or the likelihood is not finite.
    """
    kernel = multi_output_kernel(theta.sigma, theta.lengthscale, get_kernel(base_kernel))
    X = tf.constant(X, dtype=default_float())
    Y = tf.constant(Y, dtype=default_float())
    K = jitter_fn(kernel(X), theta.noise**2 + SQRT_EPS + jitter)
    # on CPU a failed factorization returns NaNs instead of raising
    L = tf.debugging.check_numerics(tf.linalg.cholesky(K),
                                    "Cholesky decomposition was not successful")
    log_prob = tf.reduce_sum(gpflow.logdensities.multivariate_normal(Y, tf.zeros_like(Y), L))
    log_prob = tf.debugging.check_numerics(log_prob, "Log likelihood is not finite")
    return -float(log_prob.numpy())


def optimize_hyperparameters(X: np.ndarray, Y: np.ndarray, theta0: Hyperparameters,
                             max_iterations: int = 1000,
                             learn_noise: bool = True,
                             jitter: float = 0.0,
                             base_kernel: str = 'SquaredExponential',
                             verbose: bool = False) -> FitResult:
    """
    Minimizes the negative log marginal likelihood over the hyperparameters
    with the Nelder-Mead simplex method.

    The lengthscale and noise are optimized in log space and the output
    covariance parameters are unconstrained, so every optimizer coordinate
    maps to valid hyperparameters.

    Args:
        X (ndarray): (n, 3); Training inputs
        Y (ndarray): (n, 1); Training observations
        theta0 (Hyperparameters): Starting point
        max_iterations (int): Iteration cap of the simplex method
        learn_noise (bool): If False, the noise is held at `theta0.noise`
        jitter (float): Extra diagonal term added to the covariance
        base_kernel (str): Name of the spatial kernel
        verbose (bool): If True, print the optimizer's convergence message

    Returns:
        FitResult: `Fitted` with the optimized hyperparameters, or `FittingFailed`
                   with the hyperparameters at which the Cholesky decomposition failed
                   or the loss stopped being finite
    """
    last = [theta0]

    def loss(params):
        theta = theta0.unflatten(params, learn_noise)
        last[0] = theta
        return negative_log_likelihood(theta, X, Y, jitter, base_kernel)

    try:
        res = minimize(loss,
                       theta0.flatten(learn_noise),
                       method='Nelder-Mead',
                       options={'maxiter': max_iterations,
                                'disp': verbose})
    except tf.errors.InvalidArgumentError as e:
        return FittingFailed(reason=e.message, theta=last[0])

    theta = theta0.unflatten(res.x, learn_noise)
    if not np.isfinite(res.fun):
        return FittingFailed(reason="Negative log likelihood is not finite", theta=theta)
    return Fitted(theta=theta,
                  loss=float(res.fun),
                  num_iterations=int(res.nit))


def condition_belief_model(samples: Sequence[Sample], theta: Hyperparameters,
                           jitter: float = 0.0,
                           base_kernel: str = 'SquaredExponential') -> BeliefModelSimple:
    """Conditions a belief model on samples with fixed hyperparameters."""
    X, Y = _training_data(samples)
    return BeliefModelSimple(X, Y, theta, jitter, base_kernel)


def fit_belief_model(samples: Sequence[Sample], lower, upper,
                     max_iterations: int = 1000,
                     learn_noise: bool = True,
                     noise: float = 0.001,
                     base_kernel: str = 'SquaredExponential',
                     verbose: bool = False,
                     theta0: Optional[Hyperparameters] = None) -> BeliefModelSimple:
    """
    Fits hyperparameters to the samples and returns the conditioned model.

    If the covariance stops being positive definite during optimization (this
    happens when sigma is very large and the lengthscale is much bigger than
    the region), the optimization is attempted once more with a diagonal
    jitter of a tenth of the largest sigma (at least `MIN_RETRY_JITTER`).

    Args:
        samples (Sequence[Sample]): Training samples
        lower (array-like): (2,); Lower bounds of the region
        upper (array-like): (2,); Upper bounds of the region
        max_iterations (int): Iteration cap of the simplex method
        learn_noise (bool): If False, the noise is fixed at `noise`
        noise (float): Initial (or fixed) observation noise standard deviation
        base_kernel (str): Name of the spatial kernel
        verbose (bool): If True, print the optimizer's convergence messages
        theta0 (Hyperparameters): Starting hyperparameters. Estimated from the
                                  data with `init_hyperparameters` by default

    Returns:
        BeliefModelSimple: Fitted model

    Raises:
        ValueError: If there are no samples.
        BeliefModelFittingError: If the second attempt fails too.
    """
    if len(samples) == 0:
        raise ValueError("Cannot fit a belief model without samples")
    X, Y = _training_data(samples)
    if theta0 is None:
        theta0 = init_hyperparameters(X, Y, lower, upper, noise)

    jitter = 0.0
    result = optimize_hyperparameters(X, Y, theta0, max_iterations,
                                      learn_noise, jitter, base_kernel, verbose)
    if isinstance(result, FittingFailed):
        logger.warning("Hyperparameter fitting failed (%s); theta=%s X=%s Y=%s",
                       result.reason, result.theta, X.tolist(), Y.reshape(-1).tolist())
        jitter = max(0.1 * float(np.max(np.abs(result.theta.sigma))), MIN_RETRY_JITTER)
        result = optimize_hyperparameters(X, Y, theta0, max_iterations,
                                          learn_noise, jitter, base_kernel, verbose)
    if isinstance(result, FittingFailed):
        raise BeliefModelFittingError(result.reason, result.theta, X, Y)

    logger.debug("Fitted %s after %d iterations, loss %.4f",
                 result.theta, result.num_iterations, result.loss)
    return BeliefModelSimple(X, Y, result.theta, jitter, base_kernel)


def generate_belief_model(samples: Sequence[Sample], prior_samples: Sequence[Sample],
                          lower, upper, **kwargs) -> BeliefModel:
    """
    Creates a belief model. A `BeliefModelSimple` fitted to `samples` is
    returned if there are no prior samples, otherwise a `BeliefModelSplit`
    of that model and one fitted to the prior and current samples together.

    Args:
        samples (Sequence[Sample]): Samples taken during the mission
        prior_samples (Sequence[Sample]): Samples available beforehand
        lower (array-like): (2,); Lower bounds of the region
        upper (array-like): (2,); Upper bounds of the region
        **kwargs: Passed to `fit_belief_model`

    Returns:
        BeliefModel: Simple or split model
    """
    current = fit_belief_model(samples, lower, upper, **kwargs)
    if len(prior_samples) == 0:
        return current
    combined = fit_belief_model([*prior_samples, *samples], lower, upper, **kwargs)
    return BeliefModelSplit(current, combined)


def output_covariance(belief_model: BeliefModel) -> np.ndarray:
    """Fitted output covariance matrix; the combined model's for split models."""
    if isinstance(belief_model, BeliefModelSplit):
        belief_model = belief_model.combined
    return full_covariance_matrix(belief_model.theta.sigma)


def output_correlation_matrix(belief_model: BeliefModel) -> np.ndarray:
    """Correlation matrix between all outputs implied by the output covariance."""
    cov = output_covariance(belief_model)
    d = np.sqrt(np.diag(cov))
    return cov / np.outer(d, d)


def correlations(belief_model: BeliefModel) -> np.ndarray:
    """Correlations of outputs `1..T-1` with output 0."""
    return output_correlation_matrix(belief_model)[1:, 0]
