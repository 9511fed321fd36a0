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

"""Provides free-form output covariance matrices and the intrinsic
coregionalization kernel built from them
"""

from typing import Optional, Type

import numpy as np
import tensorflow as tf

import gpflow
from gpflow.config import default_float

from ..utils.misc import SQRT_EPS


def num_covariance_entries(num_outputs: int) -> int:
    """Number of parameters of a free-form covariance over `num_outputs` outputs."""
    return num_outputs * (num_outputs + 1) // 2


def num_many_to_one_entries(num_outputs: int) -> int:
    """Number of parameters of a many-to-one covariance over `num_outputs` outputs."""
    return 2 * num_outputs - 1


def num_outputs_from_entries(num_entries: int) -> int:
    num_outputs = int(np.floor(np.sqrt(2 * num_entries)))
    if num_covariance_entries(num_outputs) != num_entries:
        raise ValueError(
            f"{num_entries} parameters cannot fill a lower triangular matrix; "
            f"expected T(T+1)/2 for some number of outputs T")
    return num_outputs


def full_covariance_matrix(sigma) -> np.ndarray:
    """
    Creates an output covariance matrix by filling a lower triangular matrix
    `L` row by row with the parameters and returning `L Lᵀ + √eps I`.
    The result is symmetric positive definite for any parameter values.

    Args:
        sigma (array-like): (T(T+1)/2,); Parameters, where T is the number of outputs

    Returns:
        ndarray: (T, T); Output covariance matrix

    Usage:
        ```python
        B = full_covariance_matrix([1.0, 0.5, 0.2])  # 2 outputs
        ```
    """
    sigma = np.asarray(sigma, dtype=float).reshape(-1)
    num_outputs = num_outputs_from_entries(len(sigma))
    L = np.zeros((num_outputs, num_outputs))
    L[np.tril_indices(num_outputs)] = sigma
    return L @ L.T + SQRT_EPS * np.eye(num_outputs)


def many_to_one_covariance_matrix(sigma) -> np.ndarray:
    """
    Creates an output covariance matrix where every output is correlated with
    the first one only. The first T parameters fill the first column of a lower
    triangular matrix `L`, the remaining T-1 fill the rest of its diagonal.

    Args:
        sigma (array-like): (2T-1,); Parameters, where T is the number of outputs

    Returns:
        ndarray: (T, T); Output covariance matrix `L Lᵀ + √eps I`
    """
    sigma = np.asarray(sigma, dtype=float).reshape(-1)
    if len(sigma) % 2 == 0:
        raise ValueError(f"Expected 2T-1 parameters, got {len(sigma)}")
    num_outputs = (len(sigma) + 1) // 2
    L = np.zeros((num_outputs, num_outputs))
    L[:, 0] = sigma[:num_outputs]
    idx = np.arange(1, num_outputs)
    L[idx, idx] = sigma[num_outputs:]
    return L @ L.T + SQRT_EPS * np.eye(num_outputs)


class FreeFormCoregion(gpflow.kernels.Kernel):
    """Covariance between outputs indexed by an integer input column.

    The output covariance matrix is built once from a fixed parameter vector
    with `full_covariance_matrix`. Hyperparameters are fitted outside of
    gpflow, so the parameters are plain constants rather than `gpflow.Parameter`s.

    Args:
        sigma (array-like): (T(T+1)/2,); Free-form covariance parameters
        active_dims (list): Input column holding the output index
    """
    def __init__(self, sigma, active_dims=None, name: Optional[str] = None):
        super().__init__(active_dims=active_dims, name=name)
        self.sigma = np.asarray(sigma, dtype=float).reshape(-1)
        self.B = tf.constant(full_covariance_matrix(self.sigma), dtype=default_float())

    @property
    def output_dim(self) -> int:
        return int(self.B.shape[0])

    def K(self, X, X2=None):
        X = tf.cast(X[:, 0], tf.int32)
        X2 = X if X2 is None else tf.cast(X2[:, 0], tf.int32)
        return tf.gather(tf.gather(self.B, X), X2, axis=1)

    def K_diag(self, X):
        X = tf.cast(X[:, 0], tf.int32)
        return tf.gather(tf.linalg.diag_part(self.B), X)


def multi_output_kernel(sigma, lengthscale: float,
                        base_kernel: Optional[Type[gpflow.kernels.Kernel]] = None
                        ) -> gpflow.kernels.Kernel:
    """
    Intrinsic coregionalization kernel over inputs `[x, y, output]`: a
    spatial kernel on the first two columns times a free-form output
    covariance on the last column.

    Args:
        sigma (array-like): (T(T+1)/2,); Free-form covariance parameters
        lengthscale (float): Spatial lengthscale
        base_kernel (Type[gpflow.kernels.Kernel]): Stationary spatial kernel class.
                                                   Defaults to `SquaredExponential`.

    Returns:
        gpflow.kernels.Kernel: Product kernel
    """
    if base_kernel is None:
        base_kernel = gpflow.kernels.SquaredExponential
    # unit variance, the output covariance carries the signal scale
    spatial = base_kernel(lengthscales=lengthscale, active_dims=[0, 1])
    return spatial * FreeFormCoregion(sigma, active_dims=[2])
