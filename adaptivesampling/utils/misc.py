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

import logging
from typing import Union

import numpy as np
import tensorflow as tf

# added to observation variances so covariance matrices stay invertible
SQRT_EPS = float(np.sqrt(np.finfo(float).eps))


def jitter_fn(cov: tf.Tensor, jitter: float = 1e-6) -> tf.Tensor:
    """
    Adds a small positive value (jitter) to the diagonal of a covariance matrix
    for numerical stability. This prevents issues with ill-conditioned matrices
    during computations like the Cholesky decomposition.

    Args:
        cov (tf.Tensor): The input covariance matrix. Expected to be a square matrix.
        jitter (float): The value to add to the diagonal. Defaults to 1e-6.

    Returns:
        tf.Tensor: The covariance matrix with jitter added to its diagonal.

    Usage:
        ```python
        cov_matrix = tf.constant([[1.0, 0.5], [0.5, 1.0]], dtype=tf.float64)
        # noise variance plus a tiny constant on the diagonal
        noisy_cov = jitter_fn(cov_matrix, jitter=0.01 + SQRT_EPS)
        ```
    """
    return tf.linalg.set_diag(cov, tf.linalg.diag_part(cov) + jitter)


def set_log_level(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Sets the level of the package logger and attaches a stderr handler if
    the logger has none yet. Handlers are never attached at import time.

    Args:
        level (Union[int, str]): Logging level, e.g. `logging.DEBUG` or `'INFO'`.

    Returns:
        logging.Logger: The `adaptivesampling` logger.
    """
    logger = logging.getLogger('adaptivesampling')
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
        logger.addHandler(handler)
    return logger
