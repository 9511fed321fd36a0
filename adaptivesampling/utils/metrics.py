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

import numpy as np
from typing import Dict, Sequence


def get_rmse(y_pred: np.ndarray, y_test: np.ndarray) -> float:
    """
    Computes the Root Mean Square Error (RMSE) between predicted and ground truth values.

    Args:
        y_pred (np.ndarray): (n,); NumPy array of predicted values.
        y_test (np.ndarray): (n,); NumPy array of ground truth values.

    Returns:
        float: The computed RMSE.

    Usage:
        ```python
        predictions = np.array([1.1, 2.2, 3.3])
        ground_truth = np.array([1.0, 2.0, 3.0])
        rmse_value = get_rmse(predictions, ground_truth)
        ```
    """
    error = y_pred - y_test
    return float(np.sqrt(np.mean(np.square(error))))


def get_smse(y_pred: np.ndarray, y_test: np.ndarray, var: np.ndarray) -> float:
    """
    Computes the Standardized Mean Square Error (SMSE), the mean of the
    squared errors each divided by the predicted variance.

    Args:
        y_pred (np.ndarray): (n,); NumPy array of predicted values.
        y_test (np.ndarray): (n,); NumPy array of ground truth values.
        var (np.ndarray): (n,); NumPy array of predicted variances.

    Returns:
        float: The computed SMSE value.

    Raises:
        ValueError: If `var` contains zero or negative values.
    """
    if np.any(var <= 0):
        raise ValueError(
            "Predicted variance (var) must be strictly positive for SMSE calculation."
        )

    error = y_pred - y_test
    return float(np.mean(np.square(error) / var))


def get_nlpd(y_pred: np.ndarray, y_test: np.ndarray, var: np.ndarray) -> float:
    """
    Computes the Negative Log Predictive Density (NLPD) of the ground truth
    under Gaussian predictions. Lower is better.

    Args:
        y_pred (np.ndarray): (n,); NumPy array of predicted mean values.
        y_test (np.ndarray): (n,); NumPy array of ground truth values.
        var (np.ndarray): (n,); NumPy array of predicted variances.

    Returns:
        float: The computed NLPD value.

    Raises:
        ValueError: If `var` contains zero or negative values.
    """
    if np.any(var <= 0):
        raise ValueError(
            "Predicted variance (var) must be strictly positive for NLPD calculation."
        )

    error = y_pred - y_test
    nlpd_terms = 0.5 * np.log(
        2 * np.pi) + 0.5 * np.log(var) + 0.5 * np.square(error) / var
    return float(np.mean(nlpd_terms))


def calc_metrics(mission, beliefs: Sequence, quantity: int = 0,
                 min_variance: float = 1e-12) -> Dict[str, np.ndarray]:
    """
    Scores every belief model of a mission against the ground truth map of
    one quantity, over the free cells of the occupancy map.

    Args:
        mission (Mission): Mission whose sampler holds ground truth maps (e.g. `MapsSampler`)
        beliefs (Sequence[BeliefModel]): Belief history returned by the mission
        quantity (int): Quantity to score
        min_variance (float): Floor on predicted variances for the SMSE and NLPD

    Returns:
        Dict[str, np.ndarray]: `rmse`, `smse`, `mean_std` and `nlpd`, one value
                               per belief model

    Raises:
        ValueError: If the sampler does not expose ground truth maps.
    """
    if not hasattr(mission.sampler, 'maps'):
        raise ValueError("Metrics need a sampler with ground truth maps")
    ground_truth = mission.sampler.maps[quantity]
    occupancy = mission.occupancy

    points = [p for p in occupancy.points() if not occupancy.is_occupied(p)]
    truth = np.array([ground_truth(p) for p in points], dtype=float)
    inputs = [(p, quantity) for p in points]

    metrics = {'rmse': [], 'smse': [], 'mean_std': [], 'nlpd': []}
    for belief in beliefs:
        mean, std = belief(inputs)
        var = np.maximum(np.square(std), min_variance)
        metrics['rmse'].append(get_rmse(mean, truth))
        metrics['smse'].append(get_smse(mean, truth, var))
        metrics['mean_std'].append(float(np.mean(std)))
        metrics['nlpd'].append(get_nlpd(mean, truth, var))
    return {k: np.array(v) for k, v in metrics.items()}
