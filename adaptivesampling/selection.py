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

"""Provides the particle swarm used to pick the next sample location
"""

import logging
from typing import Callable, Optional, Union

import numpy as np
from pyswarms.single import GlobalBestPSO

from .samples import Location

logger = logging.getLogger(__name__)

# Clerc's constriction coefficients
PSO_OPTIONS = {'c1': 1.49618, 'c2': 1.49618, 'w': 0.7298}

# stands in for infinite costs inside the swarm, above every finite cost
INFEASIBLE = np.finfo(float).max


def swarm_objective(cost_fn: Callable) -> Callable:
    """
    Vectorizes a location cost for the swarm, which evaluates all particles
    at once. Infinite and NaN costs become `INFEASIBLE`, so a particle's best
    position only moves to a feasible location once one is found.

    Args:
        cost_fn (Callable): Maps a (2,) array to a scalar cost

    Returns:
        Callable: Maps an (n, 2) array of particle positions to (n,) costs
    """
    def objective(X: np.ndarray) -> np.ndarray:
        costs = np.array([cost_fn(x) for x in X], dtype=float)
        costs[~np.isfinite(costs)] = INFEASIBLE
        return costs
    return objective


def select_sample_location(sample_cost: Callable, lower, upper,
                           n_particles: int = 40,
                           max_iterations: int = 100,
                           seed: Optional[Union[int, np.random.Generator]] = None,
                           verbose: bool = False) -> Location:
    """
    Chooses the next sample location by minimizing a sample cost with a
    global best particle swarm. The first particle starts in the middle of
    the region, the others uniformly at random, and positions are clipped to
    the bounds.

    pyswarms draws its random numbers from numpy's global generator; when a
    seed is given that generator is seeded from it.

    Args:
        sample_cost (Callable): Maps a location to its cost, lower is better
        lower (array-like): (2,); Lower bounds of the region
        upper (array-like): (2,); Upper bounds of the region
        n_particles (int): Swarm size
        max_iterations (int): Number of swarm updates
        seed (Union[int, np.random.Generator]): Random seed or generator
        verbose (bool): If True, show the swarm's progress bar

    Returns:
        Location: The location with the lowest cost found. The midpoint when
                  no location with a finite cost was found.

    Usage:
        ```python
        loc = select_sample_location(lambda x: np.sum((x - 0.3)**2), [0, 0], [1, 1], seed=0)
        ```
    """
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    loc0 = (upper - lower) / 2 + lower
    span = float(np.max(upper - lower))

    rng = np.random.default_rng(seed)
    if seed is not None:
        np.random.seed(int(rng.integers(2**32 - 1)))
    init_pos = rng.uniform(lower, upper, (n_particles, len(lower)))
    init_pos[0] = loc0

    optimizer = GlobalBestPSO(n_particles=n_particles,
                              dimensions=len(lower),
                              options=PSO_OPTIONS,
                              bounds=(lower, upper),
                              bh_strategy='nearest',
                              velocity_clamp=(-span, span),
                              init_pos=init_pos)
    cost, loc = optimizer.optimize(swarm_objective(sample_cost),
                                   iters=max_iterations,
                                   verbose=verbose)

    if cost >= INFEASIBLE:
        logger.warning("No location with a finite sample cost was found; returning %s", loc0)
        loc = loc0
    logger.debug("Selected sample location %s with cost %.6g", loc, cost)
    return float(loc[0]), float(loc[1])
