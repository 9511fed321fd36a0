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

"""Provides the mission loop: sample, refit the belief, choose the next
location, repeat
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Tuple, Type, Union

import numpy as np

from .core.belief_models import BeliefModel, fit_belief_model, generate_belief_model
from .sample_costs import SampleCost, Weights, get_sample_cost
from .samples import History, Sample, as_location
from .selection import select_sample_location
from .utils.maps import Map

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoiseSpec:
    """Observation noise of a mission.

    Attributes:
        value (float): Standard deviation of the Gaussian noise added to every
                       observation
        learned (bool): If True the belief model learns its noise level,
                        otherwise it is fixed at `value`
    """
    value: float = 0.0
    learned: bool = True

    def __post_init__(self):
        if not np.isfinite(self.value) or self.value < 0:
            raise ValueError(f"Noise must be a finite non-negative number, got {self.value!r}")


@dataclass
class Mission:
    """
    Everything needed to run an adaptive sampling mission.

    Calling the mission runs it and returns the sample and belief histories.
    Each start location is sampled directly; after that every new location
    is chosen by minimizing the sample cost, until `num_samples` locations
    (start locations included) have been sampled. The belief is refit from
    scratch after every location, so the belief history holds one model per
    sampled location and the sample history one sample per location and
    quantity.

    Attributes:
        occupancy (Map): Occupancy map, True where blocked. Its bounds are the
                         bounds of the region
        sampler (Callable): Returns all quantity values at a location; `len`
                            gives the number of quantities
        num_samples (int): Number of locations to sample
        sample_cost_type (Union[str, Type[SampleCost]]): Sample cost class or its name
        weights (Weights): Weight record matching the sample cost
        start_locs (Sequence): Locations sampled before any optimization
        prior_samples (Sequence[Sample]): Samples available beforehand. Their
                                          quantity indices follow the sampler's
        noise (NoiseSpec): Observation noise
        fit_iterations (int): Iteration cap of the hyperparameter optimization
        selector_iterations (int): Number of particle swarm updates
        n_particles (int): Swarm size
        seed (int): Seeds the observation noise and the particle swarm
    """
    occupancy: Map
    sampler: Any
    num_samples: int
    sample_cost_type: Union[str, Type[SampleCost]] = 'EIGF'
    weights: Optional[Weights] = None
    start_locs: Sequence = ()
    prior_samples: Sequence[Sample] = ()
    noise: NoiseSpec = field(default_factory=NoiseSpec)
    fit_iterations: int = 1000
    selector_iterations: int = 100
    n_particles: int = 40
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.sample_cost_type, str):
            self.sample_cost_type = get_sample_cost(self.sample_cost_type)
        weights_type = self.sample_cost_type.weights_type
        if self.weights is None:
            self.weights = weights_type()
        if not isinstance(self.weights, weights_type):
            raise ValueError(f"{self.sample_cost_type.__name__} expects {weights_type.__name__}, "
                             f"got {type(self.weights).__name__}")
        self.start_locs = [as_location(loc) for loc in self.start_locs]
        if len(self.start_locs) == 0:
            raise ValueError("A mission needs at least one start location")
        self.prior_samples = tuple(self.prior_samples)
        num_quantities = len(self.sampler)
        for sample in self.prior_samples:
            if sample.quantity < num_quantities:
                raise ValueError(f"Prior sample quantity {sample.quantity} overlaps the "
                                 f"sampler's quantities 0..{num_quantities - 1}")

    @property
    def quantities(self):
        return list(range(len(self.sampler)))

    def observe(self, loc, rng: np.random.Generator) -> list:
        """Samples every quantity at a location, adding the mission's noise."""
        values = np.asarray(self.sampler(loc), dtype=float)
        if self.noise.value > 0:
            values = values + rng.normal(0.0, self.noise.value, values.shape)
        return [Sample((loc, q), y) for q, y in enumerate(values)]

    def _fit_kwargs(self) -> dict:
        if self.noise.learned:
            return dict(max_iterations=self.fit_iterations, learn_noise=True)
        return dict(max_iterations=self.fit_iterations, learn_noise=False,
                    noise=self.noise.value)

    def refit(self, samples: Sequence[Sample]) -> BeliefModel:
        return generate_belief_model(samples, self.prior_samples,
                                     self.occupancy.lower, self.occupancy.upper,
                                     **self._fit_kwargs())

    def prior_belief(self) -> Optional[BeliefModel]:
        """Belief fitted to the prior samples alone, or None without priors."""
        if len(self.prior_samples) == 0:
            return None
        return fit_belief_model(self.prior_samples,
                                self.occupancy.lower, self.occupancy.upper,
                                **self._fit_kwargs())

    def __call__(self,
                 visualizer: Optional[Callable] = None,
                 sleep_time: float = 0.0,
                 samples: Optional[History] = None,
                 beliefs: Optional[History] = None,
                 initial_belief: Optional[BeliefModel] = None) -> Tuple[History, History]:
        """
        Runs the mission.

        Args:
            visualizer (Callable): Called as `visualizer(beliefs[-1], samples, occupancy)`
                                   after every refit, for display only
            sleep_time (float): Pause in seconds after every refit
            samples (History): History to append samples to. A new one by default
            beliefs (History): History to append belief models to. A new one by default
            initial_belief (BeliefModel): Belief before any location is sampled. Fitted
                                          to the prior samples by default, if there are any

        Returns:
            samples (History): All samples taken
            beliefs (History): The initial belief, when there is one, followed by
                               the belief model after each sampled location
        """
        samples = History() if samples is None else samples
        beliefs = History() if beliefs is None else beliefs
        rng = np.random.default_rng(self.seed)
        lower, upper = self.occupancy.lower, self.occupancy.upper
        num_locations = 0

        if initial_belief is None:
            initial_belief = self.prior_belief()
        if initial_belief is not None:
            beliefs.append(initial_belief)

        def record(loc):
            samples.extend(self.observe(loc, rng))
            beliefs.append(self.refit(samples.snapshot()))
            logger.info("Sample %d/%d taken at (%.4f, %.4f)",
                        num_locations, self.num_samples, *loc)
            if visualizer is not None:
                visualizer(beliefs[-1], samples.snapshot(), self.occupancy)
            if sleep_time > 0:
                time.sleep(sleep_time)

        for loc in self.start_locs:
            num_locations += 1
            record(loc)

        while num_locations < self.num_samples:
            sample_cost = self.sample_cost_type(self.occupancy,
                                                samples.snapshot(),
                                                beliefs[-1],
                                                self.quantities,
                                                self.weights)
            loc = select_sample_location(sample_cost, lower, upper,
                                         n_particles=self.n_particles,
                                         max_iterations=self.selector_iterations,
                                         seed=rng)
            num_locations += 1
            record(loc)

        return samples, beliefs
