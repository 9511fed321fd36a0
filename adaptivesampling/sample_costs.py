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

"""Provides the cost functions used to choose the next sample location.

Every cost is built from the occupancy map, the samples taken so far, the
current belief model, the sampled quantities and a weight record. Calling it
with a location returns a scalar where lower is better.
"""

from dataclasses import astuple, dataclass, fields
from typing import Dict, NamedTuple, Sequence, Type

import numpy as np
from sklearn.metrics import pairwise_distances

from .core.belief_models import BeliefModel, condition_belief_model
from .core.path_cost import PathCost
from .samples import Sample, as_location
from .utils.maps import Map, generate_axes


@dataclass(frozen=True)
class Weights:
    """Base class for weight records. Fields are matched in order with the
    values a sample cost computes."""
    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, (int, float, np.number)) or not np.isfinite(value):
                raise ValueError(f"Weight '{f.name}' must be a finite number, got {value!r}")
            object.__setattr__(self, f.name, float(value))


@dataclass(frozen=True)
class BasicWeights(Weights):
    mean: float = 1.0
    std: float = 1.0
    distance: float = 1.0
    proximity: float = 0.0


@dataclass(frozen=True)
class NormedWeights(Weights):
    mean: float = 1.0
    std: float = 1.0
    distance: float = 1.0


@dataclass(frozen=True)
class EIGFWeights(Weights):
    mean: float = 1.0
    std: float = 1.0
    distance: float = 1.0


class BasicValues(NamedTuple):
    mean: float
    std: float
    distance: float
    proximity: float


class NormedValues(NamedTuple):
    mean: float
    std: float
    distance: float


class EIGFValues(NamedTuple):
    mean: float
    std: float
    distance: float


class SampleCost:
    """
    Base class for sample costs. Subclasses implement `values`, which
    returns the named components of the cost at a location. By default they
    are combined linearly with the weights; a subclass may override `combine`.

    Locations on occupied cells always cost `inf`, as does a NaN result.

    Args:
        occupancy (Map): Occupancy map, True where blocked
        samples (Sequence[Sample]): Samples taken so far, the last one being the current location
        belief_model (BeliefModel): Current belief
        quantities (Sequence[int]): Quantities being sampled
        weights (Weights): Weight record of the type given by `weights_type`
    """
    weights_type: Type[Weights] = Weights

    def __init__(self,
                 occupancy: Map,
                 samples: Sequence[Sample],
                 belief_model: BeliefModel,
                 quantities: Sequence[int],
                 weights: Weights):
        if not isinstance(weights, self.weights_type):
            raise ValueError(f"{type(self).__name__} expects {self.weights_type.__name__}, "
                             f"got {type(weights).__name__}")
        if len(samples) == 0:
            raise ValueError(f"{type(self).__name__} needs at least one sample "
                             "to know the current location")
        self.occupancy = occupancy
        self.samples = tuple(samples)
        self.belief_model = belief_model
        self.quantities = list(quantities)
        self.weights = weights

        # travel is measured from the most recent sample
        start = occupancy.point_to_cell(self.samples[-1].location)
        self.path_cost = PathCost(start, occupancy.data, occupancy.resolution)

    def values(self, loc) -> tuple:
        raise NotImplementedError

    def combine(self, values: tuple) -> float:
        total = 0.0
        for w, v in zip(astuple(self.weights), values):
            # a zero weight switches its term off, even an infinite one
            if w != 0.0:
                total += w * v
        return total

    def __call__(self, loc) -> float:
        loc = as_location(loc)
        if self.occupancy.is_occupied(loc):
            return np.inf
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            cost = float(self.combine(self.values(loc)))
        return np.inf if np.isnan(cost) else cost

    def travel_cost(self, loc) -> float:
        return self.path_cost(self.occupancy.point_to_cell(loc))


class BasicSampleCost(SampleCost):
    """
    Combines belief mean and standard deviation, travel distance and
    proximity to previous samples:

    cost = - w1 μ - w2 σ + w3 τ + w4 P

    where `μ` and `σ` are averaged over the quantities and
    `P = Σ (r / d_i)³` over the distances `d_i` to previous samples, with `r`
    a quarter of the smallest side of the region.
    """
    weights_type = BasicWeights

    def __init__(self, occupancy, samples, belief_model, quantities, weights):
        super().__init__(occupancy, samples, belief_model, quantities, weights)
        self.radius = float(np.min(occupancy.upper - occupancy.lower)) / 4
        self.sample_locations = np.array([s.location for s in self.samples])

    def values(self, loc) -> BasicValues:
        mean, std = self.belief_model([(loc, q) for q in self.quantities])
        tau = self.travel_cost(loc)
        dists = pairwise_distances(self.sample_locations, [loc]).reshape(-1)
        with np.errstate(divide='ignore'):
            proximity = float(np.sum((self.radius / dists)**3))
        return BasicValues(-float(np.mean(mean)), -float(np.mean(std)), tau, proximity)


class NormedSampleCost(SampleCost):
    """
    Mean and standard deviation are divided by their largest value over the
    map before averaging across quantities, so quantities of different scale
    count equally:

    cost = - w1 mean(μ/μ_max) - w2 log(mean(σ/σ_max)) + w3 τ

    The maxima are computed once, over every grid cell, when the cost is created.
    """
    weights_type = NormedWeights

    def __init__(self, occupancy, samples, belief_model, quantities, weights):
        super().__init__(occupancy, samples, belief_model, quantities, weights)
        points = occupancy.points()
        self.mean_max = np.zeros(len(self.quantities))
        self.std_max = np.zeros(len(self.quantities))
        for i, q in enumerate(self.quantities):
            mean, std = belief_model([(p, q) for p in points])
            self.mean_max[i] = np.max(mean)
            self.std_max[i] = np.max(std)

    def values(self, loc) -> NormedValues:
        mean, std = self.belief_model([(loc, q) for q in self.quantities])
        mean_ave = float(np.mean(mean / self.mean_max))
        std_ave = float(np.mean(std / self.std_max))
        tau = self.travel_cost(loc)
        return NormedValues(-mean_ave, -np.log(std_ave), tau)


class EIGFSampleCost(SampleCost):
    """
    Expected improvement for global fit on quantity 0:

    cost = - w1 (μ(x) - y(x_c))² - w2 σ²(x) + w3 d(x)

    where `x_c` is the nearest sample of quantity 0 and `d` is `inf` on
    occupied cells and 0 elsewhere. Travel distance is not used.
    """
    weights_type = EIGFWeights

    def __init__(self, occupancy, samples, belief_model, quantities, weights):
        super().__init__(occupancy, samples, belief_model, quantities, weights)
        first = [s for s in self.samples if s.quantity == 0]
        if len(first) == 0:
            raise ValueError(f"{type(self).__name__} needs at least one sample of quantity 0")
        self.first_locations = np.array([s.location for s in first])
        self.first_values = np.array([s.y for s in first])

    def closest_value(self, loc) -> float:
        dists = pairwise_distances(self.first_locations, [loc]).reshape(-1)
        return float(self.first_values[np.argmin(dists)])

    def values(self, loc) -> EIGFValues:
        mean, std = self.belief_model((loc, 0))
        err = mean - self.closest_value(loc)
        d = np.inf if self.occupancy.is_occupied(loc) else 0.0
        return EIGFValues(-err**2, -std**2, d)


class DistScaledEIGFSampleCost(EIGFSampleCost):
    """
    EIGF scaled down by the travel distance normalised by the mean side of
    the region:

    cost = (- w1 (μ(x) - y(x_c))² - w2 σ²(x)) / (1 + β τ_norm²) + w3 d(x)

    `β` ramps from 0 toward 1 with the number of samples so the distance only
    matters once a few samples exist. `d` is `inf` where `τ` is.
    """
    def values(self, loc) -> EIGFValues:
        mean, std = self.belief_model((loc, 0))
        err = mean - self.closest_value(loc)

        tau = self.travel_cost(loc)
        tau_norm = tau / float(np.mean(self.occupancy.upper - self.occupancy.lower))
        d = np.inf if np.isinf(tau_norm) else 0.0

        n_scale = 2 / (1 + np.exp(1 - len(self.samples))) - 1
        with np.errstate(invalid='ignore'):
            d_scale = 1 / (1 + n_scale * tau_norm**2)
        if np.isnan(d_scale):
            # 0 * inf before any samples count
            d_scale = 1.0
        return EIGFValues(-err**2 * d_scale, -std**2 * d_scale, d)


class VarTraceSampleCost(SampleCost):
    """
    Total predictive variance of quantity 0 over a coarse test grid after a
    hypothetical sample at the candidate location. The model is conditioned
    again with the current hyperparameters for every call, so this is the
    most expensive cost.

    The hypothetical sample's value is a placeholder since only the variance
    is read back, and the variance does not depend on observed values.

    cost = w2 Σ σ²(test grid) + w3 d(x)

    with `d` infinite where the location cannot be reached.
    """
    weights_type = EIGFWeights
    test_grid = (20, 20)

    def __init__(self, occupancy, samples, belief_model, quantities, weights):
        super().__init__(occupancy, samples, belief_model, quantities, weights)
        _, self.test_points = generate_axes(occupancy.lower, occupancy.upper, self.test_grid)
        self.test_inputs = [(p, 0) for p in self.test_points]
        model = getattr(belief_model, 'current', belief_model)
        self.theta = model.theta
        self.jitter = model.jitter
        self.base_kernel = model.base_kernel

    def values(self, loc) -> EIGFValues:
        samples = [*self.samples, Sample((loc, 0), 0.0)]
        belief_model = condition_belief_model(samples, self.theta,
                                              self.jitter, self.base_kernel)
        _, std = belief_model(self.test_inputs)
        d = np.inf if np.isinf(self.travel_cost(loc)) else 0.0
        return EIGFValues(0.0, float(np.sum(std**2)), d)


SAMPLE_COSTS: Dict[str, Type[SampleCost]] = {
    'Basic': BasicSampleCost,
    'Normed': NormedSampleCost,
    'EIGF': EIGFSampleCost,
    'DistScaledEIGF': DistScaledEIGFSampleCost,
    'VarTrace': VarTraceSampleCost,
}


def get_sample_cost(sample_cost_name: str) -> Type[SampleCost]:
    """
    Retrieves a sample cost class by its string name.

    Args:
        sample_cost_name (str): The name of the sample cost (e.g., 'EIGF', 'Basic').

    Returns:
        Type[SampleCost]: The class of the requested sample cost.

    Raises:
        KeyError: If the name is not found in the registered SAMPLE_COSTS.

    Usage:
        ```python
        EIGF = get_sample_cost('EIGF')
        sample_cost = EIGF(occupancy, samples, belief_model, [0], EIGFWeights(1.0, 100.0, 1.0))
        sample_cost((0.4, 0.6))
        ```
    """
    if sample_cost_name not in SAMPLE_COSTS:
        raise KeyError(f"Sample cost '{sample_cost_name}' not found. "
                       f"Available options: {list(SAMPLE_COSTS.keys())}")
    return SAMPLE_COSTS[sample_cost_name]
