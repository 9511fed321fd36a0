import numpy as np
import pytest

from adaptivesampling.core.belief_models import Hyperparameters, condition_belief_model
from adaptivesampling.samples import Sample
from adaptivesampling.utils.maps import GaussGroundTruth, Map, Peak, generate_axes

LOWER = [0.0, 0.0]
UPPER = [1.0, 1.0]


@pytest.fixture
def free_map():
    return Map(np.zeros((21, 21), dtype=bool), LOWER, UPPER)


@pytest.fixture
def peak_field():
    """Single Gaussian peak of height 1 at the centre of the unit square."""
    _, points = generate_axes(LOWER, UPPER, (21, 21))
    ggt = GaussGroundTruth([Peak([0.5, 0.5], 0.02 * np.eye(2), 1.0)])
    return Map(ggt(points).reshape(21, 21), LOWER, UPPER)


@pytest.fixture
def theta():
    return Hyperparameters([1.0], lengthscale=0.2, noise=0.01)


@pytest.fixture
def few_samples(peak_field):
    locs = [(0.5, 0.5), (0.25, 0.25), (0.75, 0.25), (0.25, 0.75), (0.75, 0.75)]
    return [Sample((loc, 0), peak_field(loc)) for loc in locs]


@pytest.fixture
def simple_belief(few_samples, theta):
    return condition_belief_model(few_samples, theta)
