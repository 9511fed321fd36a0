"""
AdaptiveSampling: GP-based Adaptive Sampling Tools

Software Suite for choosing where a mobile sensor should sample next.

The library includes python code for the following:
- Multi-output Gaussian process belief models (simple and split)
- Sample-cost functions that trade off belief, travel and redundancy
- Grid path costs around obstacles
- Particle swarm selection of the next sample location
- The mission loop that ties them together

"""

__version__ = "0.3.0"
__author__ = 'AdaptiveSampling Contributors'

from .samples import Sample, History, MapsSampler, UserSampler, take_samples
from .core.belief_models import (BeliefModelSimple, BeliefModelSplit,
                                 BeliefModelFittingError, Hyperparameters,
                                 generate_belief_model, correlations)
from .sample_costs import get_sample_cost, SAMPLE_COSTS
from .selection import select_sample_location
from .missions import Mission, NoiseSpec
