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

"""Provides the sample record, the samplers that produce observations and
the append-only history that missions accumulate samples and beliefs in
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

import numpy as np

Location = Tuple[float, float]
SampleInput = Tuple[Location, int]


def as_location(loc) -> Location:
    loc = np.asarray(loc, dtype=float).reshape(-1)
    if loc.shape != (2,):
        raise ValueError(f"A location must have two coordinates, got {loc.shape[0]}")
    return float(loc[0]), float(loc[1])


def is_sample_input(x: Any) -> bool:
    """True for a single `(location, quantity)` pair, False for a location or a list of inputs."""
    return (isinstance(x, tuple) and len(x) == 2
            and isinstance(x[1], (int, np.integer))
            and np.ndim(x[0]) == 1)


@dataclass(frozen=True)
class Sample:
    """One observation.

    Attributes:
        x (SampleInput): The sample input, a location and a quantity index
        y (float): The observed value
    """
    x: SampleInput
    y: float

    def __post_init__(self):
        loc, quantity = self.x
        object.__setattr__(self, 'x', (as_location(loc), int(quantity)))
        object.__setattr__(self, 'y', float(self.y))

    @property
    def location(self) -> Location:
        return self.x[0]

    @property
    def quantity(self) -> int:
        return self.x[1]


def take_samples(loc, sampler, quantities: Optional[Iterable[int]] = None) -> List[Sample]:
    """
    Observes a sampler at a location and wraps every value in a Sample.

    Args:
        loc (array-like): (2,); Location to sample
        sampler (callable): Returns all quantity values when called with a location,
                            or one value when called with a `(location, quantity)` pair
        quantities (Iterable[int]): Quantities to sample. Defaults to all of them,
                                    read in a single call to the sampler.

    Returns:
        List[Sample]: One sample per quantity
    """
    loc = as_location(loc)
    if quantities is None:
        return [Sample((loc, q), y) for q, y in enumerate(sampler(loc))]
    return [Sample((loc, q), sampler((loc, q))) for q in quantities]


class MapsSampler:
    """Samples ground truth values from a collection of maps, one map per quantity.

    Usage:
        ```python
        ss = MapsSampler(Map(np.zeros((5, 5))), Map(np.ones((5, 5))))
        ss((0.2, 0.75))       # [0.0, 1.0]
        ss(((0.2, 0.75), 1))  # 1.0
        ```
    """
    def __init__(self, *maps):
        if len(maps) == 1 and isinstance(maps[0], (list, tuple)):
            maps = tuple(maps[0])
        self.maps = tuple(maps)

    def __call__(self, x):
        if is_sample_input(x):
            loc, quantity = x
            return float(self.maps[quantity](loc))
        return [float(m(x)) for m in self.maps]

    def __len__(self):
        return len(self.maps)

    def __getitem__(self, i):
        return self.maps[i]

    def __iter__(self):
        return iter(self.maps)


class UserSampler:
    """A sampler that asks the operator to type one value per quantity.

    Args:
        quantities (Iterable[int]): Quantity indices the operator is asked for
    """
    def __init__(self, quantities: Iterable[int] = (0,)):
        self.quantities = list(quantities)

    def _ask(self, quantity: int) -> float:
        text = input(f"Enter the value for quantity {quantity}: ")
        try:
            return float(text)
        except ValueError:
            raise ValueError(f"Could not read a number for quantity {quantity} from {text!r}") from None

    def __call__(self, x):
        if is_sample_input(x):
            loc, quantity = x
            print(f"At location {as_location(loc)}")
            return self._ask(quantity)
        print(f"At location {as_location(x)}")
        return [self._ask(q) for q in self.quantities]

    def __len__(self):
        return len(self.quantities)


class History(Sequence):
    """An ordered, append-only record.

    Elements can be read, iterated and appended, but never replaced or
    removed. `snapshot` returns an immutable copy to hand to consumers
    that must not see later appends.
    """
    def __init__(self, items: Iterable = ()):
        self._items = list(items)

    def append(self, item) -> None:
        self._items.append(item)

    def extend(self, items: Iterable) -> None:
        self._items.extend(items)

    def snapshot(self) -> tuple:
        return tuple(self._items)

    def __getitem__(self, i):
        if isinstance(i, slice):
            return tuple(self._items[i])
        return self._items[i]

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return f"History({len(self._items)} items)"
