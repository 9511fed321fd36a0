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

"""Provides a grid map addressable by continuous coordinates, along with
helpers to build simulated ground truth fields
"""

import numpy as np
from typing import List, Sequence, Tuple


class Map:
    """A 2D grid of values spanning a rectangular region.

    The first array axis runs along x and the second along y, so `data[i, j]`
    holds the value at `lower + (i, j) * resolution`. Grid corners coincide
    with the region bounds.

    Used both for occupancy (boolean data, `True` means blocked) and for
    ground truth fields.

    Args:
        data (ndarray): (nx, ny); Grid values
        lower (array-like): (2,); Lower bounds of the region
        upper (array-like): (2,); Upper bounds of the region
    """
    def __init__(self, data, lower=(0.0, 0.0), upper=(1.0, 1.0)):
        self.data = np.asarray(data)
        if self.data.ndim != 2:
            raise ValueError(f"Map data must be 2D, got shape {self.data.shape}")
        self.lower = np.asarray(lower, dtype=float)
        self.upper = np.asarray(upper, dtype=float)
        if np.any(self.upper <= self.lower):
            raise ValueError(f"Upper bounds {self.upper} must exceed lower bounds {self.lower}")

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.lower, self.upper

    @property
    def resolution(self) -> np.ndarray:
        """Distance between neighbouring cell centres along each axis."""
        cells = np.maximum(np.array(self.shape) - 1, 1)
        return (self.upper - self.lower) / cells

    def point_to_cell(self, loc) -> Tuple[int, int]:
        """Index of the cell nearest to a location, clipped to the grid."""
        idx = np.rint((np.asarray(loc, dtype=float) - self.lower) / self.resolution)
        idx = np.clip(idx, 0, np.array(self.shape) - 1).astype(int)
        return int(idx[0]), int(idx[1])

    def cell_to_point(self, cell) -> Tuple[float, float]:
        point = self.lower + np.asarray(cell, dtype=float) * self.resolution
        return float(point[0]), float(point[1])

    def points(self) -> np.ndarray:
        """(nx*ny, 2); Locations of every cell in row-major cell order."""
        _, points = generate_axes(self.lower, self.upper, self.shape)
        return points

    def is_occupied(self, loc) -> bool:
        return bool(self.data[self.point_to_cell(loc)])

    def __call__(self, loc):
        return self.data[self.point_to_cell(loc)]

    def __repr__(self):
        return f"Map(shape={self.shape}, lower={self.lower.tolist()}, upper={self.upper.tolist()})"


def generate_axes(lower, upper, dims: Sequence[int]) -> Tuple[List[np.ndarray], np.ndarray]:
    """
    Generates evenly spaced axes over a region and the grid of points they span.

    Args:
        lower (array-like): (2,); Lower bounds of the region
        upper (array-like): (2,); Upper bounds of the region
        dims (Sequence[int]): Number of points along each axis

    Returns:
        axes (List[ndarray]): One 1D array per axis
        points (ndarray): (prod(dims), 2); Grid points, first axis varying slowest

    Usage:
        ```python
        axes, points = generate_axes([0, 0], [1, 1], (20, 20))
        ```
    """
    axes = [np.linspace(lo, hi, int(n)) for lo, hi, n in zip(lower, upper, dims)]
    grid = np.meshgrid(*axes, indexing='ij')
    points = np.stack([g.reshape(-1) for g in grid], axis=-1)
    return axes, points


def normalize(a: np.ndarray) -> np.ndarray:
    """Rescales an array to [0, 1], ignoring NaN values."""
    a = np.asarray(a, dtype=float)
    lo, hi = np.nanmin(a), np.nanmax(a)
    return (a - lo) / (hi - lo)


class Peak:
    """A Gaussian bump with the given centre, covariance and height."""
    def __init__(self, mean, cov, height: float = 1.0):
        self.mean = np.asarray(mean, dtype=float)
        self.cov = np.atleast_2d(np.asarray(cov, dtype=float))
        self.height = float(height)
        self._precision = np.linalg.inv(self.cov)

    def __call__(self, points: np.ndarray) -> np.ndarray:
        diff = np.atleast_2d(points) - self.mean
        dist = np.einsum('ni,ij,nj->n', diff, self._precision, diff)
        return self.height * np.exp(-0.5 * dist)


class GaussGroundTruth:
    """
    Simulated ground truth built as the sum of Gaussian peaks.

    Args:
        peaks (List[Peak]): Peaks making up the field

    Usage:
        ```python
        ggt = GaussGroundTruth([Peak([0.3, 0.3], 0.03*np.eye(2), 1.0),
                                Peak([0.8, 0.7], 0.008*np.eye(2), 0.4)])
        _, points = generate_axes([0, 0], [1, 1], (100, 100))
        field = Map(ggt(points).reshape(100, 100), [0, 0], [1, 1])
        ```
    """
    def __init__(self, peaks: List[Peak]):
        self.peaks = list(peaks)

    def __call__(self, points: np.ndarray) -> np.ndarray:
        points = np.atleast_2d(np.asarray(points, dtype=float))
        return np.sum([peak(points) for peak in self.peaks], axis=0)
