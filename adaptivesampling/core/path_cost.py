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

"""Provides the travel cost from one grid cell to every other cell
"""

from typing import Tuple

import numpy as np
from skimage.graph import MCP_Geometric


class PathCost:
    """Shortest path costs from a start cell over an occupancy grid.

    A single search over the 8-connected grid is run when the object is
    created; calls only look up the result. An axial step costs the grid
    resolution along that axis and a diagonal step the corresponding
    Euclidean length. Occupied cells cannot be entered.

    Targets that cannot be reached (blocked off, occupied, outside the
    grid, or an occupied start) cost `inf`.

    Args:
        start (Tuple[int, int]): Start cell index
        occupancy (ndarray): (nx, ny); Boolean grid, True where blocked
        resolution (array-like): (2,); Cell spacing along each axis

    Usage:
        ```python
        occupancy = np.zeros((11, 11), dtype=bool)
        occupancy[5, :10] = True
        path_cost = PathCost((0, 0), occupancy, (0.1, 0.1))
        path_cost((10, 0))  # around the wall
        ```
    """
    def __init__(self, start: Tuple[int, int], occupancy: np.ndarray, resolution):
        occupancy = np.asarray(occupancy, dtype=bool)
        self.start = tuple(int(i) for i in start)
        self.costs = np.full(occupancy.shape, np.inf)

        if not self._inside(self.start) or occupancy[self.start]:
            return

        weights = np.where(occupancy, np.inf, 1.0)
        sampling = tuple(float(r) for r in np.broadcast_to(resolution, (occupancy.ndim,)))
        mcp = MCP_Geometric(weights, fully_connected=True, sampling=sampling)
        costs, _ = mcp.find_costs([self.start])
        costs = np.asarray(costs, dtype=float)
        costs[occupancy] = np.inf
        self.costs = costs

    def _inside(self, cell) -> bool:
        return all(0 <= c < n for c, n in zip(cell, self.costs.shape))

    def __call__(self, cell: Tuple[int, int]) -> float:
        cell = tuple(int(i) for i in cell)
        if not self._inside(cell):
            return np.inf
        return float(self.costs[cell])
