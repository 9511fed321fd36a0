import numpy as np
import pytest

from adaptivesampling.core.path_cost import PathCost

RES = (0.1, 0.1)


@pytest.fixture
def grid():
    return np.zeros((11, 11), dtype=bool)


class TestPathCost:

    def test_free_grid(self, grid):
        path_cost = PathCost((0, 0), grid, RES)
        assert path_cost((0, 0)) == 0.0
        assert path_cost((0, 1)) == pytest.approx(0.1)
        assert path_cost((1, 0)) == pytest.approx(0.1)
        assert path_cost((1, 1)) == pytest.approx(np.sqrt(0.02))
        row = [path_cost((0, j)) for j in range(11)]
        assert np.all(np.diff(row) > 0)

    def test_wall_blocks(self, grid):
        grid[5, :] = True
        path_cost = PathCost((0, 0), grid, RES)
        assert np.isfinite(path_cost((4, 0)))
        assert path_cost((10, 0)) == np.inf
        assert path_cost((5, 3)) == np.inf

    def test_detour_around_gap(self, grid):
        grid[5, :10] = True
        path_cost = PathCost((0, 0), grid, RES)
        assert np.isfinite(path_cost((10, 0)))
        assert path_cost((10, 0)) > 1.0

    def test_occupied_start(self, grid):
        grid[0, 0] = True
        path_cost = PathCost((0, 0), grid, RES)
        assert np.all(np.isinf(path_cost.costs))
        assert path_cost((3, 3)) == np.inf

    def test_outside_grid(self, grid):
        path_cost = PathCost((0, 0), grid, RES)
        assert path_cost((11, 0)) == np.inf
        assert path_cost((-1, 2)) == np.inf
        assert np.all(np.isinf(PathCost((20, 0), grid, RES).costs))
