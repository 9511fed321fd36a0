import numpy as np
import pytest

from adaptivesampling.missions import Mission
from adaptivesampling.samples import MapsSampler, UserSampler
from adaptivesampling.utils.metrics import calc_metrics, get_nlpd, get_rmse, get_smse


class TestMetrics:

    def test_rmse(self):
        assert get_rmse(np.array([1.0, 2.0]), np.array([1.0, 4.0])) == pytest.approx(np.sqrt(2))

    def test_variance_must_be_positive(self):
        y = np.zeros(2)
        with pytest.raises(ValueError):
            get_nlpd(y, y, np.array([1.0, 0.0]))
        with pytest.raises(ValueError):
            get_smse(y, y, np.array([-1.0, 1.0]))

    def test_nlpd_of_standard_normal(self):
        nlpd = get_nlpd(np.zeros(1), np.zeros(1), np.ones(1))
        assert nlpd == pytest.approx(0.5 * np.log(2 * np.pi))

    def test_smse_scales_by_variance(self):
        smse = get_smse(np.array([1.0, 0.0]), np.array([0.0, 2.0]), np.array([1.0, 4.0]))
        assert smse == pytest.approx(1.0)

    def test_calc_metrics(self, free_map, peak_field, simple_belief):
        mission = Mission(free_map, MapsSampler(peak_field), 2, start_locs=[(0.5, 0.5)])
        metrics = calc_metrics(mission, [simple_belief, simple_belief])
        assert set(metrics) == {'rmse', 'smse', 'mean_std', 'nlpd'}
        assert metrics['rmse'].shape == (2,)
        assert metrics['rmse'][0] == metrics['rmse'][1]
        assert np.all(metrics['mean_std'] > 0)
        assert np.all(metrics['smse'] >= 0) and np.all(np.isfinite(metrics['smse']))

    def test_calc_metrics_needs_ground_truth(self, free_map, simple_belief):
        mission = Mission(free_map, UserSampler(), 2, start_locs=[(0.5, 0.5)])
        with pytest.raises(ValueError):
            calc_metrics(mission, [simple_belief])
