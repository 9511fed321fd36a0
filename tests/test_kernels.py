import gpflow
import numpy as np
import pytest

from adaptivesampling.kernels import FreeFormCoregion, get_kernel, multi_output_kernel
from adaptivesampling.kernels.coregion import (full_covariance_matrix,
                                               many_to_one_covariance_matrix,
                                               num_covariance_entries,
                                               num_many_to_one_entries)


class TestFullCovarianceMatrix:

    @pytest.mark.parametrize("num_outputs", [1, 2, 3, 5])
    def test_symmetric_positive_semidefinite(self, num_outputs):
        rng = np.random.default_rng(num_outputs)
        for _ in range(10):
            sigma = rng.normal(0, 3, num_covariance_entries(num_outputs))
            B = full_covariance_matrix(sigma)
            assert B.shape == (num_outputs, num_outputs)
            assert np.allclose(B, B.T)
            assert np.all(np.linalg.eigvalsh(B) >= -1e-10)

    def test_fills_lower_triangle_row_by_row(self):
        B = full_covariance_matrix([1.0, 2.0, 3.0])
        # L = [[1, 0], [2, 3]]
        assert np.allclose(B, [[1.0, 2.0], [2.0, 13.0]], atol=1e-6)

    def test_rejects_non_triangular_length(self):
        with pytest.raises(ValueError):
            full_covariance_matrix([1.0, 2.0])

    def test_many_to_one(self):
        sigma = np.arange(1.0, num_many_to_one_entries(3) + 1)
        B = many_to_one_covariance_matrix(sigma)
        assert B.shape == (3, 3)
        assert np.allclose(B, B.T)
        assert np.all(np.linalg.eigvalsh(B) >= -1e-10)
        with pytest.raises(ValueError):
            many_to_one_covariance_matrix([1.0, 2.0])


class TestKernels:

    def test_coregion_gathers_output_covariance(self):
        sigma = [1.0, 0.5, 0.3]
        B = full_covariance_matrix(sigma)
        kernel = FreeFormCoregion(sigma)
        X = np.array([[0.0], [1.0], [1.0]])
        K = kernel(X).numpy()
        assert np.allclose(K, B[np.ix_([0, 1, 1], [0, 1, 1])])
        assert np.allclose(kernel(X, full_cov=False).numpy(), np.diag(B)[[0, 1, 1]])
        assert kernel.output_dim == 2

    def test_multi_output_kernel(self):
        sigma = [1.0, 0.5, 0.3]
        B = full_covariance_matrix(sigma)
        kernel = multi_output_kernel(sigma, lengthscale=0.2)
        X = np.array([[0.1, 0.1, 0.0],
                      [0.1, 0.1, 1.0],
                      [0.3, 0.1, 0.0]])
        K = kernel(X).numpy()
        assert K[0, 1] == pytest.approx(B[0, 1])
        assert K[0, 2] == pytest.approx(B[0, 0] * np.exp(-0.5 * 0.2**2 / 0.2**2))

    def test_get_kernel(self):
        assert get_kernel('SquaredExponential') is gpflow.kernels.SquaredExponential
        with pytest.raises(KeyError):
            get_kernel('NotAKernel')

    def test_coregion_is_not_a_base_kernel(self):
        with pytest.raises(KeyError):
            get_kernel('FreeFormCoregion')
