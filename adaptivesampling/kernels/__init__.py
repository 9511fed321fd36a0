# adaptivesampling/kernels/__init__.py
from .coregion import FreeFormCoregion, multi_output_kernel, full_covariance_matrix
import gpflow

from typing import Dict, Type
import inspect


# spatial base kernels; FreeFormCoregion needs sigma and is built by multi_output_kernel
KERNELS: Dict[str, Type[gpflow.kernels.Kernel]] = dict(inspect.getmembers(gpflow.kernels, inspect.isclass))


def get_kernel(kernel: str) -> Type[gpflow.kernels.Kernel]:
    """
    Retrieves a Kernel class from the `KERNELS` dictionary based on its string name.

    Args:
        kernel (str): The name of the kernel to retrieve. Includes all available
                      kernels in gpflow, e.g., 'SquaredExponential', 'Matern52'.

    Returns:
        Type[Kernel]: The kernel class corresponding to the provided kernel name.

    Raises:
        KeyError: If the provided `kernel` name does not exist in the `KERNELS` dictionary.

    Usage:
        ```python
        from adaptivesampling.kernels import get_kernel, multi_output_kernel

        # spatial part of the belief model kernel
        Matern = get_kernel('Matern52')
        kernel = multi_output_kernel([1.0, 0.5, 0.2], lengthscale=0.3, base_kernel=Matern)
        ```
    """
    if kernel not in KERNELS:
        raise KeyError(f"Kernel '{kernel}' not found. Available options: {list(KERNELS.keys())}")
    return KERNELS[kernel]
