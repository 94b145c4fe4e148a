"""
Element-wise sum of K equal-length integer vectors on a CUDA device.

Three kernels compute the same result with different decompositions:

- sum:    one thread per output, unit-major thread assignment
- sum_O1: one thread per output, coalesced row reads
- sum_O2: blocks stage their K x block tile in shared memory
"""

from .api import VARIANTS, sum, sum_O1, sum_O2
from .config import KernelConfig
from .errors import AllocationError, KernelLaunchError, MultisumError, TransferError

__version__ = "0.1.0"

__all__ = [
    "sum",
    "sum_O1",
    "sum_O2",
    "VARIANTS",
    "KernelConfig",
    "MultisumError",
    "AllocationError",
    "TransferError",
    "KernelLaunchError",
]
