"""CUDA knowledge base.

Contains curated information about toolkit releases, driver compatibility,
and GPU architectures.
"""

from cudamgr.knowledge.driver_matrix import get_driver_matrix, max_cuda_for_driver
from cudamgr.knowledge.gpu_matrix import get_gpu_matrix, lookup_gpu
from cudamgr.knowledge.releases import get_releases

__all__ = [
    "get_driver_matrix",
    "get_gpu_matrix",
    "get_releases",
    "lookup_gpu",
    "max_cuda_for_driver",
]
