"""
Common package for LIO preprocessing.

Shared measurement types, geometry, constants, and errors used by the
synchronizer and the backend.

Subpackages:
- geometry/: SO(3) operations
"""

from lio_preprocess.common.op_report import CycleReport
from lio_preprocess.common import constants

__all__ = [
    "CycleReport",
    "constants",
]
