"""
Geometry package for LIO preprocessing.

Usage:
    from lio_preprocess.common.geometry import so3_exp, so3_exp_batch, skew
"""

from __future__ import annotations

from lio_preprocess.common.geometry.so3_numpy import (
    skew,
    so3_exp,
    so3_exp_batch,
    rotvec_to_rotmat,
    pose6_to_matrix,
    rotmat_to_euler_deg,
    is_rotation_matrix,
)

__all__ = [
    "skew",
    "so3_exp",
    "so3_exp_batch",
    "rotvec_to_rotmat",
    "pose6_to_matrix",
    "rotmat_to_euler_deg",
    "is_rotation_matrix",
]
