"""
SO(3) geometry for gyro integration and scan undistortion.

Rotations are 3x3 matrices. Angular velocities are rad/s 3-vectors; the
exponential map takes (omega, dt) rather than a pre-multiplied rotation
vector so the near-zero guard is applied to the angular rate itself.

Numerical Policy:
    EXP_OMEGA_EPSILON = 1e-7: below this |omega| the axis cannot be
    normalized reliably, so Exp returns the identity exactly.

    Composed products of Exp results are NOT re-orthonormalized here.
    Callers that chain many rotations accept the resulting drift.

References:
- Barfoot (2017): State Estimation for Robotics
- Sola et al. (2018): A micro Lie theory for state estimation
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from lio_preprocess.common import constants


# =============================================================================
# Hat operator
# =============================================================================


def skew(v: np.ndarray) -> np.ndarray:
    """Skew-symmetric matrix from 3-vector (hat operator)."""
    v = np.asarray(v, dtype=float).reshape(-1)
    if v.shape[0] != 3:
        raise ValueError(f"Expected 3-vector, got shape {v.shape}")
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0]
    ], dtype=float)


# =============================================================================
# Exponential map
# =============================================================================


def so3_exp(omega: np.ndarray, dt: float) -> np.ndarray:
    """
    Rotation produced by constant angular velocity omega over dt.

    Uses Rodrigues' formula: R = I + sin(θ)K + (1-cos(θ))K²
    with K = [omega/|omega|]_× and θ = |omega|·dt.

    Returns the identity when |omega| < EXP_OMEGA_EPSILON.
    """
    omega = np.asarray(omega, dtype=float).reshape(-1)
    if omega.shape[0] != 3:
        raise ValueError(f"Expected 3-vector angular velocity, got shape {omega.shape}")

    omega_norm = float(np.linalg.norm(omega))
    if omega_norm < constants.EXP_OMEGA_EPSILON:
        return np.eye(3, dtype=float)

    K = skew(omega / omega_norm)
    angle = omega_norm * float(dt)
    return np.eye(3, dtype=float) + math.sin(angle) * K + (1.0 - math.cos(angle)) * (K @ K)


def so3_exp_batch(omega: np.ndarray, dts: np.ndarray) -> np.ndarray:
    """
    Vectorized so3_exp for one angular velocity and many durations.

    Args:
        omega: Angular velocity (3,)
        dts: Durations (M,)

    Returns:
        (M, 3, 3) stack with stack[i] == so3_exp(omega, dts[i])
    """
    omega = np.asarray(omega, dtype=float).reshape(-1)
    dts = np.asarray(dts, dtype=float).reshape(-1)
    if omega.shape[0] != 3:
        raise ValueError(f"Expected 3-vector angular velocity, got shape {omega.shape}")

    eye = np.broadcast_to(np.eye(3, dtype=float), (dts.shape[0], 3, 3)).copy()
    omega_norm = float(np.linalg.norm(omega))
    if omega_norm < constants.EXP_OMEGA_EPSILON:
        return eye

    K = skew(omega / omega_norm)
    K2 = K @ K
    angles = omega_norm * dts
    return (
        eye
        + np.sin(angles)[:, None, None] * K[None, :, :]
        + (1.0 - np.cos(angles))[:, None, None] * K2[None, :, :]
    )


# =============================================================================
# Conversions
# =============================================================================


def rotvec_to_rotmat(rotvec: np.ndarray) -> np.ndarray:
    """Rotation vector (axis-angle, rad) to rotation matrix."""
    rotvec = np.asarray(rotvec, dtype=float).reshape(-1)
    if rotvec.shape[0] != 3:
        raise ValueError(f"Expected 3-vector rotation, got shape {rotvec.shape}")
    # Unit rate over theta seconds is the same rotation as the rotation vector
    return so3_exp(rotvec, 1.0)


def pose6_to_matrix(pose: Sequence[float]) -> np.ndarray:
    """
    Homogeneous 4x4 transform from [x, y, z, rx, ry, rz].

    Same ordering as the SE(3) 6-vectors used elsewhere in the codebase
    (translation first, rotation vector second).
    """
    pose = np.asarray(pose, dtype=float).reshape(-1)
    if pose.shape[0] != 6:
        raise ValueError(f"Expected 6D pose, got shape {pose.shape}")
    T = np.eye(4, dtype=float)
    T[:3, :3] = rotvec_to_rotmat(pose[3:6])
    T[:3, 3] = pose[:3]
    return T


def rotmat_to_euler_deg(R: np.ndarray) -> np.ndarray:
    """
    XYZ Euler angles (degrees) for logging.

    Diagnostic only: scipy projects a drifted (non-orthonormal) product onto
    the nearest rotation before extracting angles.
    """
    R = np.asarray(R, dtype=float)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")
    return Rotation.from_matrix(R).as_euler("xyz", degrees=True)


# =============================================================================
# Checks
# =============================================================================


def is_rotation_matrix(R: np.ndarray, atol: float = constants.ROTATION_CHECK_TOLERANCE) -> bool:
    """True if R is orthonormal with determinant +1 (within atol)."""
    R = np.asarray(R, dtype=float)
    if R.shape != (3, 3):
        return False
    if not np.allclose(R @ R.T, np.eye(3), atol=atol):
        return False
    return bool(abs(np.linalg.det(R) - 1.0) <= atol)
