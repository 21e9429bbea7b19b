"""
LIO preprocessing constants.

All magic numbers are centralized here with clear documentation.
"""

import math

# =============================================================================
# Calibration Constants
# =============================================================================

# Inertial samples folded into the stationary warm-up before calibration freezes
CALIBRATION_SAMPLE_THRESHOLD_DEFAULT = 50

# Floor on |mean_acc| before inverting it into a gravity scale
GRAVITY_NORM_FLOOR = 0.1

# Initial per-axis variance of the accel/gyro accumulators
CALIBRATION_VARIANCE_PRIOR = 0.1

# Initial mean acceleration (unit gravity, z-down) before any sample is seen
CALIBRATION_MEAN_ACC_PRIOR = (0.0, 0.0, -1.0)

# Gravity scale before calibration has produced an estimate
GRAVITY_SCALE_PRIOR = 1.0

# =============================================================================
# Numerical Stability Thresholds
# =============================================================================

# |omega| below this maps to identity in Exp(omega, dt)
EXP_OMEGA_EPSILON = 1e-7

# Denominator guard for boundary-sample interpolation weights
INTERPOLATION_EPSILON = 1e-9

# Tolerance used when checking R @ R.T == I and det(R) == 1
ROTATION_CHECK_TOLERANCE = 1e-9

# =============================================================================
# Time Constants
# =============================================================================

# Point offset times are delivered in milliseconds
MS_PER_SEC = 1000.0

# =============================================================================
# Extrinsic Defaults
# =============================================================================

# Lidar -> IMU extrinsic [x, y, z, rx, ry, rz] (rotation vector, rad):
# 180 deg yaw, zero translation
LIDAR_IMU_EXTRINSIC_DEFAULT = (0.0, 0.0, 0.0, 0.0, 0.0, math.pi)

# =============================================================================
# Pipeline Defaults
# =============================================================================

COMPENSATION_DIRECTION_DEFAULT = "backward"

# Attach the sorted pre-undistortion scan to each output
PUBLISH_DISTORTED_DEFAULT = True

# Consumer thread join timeout on shutdown (seconds)
CONSUMER_JOIN_TIMEOUT_SEC = 5.0
