"""
Per-scan operators.

- calibration: stationary bias / gravity-scale estimation
- gyro_integration: diagnostic cumulative-orientation track
- deskew: piecewise exponential-map scan undistortion
"""

from lio_preprocess.backend.operators.calibration import CalibrationState, InertialCalibrator
from lio_preprocess.backend.operators.gyro_integration import (
    GyroIntegrator,
    OrientationTrack,
    interpolate_boundary_sample,
)
from lio_preprocess.backend.operators.deskew import DeskewResult, ScanUndistorter

__all__ = [
    "CalibrationState",
    "InertialCalibrator",
    "GyroIntegrator",
    "OrientationTrack",
    "interpolate_boundary_sample",
    "DeskewResult",
    "ScanUndistorter",
]
