"""
InertialCalibrator operator.

Online bias and gravity-scale estimation over a stationary warm-up window.
Means and diagonal variances are accumulated one sample at a time; once the
sample threshold is reached the state is frozen until reset.

Update (per sample, independently for accel and gyro):
    N <- N + 1
    mean <- mean + (x - mean) / N
    var  <- var * (N-1)/N + (x - mean) * (x - mean) * (N-1)/N^2
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from lio_preprocess.common import constants
from lio_preprocess.common.measurements import InertialSample

_logger = logging.getLogger(__name__)


# =============================================================================
# State
# =============================================================================


def _vec3(values) -> np.ndarray:
    return np.array(values, dtype=np.float64).reshape(3)


@dataclass
class CalibrationState:
    """Running calibration accumulator."""
    count: int = 0
    mean_accel: np.ndarray = field(default_factory=lambda: _vec3(constants.CALIBRATION_MEAN_ACC_PRIOR))
    mean_gyro: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    var_accel: np.ndarray = field(
        default_factory=lambda: np.full(3, constants.CALIBRATION_VARIANCE_PRIOR, dtype=np.float64)
    )
    var_gyro: np.ndarray = field(
        default_factory=lambda: np.full(3, constants.CALIBRATION_VARIANCE_PRIOR, dtype=np.float64)
    )
    gravity_scale: float = constants.GRAVITY_SCALE_PRIOR
    zero_bias_gyro: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    zero_bias_accel: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    complete: bool = False

    def to_dict(self) -> dict:
        return {
            "count": int(self.count),
            "mean_accel": self.mean_accel.tolist(),
            "mean_gyro": self.mean_gyro.tolist(),
            "var_accel": self.var_accel.tolist(),
            "var_gyro": self.var_gyro.tolist(),
            "gravity_scale": float(self.gravity_scale),
            "zero_bias_gyro": self.zero_bias_gyro.tolist(),
            "zero_bias_accel": self.zero_bias_accel.tolist(),
            "complete": bool(self.complete),
        }


# =============================================================================
# Calibrator
# =============================================================================


class InertialCalibrator:
    """
    Stationary warm-up calibrator.

    Example usage:
        calib = InertialCalibrator(sample_threshold=50)
        calib.seed(first_group.imu[-1])
        for group in later_groups:
            if calib.fold(group.imu):
                break  # calib.state.zero_bias_gyro, calib.state.gravity_scale ready
    """

    def __init__(
        self,
        sample_threshold: int = constants.CALIBRATION_SAMPLE_THRESHOLD_DEFAULT,
        gravity_norm_floor: float = constants.GRAVITY_NORM_FLOOR,
    ):
        if int(sample_threshold) < 1:
            raise ValueError(f"sample_threshold must be >= 1, got {sample_threshold}")
        if float(gravity_norm_floor) <= 0.0:
            raise ValueError(f"gravity_norm_floor must be > 0, got {gravity_norm_floor}")
        self.sample_threshold = int(sample_threshold)
        self.gravity_norm_floor = float(gravity_norm_floor)
        self.state = CalibrationState()

    @property
    def complete(self) -> bool:
        return self.state.complete

    def seed(self, sample: InertialSample) -> None:
        """Seed the means from one sample; the count stays at zero."""
        if self.state.complete:
            return
        self.state.mean_accel = np.array(sample.accel, dtype=np.float64)
        self.state.mean_gyro = np.array(sample.gyro, dtype=np.float64)
        self.state.gravity_scale = float(np.linalg.norm(sample.accel))
        self.state.count = 0

    def fold(self, samples: Iterable[InertialSample]) -> bool:
        """
        Accumulate samples; finalize if the threshold is reached.

        Returns:
            True if calibration is complete after this call
        """
        st = self.state
        if st.complete:
            return True

        for sample in samples:
            st.count += 1
            n = float(st.count)
            st.mean_accel, st.var_accel = _welford_step(st.mean_accel, st.var_accel, sample.accel, n)
            st.mean_gyro, st.var_gyro = _welford_step(st.mean_gyro, st.var_gyro, sample.gyro, n)

        if st.count >= self.sample_threshold:
            self._finalize()
        else:
            progress = 100.0 * st.count / self.sample_threshold
            _logger.info(f"InertialCalibrator: initializing {progress:.1f}%")
        return st.complete

    def _finalize(self) -> None:
        st = self.state
        acc_norm = float(np.linalg.norm(st.mean_accel))
        st.gravity_scale = 1.0 / max(acc_norm, self.gravity_norm_floor)
        st.zero_bias_gyro = st.mean_gyro.copy()
        st.complete = True
        _logger.info(
            f"InertialCalibrator: done after {st.count} samples, "
            f"gravity_scale={st.gravity_scale:.6f}, "
            f"bias_gyro=[{st.zero_bias_gyro[0]:.6f}, {st.zero_bias_gyro[1]:.6f}, {st.zero_bias_gyro[2]:.6f}], "
            f"cov_acc=[{st.var_accel[0]:.6f}, {st.var_accel[1]:.6f}, {st.var_accel[2]:.6f}], "
            f"cov_gyr=[{st.var_gyro[0]:.6f}, {st.var_gyro[1]:.6f}, {st.var_gyro[2]:.6f}]"
        )

    def reset(self) -> None:
        """Restore the initial accumulator."""
        self.state = CalibrationState()


def _welford_step(mean: np.ndarray, var: np.ndarray, x: np.ndarray, n: float):
    mean = mean + (np.asarray(x, dtype=np.float64) - mean) / n
    d = np.asarray(x, dtype=np.float64) - mean
    var = var * (n - 1.0) / n + d * d * (n - 1.0) / (n * n)
    return mean, var
