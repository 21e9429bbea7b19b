"""Pydantic parameter models for the LIO preprocessing core."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from lio_preprocess.common import constants
from lio_preprocess.common.measurements import CompensationDirection


class PreprocessParams(BaseModel):
    """Calibration, undistortion, and egress settings."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    calibration_sample_threshold: int = Field(constants.CALIBRATION_SAMPLE_THRESHOLD_DEFAULT, ge=1)
    gravity_norm_floor: float = Field(constants.GRAVITY_NORM_FLOOR, gt=0.0)

    # [x, y, z, rx, ry, rz], rotation vector in radians
    lidar_imu_extrinsic: List[float] = Field(
        default_factory=lambda: list(constants.LIDAR_IMU_EXTRINSIC_DEFAULT), min_length=6, max_length=6
    )

    compensation_direction: CompensationDirection = CompensationDirection(constants.COMPENSATION_DIRECTION_DEFAULT)
    publish_distorted: bool = constants.PUBLISH_DISTORTED_DEFAULT
    log_cycle_reports: bool = False
