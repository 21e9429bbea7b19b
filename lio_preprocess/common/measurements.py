"""
Measurement types shared by the synchronizer, operators, and pipeline.

Scans are stored column-wise (points / offsets / intensities arrays) so the
undistorter can rotate whole segments at once; ScanPoint is the per-point view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

import numpy as np

from lio_preprocess.common import constants


class CompensationDirection(str, Enum):
    """Reference frame the undistorter compensates into."""
    FORWARD = "forward"  # scan-START frame
    BACKWARD = "backward"  # scan-END frame


def _frozen_vec3(v, name: str) -> np.ndarray:
    arr = np.array(v, dtype=np.float64).reshape(-1)
    if arr.shape[0] != 3:
        raise ValueError(f"{name} must be a 3-vector, got shape {arr.shape}")
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class InertialSample:
    """Single inertial reading. Immutable once created."""
    stamp: float  # Timestamp in seconds
    gyro: np.ndarray  # Angular velocity (3,) rad/s
    accel: np.ndarray  # Linear acceleration (3,)

    def __post_init__(self):
        object.__setattr__(self, "stamp", float(self.stamp))
        object.__setattr__(self, "gyro", _frozen_vec3(self.gyro, "gyro"))
        object.__setattr__(self, "accel", _frozen_vec3(self.accel, "accel"))


@dataclass
class ScanPoint:
    """Single lidar return."""
    position: np.ndarray  # (3,)
    offset_ms: float  # Offset from scan capture stamp (milliseconds)
    intensity: float = 0.0


@dataclass
class Scan:
    """
    One lidar capture.

    Columns share their first dimension N. Row order is the point order;
    the undistorter sorts by offset before use (see sorted_by_offset).
    """
    stamp: float
    points: np.ndarray  # (N, 3)
    offsets_ms: np.ndarray  # (N,)
    intensities: Optional[np.ndarray] = None  # (N,)

    def __post_init__(self):
        self.stamp = float(self.stamp)
        self.points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        self.offsets_ms = np.asarray(self.offsets_ms, dtype=np.float64).reshape(-1)
        n = self.points.shape[0]
        if self.intensities is None:
            self.intensities = np.zeros(n, dtype=np.float64)
        else:
            self.intensities = np.asarray(self.intensities, dtype=np.float64).reshape(-1)
        if self.offsets_ms.shape[0] != n or self.intensities.shape[0] != n:
            raise ValueError(
                f"Scan columns disagree: points={n}, offsets={self.offsets_ms.shape[0]}, "
                f"intensities={self.intensities.shape[0]}"
            )

    @classmethod
    def from_points(cls, stamp: float, points: Iterable[ScanPoint]) -> "Scan":
        """Build a scan from per-point records."""
        points = list(points)
        if not points:
            return cls(stamp=stamp, points=np.zeros((0, 3)), offsets_ms=np.zeros(0))
        return cls(
            stamp=stamp,
            points=np.array([p.position for p in points], dtype=np.float64),
            offsets_ms=np.array([p.offset_ms for p in points], dtype=np.float64),
            intensities=np.array([p.intensity for p in points], dtype=np.float64),
        )

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def point(self, i: int) -> ScanPoint:
        """Per-point view (copy) of row i."""
        return ScanPoint(
            position=self.points[i].copy(),
            offset_ms=float(self.offsets_ms[i]),
            intensity=float(self.intensities[i]),
        )

    @property
    def end_time(self) -> float:
        """Capture stamp plus the largest point offset (order independent)."""
        if len(self) == 0:
            return self.stamp
        return self.stamp + float(np.max(self.offsets_ms)) / constants.MS_PER_SEC

    @property
    def point_times(self) -> np.ndarray:
        """Absolute time of each point (seconds)."""
        return self.stamp + self.offsets_ms / constants.MS_PER_SEC

    def is_sorted(self) -> bool:
        return bool(np.all(np.diff(self.offsets_ms) >= 0.0))

    def sorted_by_offset(self) -> "Scan":
        """New scan with rows stably sorted by offset time ascending."""
        order = np.argsort(self.offsets_ms, kind="stable")
        return Scan(
            stamp=self.stamp,
            points=self.points[order].copy(),
            offsets_ms=self.offsets_ms[order].copy(),
            intensities=self.intensities[order].copy(),
        )

    def copy(self) -> "Scan":
        return Scan(
            stamp=self.stamp,
            points=self.points.copy(),
            offsets_ms=self.offsets_ms.copy(),
            intensities=self.intensities.copy(),
        )


@dataclass
class MeasurementGroup:
    """One scan plus the inertial samples covering its capture window."""
    scan: Optional[Scan]
    imu: List[InertialSample] = field(default_factory=list)

    @property
    def imu_start_time(self) -> float:
        return self.imu[0].stamp

    @property
    def imu_end_time(self) -> float:
        return self.imu[-1].stamp

    @property
    def stamps(self) -> np.ndarray:
        """Inertial timestamps as (K,) array."""
        return np.array([s.stamp for s in self.imu], dtype=np.float64)

    @property
    def gyro(self) -> np.ndarray:
        """Inertial angular velocities as (K, 3) array."""
        return np.array([s.gyro for s in self.imu], dtype=np.float64).reshape(-1, 3)

    def is_complete(self) -> bool:
        return self.scan is not None and len(self.imu) > 0


@dataclass
class KeyPose:
    """Rotation snapshot at one inertial sample within a scan."""
    offset_time: float  # Seconds since the group's first inertial stamp
    accel: np.ndarray  # Raw acceleration (3,)
    gyro: np.ndarray  # Raw angular velocity (3,)
    bias_accel: np.ndarray  # Placeholder, always zero (3,)
    bias_gyro: np.ndarray  # Gyro bias in use (3,)
    position: np.ndarray  # Placeholder, always zero (3,)
    rotation: np.ndarray  # (3, 3)


def make_key_pose(
    offset_time: float,
    sample: InertialSample,
    bias_gyro: np.ndarray,
    rotation: np.ndarray,
    bias_accel: Optional[np.ndarray] = None,
) -> KeyPose:
    """Build a KeyPose, copying every array so later mutation cannot leak in."""
    return KeyPose(
        offset_time=float(offset_time),
        accel=np.array(sample.accel, dtype=np.float64),
        gyro=np.array(sample.gyro, dtype=np.float64),
        bias_accel=(
            np.zeros(3, dtype=np.float64) if bias_accel is None
            else np.array(bias_accel, dtype=np.float64).reshape(3)
        ),
        bias_gyro=np.array(bias_gyro, dtype=np.float64).reshape(3),
        position=np.zeros(3, dtype=np.float64),
        rotation=np.array(rotation, dtype=np.float64).reshape(3, 3),
    )
