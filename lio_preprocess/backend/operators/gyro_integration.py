"""
GyroIntegrator operator.

Diagnostic cumulative-orientation track across scan boundaries. The track
starts at the previous scan's end (the synchronization anchor) with an
interpolated boundary sample, then right-composes midpoint gyro increments:

    R_k = R_{k-1} @ Exp(0.5 * (g_{k-1} + g_k), t_k - t_{k-1})

No bias is removed here; the track is logged, never consumed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from lio_preprocess.common import constants
from lio_preprocess.common.errors import PrecursorError
from lio_preprocess.common.geometry import so3_exp, rotmat_to_euler_deg
from lio_preprocess.common.measurements import InertialSample

_logger = logging.getLogger(__name__)


@dataclass
class OrientationTrack:
    """Per-scan list of (stamp, cumulative rotation) pairs."""
    stamps: List[float] = field(default_factory=list)
    rotations: List[np.ndarray] = field(default_factory=list)

    def append(self, stamp: float, rotation: np.ndarray) -> None:
        self.stamps.append(float(stamp))
        self.rotations.append(rotation)

    def latest(self) -> np.ndarray:
        if not self.rotations:
            return np.eye(3, dtype=np.float64)
        return self.rotations[-1]

    def __len__(self) -> int:
        return len(self.stamps)


def interpolate_boundary_sample(
    previous: InertialSample,
    first: InertialSample,
    anchor_time: float,
) -> InertialSample:
    """
    Linear inertial sample at anchor_time between previous and first.

    Weights are inverse time gaps: the closer sample dominates.
    """
    dt1 = float(anchor_time) - previous.stamp
    dt2 = first.stamp - float(anchor_time)
    denom = dt1 + dt2 + constants.INTERPOLATION_EPSILON
    w1 = dt2 / denom
    w2 = dt1 / denom
    return InertialSample(
        stamp=anchor_time,
        gyro=w1 * previous.gyro + w2 * first.gyro,
        accel=w1 * previous.accel + w2 * first.accel,
    )


class GyroIntegrator:
    """Rebuilds the orientation track for each scan."""

    def __init__(self):
        self.track = OrientationTrack()

    def integrate(
        self,
        samples: Sequence[InertialSample],
        anchor_time: Optional[float],
        anchor_sample: Optional[InertialSample],
    ) -> OrientationTrack:
        """
        Integrate one group's gyro samples from the anchor.

        Args:
            samples: Group inertial samples (non-empty, ascending)
            anchor_time: Previous scan end time
            anchor_sample: Last inertial sample of the previous group

        Returns:
            The rebuilt OrientationTrack (also kept on self.track)
        """
        if not samples:
            raise PrecursorError("GyroIntegrator: empty inertial sequence")
        if anchor_sample is None or anchor_time is None:
            raise PrecursorError("GyroIntegrator: missing synchronization anchor")

        self.track = OrientationTrack()
        last = interpolate_boundary_sample(anchor_sample, samples[0], anchor_time)
        self.track.append(last.stamp, np.eye(3, dtype=np.float64))

        for sample in samples:
            mean_gyro = 0.5 * (last.gyro + sample.gyro)
            dt = sample.stamp - last.stamp
            self.track.append(sample.stamp, self.track.latest() @ so3_exp(mean_gyro, dt))
            last = sample

        if _logger.isEnabledFor(logging.DEBUG):
            euler = rotmat_to_euler_deg(self.track.latest())
            _logger.debug(
                f"GyroIntegrator: {len(samples)} samples, "
                f"euler_deg=[{euler[0]:.3f}, {euler[1]:.3f}, {euler[2]:.3f}]"
            )
        return self.track

    def reset(self) -> None:
        self.track = OrientationTrack()
