"""
ScanUndistorter operator.

Rotation-only motion compensation of one scan using the inertial samples
that span it. Each adjacent sample pair (head, tail) is a segment with a
constant bias-corrected angular velocity; points inside the segment are
rotated by the exponential map over their time distance to the segment's
reference end, composed with the rotation accumulated so far.

BACKWARD (scan-END frame):
    pairs last -> first, omega = -(0.5*(g_head + g_tail) - bias)
    point in segment iff t >= t_head, dt = t_tail - t
    KeyPose at head sample

FORWARD (scan-START frame):
    pairs first -> last, omega = +(0.5*(g_head + g_tail) - bias)
    point in segment iff t <= t_tail, dt = t - t_head
    KeyPose at tail sample

Points outside the inertial span are extrapolated by the first and last
processed segments. Rotations are composed without re-orthonormalization.

The opening identity KeyPose sits at the reference end of the walk: the
last sample (offset t_last - t_first) in BACKWARD, the first sample
(offset 0) in FORWARD, so FORWARD KeyPose offsets are non-decreasing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np

from lio_preprocess.common.errors import PrecursorError
from lio_preprocess.common.geometry import so3_exp, so3_exp_batch
from lio_preprocess.common.measurements import (
    CompensationDirection,
    KeyPose,
    MeasurementGroup,
    Scan,
    make_key_pose,
)

_logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class DeskewResult:
    """Result of ScanUndistorter.undistort."""
    scan: Scan  # Sorted scan, positions in the reference frame
    distorted: Scan  # Sorted scan before compensation
    key_poses: List[KeyPose]  # One per inertial sample
    point_rotations: np.ndarray  # (N, 3, 3) rotation applied to each point
    final_rotation: np.ndarray  # (3, 3) accumulated rotation over the whole group
    direction: CompensationDirection


# =============================================================================
# Operator
# =============================================================================


class ScanUndistorter:
    """
    Piecewise exponential-map undistortion.

    Example usage:
        undistorter = ScanUndistorter(CompensationDirection.BACKWARD)
        result = undistorter.undistort(group, zero_bias_gyro)
        publish(result.scan, result.key_poses)
    """

    def __init__(self, direction: Union[CompensationDirection, str] = CompensationDirection.BACKWARD):
        self.direction = CompensationDirection(direction)

    def undistort(
        self,
        group: MeasurementGroup,
        zero_bias_gyro: np.ndarray,
        direction: Optional[Union[CompensationDirection, str]] = None,
    ) -> DeskewResult:
        """
        Undistort group.scan into the configured reference frame.

        Args:
            group: Scan plus covering inertial samples
            zero_bias_gyro: Calibrated gyro bias (3,)
            direction: Override of the configured direction

        Returns:
            DeskewResult
        """
        if group.scan is None:
            raise PrecursorError("ScanUndistorter: measurement group has no scan")
        if not group.imu:
            raise PrecursorError("ScanUndistorter: measurement group has no inertial samples")

        direction = self.direction if direction is None else CompensationDirection(direction)
        bias = np.asarray(zero_bias_gyro, dtype=np.float64).reshape(3)

        distorted = group.scan.sorted_by_offset()
        scan = distorted.copy()
        point_rotations, key_poses, final_rotation = _walk_segments(scan, group, bias, direction)

        _logger.debug(
            f"ScanUndistorter[{direction.value}]: {len(scan)} points, "
            f"{len(group.imu)} imu, {len(key_poses)} key poses"
        )
        return DeskewResult(
            scan=scan,
            distorted=distorted,
            key_poses=key_poses,
            point_rotations=point_rotations,
            final_rotation=final_rotation,
            direction=direction,
        )


# =============================================================================
# Segment walk
# =============================================================================


def _walk_segments(
    scan: Scan,
    group: MeasurementGroup,
    bias: np.ndarray,
    direction: CompensationDirection,
):
    """
    Shared FORWARD/BACKWARD segment walk. Mutates scan.points in place.

    Returns:
        (point_rotations (N,3,3), key_poses, final_rotation (3,3))
    """
    samples = group.imu
    n_samples = len(samples)
    n_points = len(scan)
    times = scan.point_times
    first_stamp = samples[0].stamp
    backward = direction == CompensationDirection.BACKWARD
    sign = -1.0 if backward else 1.0

    R = np.eye(3, dtype=np.float64)
    point_rotations = np.broadcast_to(np.eye(3), (n_points, 3, 3)).copy()

    ref = samples[-1] if backward else samples[0]
    key_poses = [make_key_pose(ref.stamp - first_stamp, ref, bias, R)]

    if backward:
        pair_heads = range(n_samples - 2, -1, -1)
        cursor = n_points - 1  # last unprocessed index, walking down
    else:
        pair_heads = range(0, n_samples - 1)
        cursor = 0  # first unprocessed index, walking up

    last_head = pair_heads[-1] if len(pair_heads) else None
    for i in pair_heads:
        head, tail = samples[i], samples[i + 1]
        omega = sign * (0.5 * (head.gyro + tail.gyro) - bias)
        is_last = i == last_head

        if backward:
            start = 0 if is_last else int(np.searchsorted(times, head.stamp, side="left"))
            start = min(start, cursor + 1)
            seg = slice(start, cursor + 1)
            dts = tail.stamp - times[seg]
            cursor = start - 1
        else:
            stop = n_points if is_last else int(np.searchsorted(times, tail.stamp, side="right"))
            stop = max(stop, cursor)
            seg = slice(cursor, stop)
            dts = times[seg] - head.stamp
            cursor = stop

        if dts.shape[0] > 0:
            R_seg = so3_exp_batch(omega, dts) @ R
            point_rotations[seg] = R_seg
            scan.points[seg] = np.einsum("mij,mj->mi", R_seg, scan.points[seg])

        R = so3_exp(omega, tail.stamp - head.stamp) @ R
        kp_sample = head if backward else tail
        key_poses.append(make_key_pose(kp_sample.stamp - first_stamp, kp_sample, bias, R))

    return point_rotations, key_poses, R
