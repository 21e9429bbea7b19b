"""
LIO preprocessing pipeline.

State machine that runs calibration, gyro integration, and scan
undistortion for each synchronized measurement group:

    UNINITIALIZED --first group--> CALIBRATING --threshold--> ACTIVE
    any state --reset / inertial loop-back--> UNINITIALIZED

Producers push samples and scans through submit_*; one consumer (run(),
start(), or repeated spin_once()) drains synchronized groups.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from lio_preprocess.backend.operators.calibration import CalibrationState, InertialCalibrator
from lio_preprocess.backend.operators.deskew import ScanUndistorter
from lio_preprocess.backend.operators.gyro_integration import GyroIntegrator, OrientationTrack
from lio_preprocess.common import constants
from lio_preprocess.common.errors import PrecursorError
from lio_preprocess.common.geometry import pose6_to_matrix, rotmat_to_euler_deg
from lio_preprocess.common.measurements import (
    InertialSample,
    KeyPose,
    MeasurementGroup,
    Scan,
)
from lio_preprocess.common.op_report import CycleReport
from lio_preprocess.common.param_models import PreprocessParams
from lio_preprocess.utils.sensor_sync import IngressBuffers

_logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================


class PipelineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CALIBRATING = "calibrating"
    ACTIVE = "active"


@dataclass
class ScanOutput:
    """Egress artifact of one ACTIVE cycle."""
    stamp: float
    undistorted: Scan
    key_poses: list[KeyPose]
    distorted: Optional[Scan]  # Sorted input scan when publish_distorted is set
    orientation_track: OrientationTrack
    extrinsic: np.ndarray  # (4, 4) lidar -> IMU
    report: CycleReport


# =============================================================================
# Pipeline
# =============================================================================


class ProcessingPipeline:
    """
    Owns the ingress buffers, the calibrator, and the per-scan operators.

    Example usage:
        pipeline = ProcessingPipeline(params, sink=publish)
        pipeline.start()
        pipeline.submit_inertial(sample)  # from the IMU callback
        pipeline.submit_scan(scan)  # from the lidar callback
        ...
        pipeline.shutdown()
    """

    def __init__(
        self,
        params: Optional[PreprocessParams] = None,
        sink: Optional[Callable[[ScanOutput], None]] = None,
    ):
        self.params = params if params is not None else PreprocessParams()
        self.sink = sink
        self.buffers = IngressBuffers()
        self.calibrator = InertialCalibrator(
            sample_threshold=self.params.calibration_sample_threshold,
            gravity_norm_floor=self.params.gravity_norm_floor,
        )
        self.integrator = GyroIntegrator()
        self.undistorter = ScanUndistorter(self.params.compensation_direction)
        self.extrinsic = pose6_to_matrix(self.params.lidar_imu_extrinsic)

        self._state = PipelineState.UNINITIALIZED
        self._anchor_time: Optional[float] = None
        self._anchor_sample: Optional[InertialSample] = None
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    # -------------------------------------------------------------------------
    # Ingress / control
    # -------------------------------------------------------------------------

    def submit_inertial(self, sample: InertialSample) -> None:
        self.buffers.submit_inertial(sample)

    def submit_scan(self, scan: Scan) -> None:
        self.buffers.submit_scan(scan)

    def reset(self) -> None:
        """Request a reset; applied by the consumer before its next cycle."""
        self.buffers.request_reset()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def calibration(self) -> CalibrationState:
        return self.calibrator.state

    # -------------------------------------------------------------------------
    # Consumer
    # -------------------------------------------------------------------------

    def spin_once(self, timeout: Optional[float] = None) -> Optional[ScanOutput]:
        """
        Run one consumer cycle.

        Args:
            timeout: Seconds to wait for a group (0 polls, None blocks)

        Returns:
            ScanOutput if an ACTIVE cycle ran, else None
        """
        group = self.buffers.wait_for_group(timeout)
        if self.buffers.consume_reset_request():
            self._reset_state()
            return None
        if group is None or self.buffers.exit_requested:
            return None
        return self.process(group)

    def run(self) -> None:
        """Blocking consumer loop; returns after shutdown()."""
        _logger.debug("ProcessingPipeline: consumer loop started")
        while not self.buffers.exit_requested:
            try:
                self.spin_once(timeout=None)
            except Exception:
                _logger.exception("ProcessingPipeline: consumer cycle failed, stopping consumer loop")
                self.buffers.request_exit()
                break
        _logger.debug("ProcessingPipeline: consumer loop stopped")

    def start(self) -> threading.Thread:
        """
        Run the consumer loop in a background thread.

        An exception in a cycle (including one raised by the sink) is logged
        and stops the loop; further submissions are buffered but not consumed.
        """
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self.run, name="lio_preprocess_consumer", daemon=True)
        self._thread.start()
        return self._thread

    def shutdown(self, timeout: float = constants.CONSUMER_JOIN_TIMEOUT_SEC) -> None:
        """Signal exit and join the consumer thread if one was started."""
        self.buffers.request_exit()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                _logger.warning(f"ProcessingPipeline: consumer did not stop within {timeout:.1f}s")
            self._thread = None

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def process(self, group: MeasurementGroup) -> Optional[ScanOutput]:
        """
        Advance the state machine by one measurement group.

        A pending reset() is applied first; the group then seeds a fresh run.

        Returns:
            ScanOutput when ACTIVE, else None (calibration groups emit nothing)
        """
        if not group.is_complete():
            raise PrecursorError("ProcessingPipeline: incomplete measurement group")
        if self.buffers.consume_reset_request():
            self._reset_state()

        if self._state == PipelineState.UNINITIALIZED:
            self.calibrator.seed(group.imu[-1])
            self._set_anchor(group)
            self._state = PipelineState.CALIBRATING
            _logger.warning(f"ProcessingPipeline: first scan at {group.scan.stamp:.6f}, calibrating")
            return None

        if self._state == PipelineState.CALIBRATING:
            complete = self.calibrator.fold(group.imu)
            self._set_anchor(group)
            if complete:
                self._state = PipelineState.ACTIVE
            return None

        return self._process_active(group)

    def _process_active(self, group: MeasurementGroup) -> ScanOutput:
        t0 = time.perf_counter()
        track = self.integrator.integrate(group.imu, self._anchor_time, self._anchor_sample)
        t1 = time.perf_counter()
        result = self.undistorter.undistort(group, self.calibrator.state.zero_bias_gyro)
        t2 = time.perf_counter()
        self._set_anchor(group)
        self.cycles += 1

        report = CycleReport(
            name="ProcessingPipeline",
            state=self._state.value,
            scan_stamp=group.scan.stamp,
            n_points=len(result.scan),
            n_imu=len(group.imu),
            integrate_ms=(t1 - t0) * 1000.0,
            undistort_ms=(t2 - t1) * 1000.0,
            integrated_euler_deg=rotmat_to_euler_deg(track.latest()).tolist(),
            undistort_euler_deg=rotmat_to_euler_deg(result.final_rotation).tolist(),
            direction=result.direction.value,
            metrics={"cycle": self.cycles, "key_poses": len(result.key_poses)},
        )
        if self.params.log_cycle_reports:
            _logger.info(f"ProcessingPipeline: {report.to_json()}")

        output = ScanOutput(
            stamp=group.scan.stamp,
            undistorted=result.scan,
            key_poses=result.key_poses,
            distorted=result.distorted if self.params.publish_distorted else None,
            orientation_track=track,
            extrinsic=self.extrinsic.copy(),
            report=report,
        )
        if self.sink is not None:
            self.sink(output)
        return output

    def _set_anchor(self, group: MeasurementGroup) -> None:
        self._anchor_time = group.scan.end_time
        self._anchor_sample = group.imu[-1]

    def _reset_state(self) -> None:
        self.buffers.clear()
        self.calibrator.reset()
        self.integrator.reset()
        self._anchor_time = None
        self._anchor_sample = None
        self._state = PipelineState.UNINITIALIZED
        _logger.warning("ProcessingPipeline: reset, returning to uninitialized")
