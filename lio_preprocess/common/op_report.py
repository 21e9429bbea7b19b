"""
Per-cycle diagnostic report.

Every ACTIVE processing cycle emits a CycleReport that records:
1. What was processed (point count, inertial sample count, direction)
2. How long integration and undistortion took (wall time, ms)
3. How much rotation was observed (integrated track vs. undistortion result)

Reports ride on ScanOutput and are logged when log_cycle_reports is set.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CycleReport:
    """
    Diagnostic record for one processing cycle.

    Attributes:
        name: Producing stage (e.g., "ProcessingPipeline")
        state: Pipeline state when the cycle ran
        scan_stamp: Capture stamp of the processed scan
        n_points: Points in the undistorted scan
        n_imu: Inertial samples in the measurement group
        integrate_ms: GyroIntegrator wall time
        undistort_ms: ScanUndistorter wall time
        integrated_euler_deg: XYZ Euler (deg) of the orientation track end
        undistort_euler_deg: XYZ Euler (deg) of the undistortion's final rotation
        direction: Compensation direction used
        metrics: Additional metrics for debugging
        timestamp: When the report was generated
    """
    name: str
    state: str
    scan_stamp: float
    n_points: int = 0
    n_imu: int = 0
    integrate_ms: float = 0.0
    undistort_ms: float = 0.0
    integrated_euler_deg: Optional[list[float]] = None
    undistort_euler_deg: Optional[list[float]] = None
    direction: str = ""
    metrics: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state,
            "scan_stamp": self.scan_stamp,
            "n_points": self.n_points,
            "n_imu": self.n_imu,
            "integrate_ms": self.integrate_ms,
            "undistort_ms": self.undistort_ms,
            "integrated_euler_deg": (
                None if self.integrated_euler_deg is None else list(self.integrated_euler_deg)
            ),
            "undistort_euler_deg": (
                None if self.undistort_euler_deg is None else list(self.undistort_euler_deg)
            ),
            "direction": self.direction,
            "metrics": dict(self.metrics),
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)
