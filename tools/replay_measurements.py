#!/usr/bin/env python3
"""
Replay recorded IMU + lidar CSV logs through the preprocessing pipeline.

IMU CSV columns:    stamp,gx,gy,gz,ax,ay,az
Points CSV columns: scan_stamp,x,y,z,offset_ms,intensity  (one row per point)

Scans are submitted in stamp order, each no earlier than its end time,
interleaved with IMU samples in stamp order; the pipeline is drained
synchronously after every submission. Writes a JSON summary (calibration
result + per-cycle reports) and optionally the undistorted points in the
points-CSV layout.

Usage:
  .venv/bin/python tools/replay_measurements.py imu.csv points.csv --out summary.json
  .venv/bin/python tools/replay_measurements.py imu.csv points.csv --preset livox_avia --direction forward --points-out undistorted.csv
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from collections import OrderedDict
from pathlib import Path
from typing import List, Optional

import numpy as np

from lio_preprocess.backend.config import (
    get_default_config_paths,
    get_preset_path,
    load_preprocess_config,
)
from lio_preprocess.backend.pipeline import ProcessingPipeline, ScanOutput
from lio_preprocess.common.measurements import InertialSample, Scan

_logger = logging.getLogger("replay_measurements")

POINT_COLUMNS = ["scan_stamp", "x", "y", "z", "offset_ms", "intensity"]


def load_imu_csv(csv_path: str | Path) -> List[InertialSample]:
    """Load inertial samples in file order."""
    samples = []
    with open(csv_path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            samples.append(
                InertialSample(
                    stamp=float(row["stamp"]),
                    gyro=[float(row["gx"]), float(row["gy"]), float(row["gz"])],
                    accel=[float(row["ax"]), float(row["ay"]), float(row["az"])],
                )
            )
    return samples


def load_points_csv(csv_path: str | Path) -> List[Scan]:
    """Group point rows into scans by scan_stamp (first-appearance order)."""
    rows: "OrderedDict[str, list]" = OrderedDict()
    with open(csv_path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            rows.setdefault(row["scan_stamp"], []).append(row)

    scans = []
    for stamp, pts in rows.items():
        scans.append(
            Scan(
                stamp=float(stamp),
                points=np.array([[float(p["x"]), float(p["y"]), float(p["z"])] for p in pts]),
                offsets_ms=np.array([float(p["offset_ms"]) for p in pts]),
                intensities=np.array([float(p.get("intensity") or 0.0) for p in pts]),
            )
        )
    return scans


def _drain(pipeline: ProcessingPipeline) -> None:
    """Run consumer cycles until no buffered scan is consumed."""
    while True:
        scans_before = pipeline.buffers.buffered_counts()[1]
        pipeline.spin_once(timeout=0)
        if pipeline.buffers.buffered_counts()[1] >= scans_before:
            return


def replay(
    pipeline: ProcessingPipeline,
    samples: List[InertialSample],
    scans: List[Scan],
) -> None:
    """
    Submit samples and scans in time order.

    Scans go in stamp order, each no earlier than its end time; a scan whose
    end precedes an earlier-stamped scan's end waits for that one.
    """
    # IMU first on ties so a scan never waits on a sample with its own end stamp
    events = [(s.stamp, 0, i) for i, s in enumerate(samples)]
    scan_order = sorted(range(len(scans)), key=lambda j: scans[j].stamp)
    release = float("-inf")
    for rank, i in enumerate(scan_order):
        release = max(release, scans[i].end_time)
        events.append((release, 1, rank))
    events.sort()
    for _, kind, idx in events:
        if kind == 0:
            pipeline.submit_inertial(samples[idx])
        else:
            pipeline.submit_scan(scans[scan_order[idx]])
        _drain(pipeline)


def write_points_csv(outputs: List[ScanOutput], csv_path: str | Path) -> None:
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(POINT_COLUMNS)
        for out in outputs:
            scan = out.undistorted
            for i in range(len(scan)):
                x, y, z = scan.points[i]
                w.writerow([
                    f"{scan.stamp:.9f}",
                    f"{x:.9f}",
                    f"{y:.9f}",
                    f"{z:.9f}",
                    f"{scan.offsets_ms[i]:.6f}",
                    f"{scan.intensities[i]:.6f}",
                ])


def build_summary(pipeline: ProcessingPipeline, n_imu: int, n_scans: int, outputs: List[ScanOutput]) -> dict:
    return {
        "n_imu": n_imu,
        "n_scans": n_scans,
        "n_outputs": len(outputs),
        "state": pipeline.state.value,
        "direction": pipeline.undistorter.direction.value,
        "calibration": pipeline.calibration.to_dict(),
        "reports": [out.report.to_dict() for out in outputs],
    }


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Replay IMU + lidar CSV logs through the LIO preprocessing pipeline.")
    ap.add_argument("imu_csv", help="IMU CSV (stamp,gx,gy,gz,ax,ay,az)")
    ap.add_argument("points_csv", help="Points CSV (scan_stamp,x,y,z,offset_ms,intensity)")
    ap.add_argument("--out", default=None, help="Summary JSON path (default: stdout)")
    ap.add_argument("--points-out", default=None, help="Optional undistorted points CSV path")
    ap.add_argument("--config", default=None, help="Base config YAML (default: config/lio_preprocess_base.yaml)")
    ap.add_argument("--preset", default=None, help="Preset name under config/presets/")
    ap.add_argument("--direction", choices=["forward", "backward"], default=None, help="Override compensation direction")
    ap.add_argument("--log-level", default="WARNING", help="Python logging level")
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    base_path = Path(args.config) if args.config else get_default_config_paths()[0]
    preset_path = None
    if args.preset:
        preset_path = get_preset_path(args.preset)
        if preset_path is None:
            print(f"ERROR: preset not found: {args.preset}", file=sys.stderr)
            return 2
    overrides = {"compensation_direction": args.direction} if args.direction else {}
    params = load_preprocess_config(base_path, preset_path, overrides)

    samples = load_imu_csv(args.imu_csv)
    scans = load_points_csv(args.points_csv)
    _logger.info(f"Loaded {len(samples)} IMU samples, {len(scans)} scans")

    outputs: List[ScanOutput] = []
    pipeline = ProcessingPipeline(params, sink=outputs.append)
    replay(pipeline, samples, scans)

    summary = build_summary(pipeline, len(samples), len(scans), outputs)
    text = json.dumps(summary, indent=2, sort_keys=True)
    if args.out:
        Path(args.out).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)
    if args.points_out:
        write_points_csv(outputs, args.points_out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
