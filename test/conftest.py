import os
from typing import Callable, List

import numpy as np
import pytest

from lio_preprocess.common.measurements import InertialSample, MeasurementGroup, Scan

# =============================================================================
# Config Fixtures
# =============================================================================
# Paths to the repository's real YAML files, so config tests exercise the
# same files a deployment would load.


@pytest.fixture
def config_paths():
    """(base_yaml, presets_dir) under the repository's config/ directory."""
    test_dir = os.path.dirname(__file__)
    pkg_root = os.path.dirname(test_dir)
    config_dir = os.path.join(pkg_root, "config")
    return (
        os.path.join(config_dir, "lio_preprocess_base.yaml"),
        os.path.join(config_dir, "presets"),
    )


# =============================================================================
# Measurement Fixtures
# =============================================================================


def make_samples(
    stamps,
    gyro=(0.0, 0.0, 0.0),
    accel=(0.0, 0.0, -9.81),
) -> List[InertialSample]:
    """Constant-rate inertial samples at the given stamps."""
    return [InertialSample(stamp=t, gyro=gyro, accel=accel) for t in stamps]


def make_scan(stamp: float, offsets_ms, points=None) -> Scan:
    """Scan with one point per offset; default positions are (1, 0, 0)."""
    offsets_ms = np.asarray(offsets_ms, dtype=np.float64)
    if points is None:
        points = np.tile(np.array([1.0, 0.0, 0.0]), (offsets_ms.shape[0], 1))
    return Scan(stamp=stamp, points=points, offsets_ms=offsets_ms)


@pytest.fixture
def sample_factory() -> Callable[..., List[InertialSample]]:
    return make_samples


@pytest.fixture
def scan_factory() -> Callable[..., Scan]:
    return make_scan


@pytest.fixture
def rotating_group() -> MeasurementGroup:
    """Three points at 0/5/10 ms, two samples spanning them at pi rad/s about z."""
    scan = make_scan(0.0, [0.0, 5.0, 10.0])
    return MeasurementGroup(scan=scan, imu=make_samples([0.0, 0.01], gyro=(0.0, 0.0, np.pi)))


# =============================================================================
# Test Utility Fixtures
# =============================================================================


@pytest.fixture
def numpy_seed():
    """Set numpy random seed for reproducible tests."""
    np.random.seed(42)
    yield


@pytest.fixture
def random_points():
    """Small random point cloud for undistortion tests."""
    rng = np.random.default_rng(42)
    return rng.normal(size=(64, 3)) * 5.0
