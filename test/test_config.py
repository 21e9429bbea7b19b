import math

import pytest
from pydantic import ValidationError

from lio_preprocess.backend.config import (
    get_default_config_paths,
    get_preset_path,
    load_preprocess_config,
    load_yaml_config,
    merge_configs,
)
from lio_preprocess.common.measurements import CompensationDirection
from lio_preprocess.common.param_models import PreprocessParams


def test_defaults_validate():
    params = PreprocessParams()
    assert params.calibration_sample_threshold == 50
    assert params.gravity_norm_floor == 0.1
    assert params.lidar_imu_extrinsic == pytest.approx([0.0, 0.0, 0.0, 0.0, 0.0, math.pi])
    assert params.compensation_direction == CompensationDirection.BACKWARD
    assert params.publish_distorted is True
    assert params.log_cycle_reports is False


def test_unknown_key_rejected():
    with pytest.raises(ValidationError):
        PreprocessParams(bogus_option=1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"calibration_sample_threshold": 0},
        {"gravity_norm_floor": 0.0},
        {"lidar_imu_extrinsic": [0.0, 0.0, 0.0]},
        {"compensation_direction": "sideways"},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        PreprocessParams(**kwargs)


def test_validate_assignment():
    params = PreprocessParams()
    params.compensation_direction = "forward"
    assert params.compensation_direction == CompensationDirection.FORWARD
    with pytest.raises(ValidationError):
        params.calibration_sample_threshold = -3


def test_merge_configs_deep():
    merged = merge_configs({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}}, {"b": 2})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 2}


def test_load_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml")


def test_repository_base_config(config_paths):
    base, _ = config_paths
    params = load_preprocess_config(base)
    assert params == PreprocessParams()


def test_base_preset_override_order(tmp_path):
    base = tmp_path / "base.yaml"
    preset = tmp_path / "preset.yaml"
    base.write_text(
        "lio_preprocess:\n"
        "  calibration_sample_threshold: 10\n"
        "  publish_distorted: false\n"
        "  compensation_direction: forward\n"
    )
    preset.write_text("lio_preprocess:\n  calibration_sample_threshold: 20\n  log_cycle_reports: true\n")
    params = load_preprocess_config(base, preset, overrides={"log_cycle_reports": False})
    assert params.calibration_sample_threshold == 20
    assert params.publish_distorted is False
    assert params.compensation_direction == CompensationDirection.FORWARD
    assert params.log_cycle_reports is False


def test_default_paths_and_presets():
    base, presets_dir = get_default_config_paths()
    assert base.name == "lio_preprocess_base.yaml"
    assert base.exists()
    assert presets_dir.is_dir()
    assert get_preset_path("livox_avia") is not None
    assert get_preset_path("no_such_preset") is None
    params = load_preprocess_config(base, get_preset_path("livox_avia"))
    assert params.calibration_sample_threshold == 100
