import math

import numpy as np
import pytest

from lio_preprocess.common.geometry import (
    is_rotation_matrix,
    pose6_to_matrix,
    rotmat_to_euler_deg,
    skew,
    so3_exp,
    so3_exp_batch,
)


def test_skew_matches_cross_product():
    a = np.array([0.3, -1.2, 2.0])
    b = np.array([1.0, 0.5, -0.7])
    np.testing.assert_allclose(skew(a) @ b, np.cross(a, b), atol=1e-12)


def test_skew_rejects_bad_shape():
    with pytest.raises(ValueError):
        skew(np.zeros(4))


def test_exp_is_rotation(numpy_seed):
    for _ in range(50):
        omega = np.random.randn(3) * 3.0
        dt = abs(np.random.randn()) * 0.5
        R = so3_exp(omega, dt)
        assert is_rotation_matrix(R, atol=1e-9)


def test_exp_zero_dt_is_identity():
    np.testing.assert_array_equal(so3_exp(np.array([1.0, -2.0, 0.5]), 0.0), np.eye(3))


def test_exp_zero_rate_is_identity():
    np.testing.assert_array_equal(so3_exp(np.zeros(3), 10.0), np.eye(3))
    # Below the guard the result is exactly identity regardless of dt
    np.testing.assert_array_equal(so3_exp(np.array([0.0, 0.0, 5e-8]), 100.0), np.eye(3))


def test_exp_quarter_turn_about_z():
    R = so3_exp(np.array([0.0, 0.0, math.pi / 2.0]), 1.0)
    np.testing.assert_allclose(R @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)


def test_exp_batch_matches_scalar():
    omega = np.array([0.2, -0.4, 1.3])
    dts = np.array([0.0, 0.005, 0.01, -0.02])
    stack = so3_exp_batch(omega, dts)
    assert stack.shape == (4, 3, 3)
    for i, dt in enumerate(dts):
        np.testing.assert_allclose(stack[i], so3_exp(omega, dt), atol=1e-12)


def test_exp_batch_zero_rate():
    stack = so3_exp_batch(np.zeros(3), np.array([0.1, 0.2]))
    np.testing.assert_array_equal(stack, np.broadcast_to(np.eye(3), (2, 3, 3)))


def test_pose6_default_extrinsic_is_yaw_180():
    T = pose6_to_matrix([0.0, 0.0, 0.0, 0.0, 0.0, math.pi])
    np.testing.assert_allclose(T[:3, :3], np.diag([-1.0, -1.0, 1.0]), atol=1e-12)
    np.testing.assert_allclose(T[:3, 3], np.zeros(3))
    np.testing.assert_allclose(T[3], [0.0, 0.0, 0.0, 1.0])


def test_pose6_rejects_bad_shape():
    with pytest.raises(ValueError):
        pose6_to_matrix([0.0, 0.0, 0.0])


def test_euler_deg_of_yaw():
    R = so3_exp(np.array([0.0, 0.0, 1.0]), math.radians(30.0))
    np.testing.assert_allclose(rotmat_to_euler_deg(R), [0.0, 0.0, 30.0], atol=1e-9)


def test_is_rotation_rejects_reflection():
    assert not is_rotation_matrix(np.diag([1.0, 1.0, -1.0]))
    assert not is_rotation_matrix(np.eye(4))
