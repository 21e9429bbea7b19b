"""Lidar-inertial odometry preprocessing core: sync, calibration, undistortion."""
