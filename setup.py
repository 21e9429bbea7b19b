from setuptools import find_packages, setup

package_name = "lio_preprocess"

setup(
    name=package_name,
    version="0.0.1",
    packages=find_packages(exclude=["test", "tools", "tools.*"]),
    install_requires=["setuptools", "numpy", "scipy", "pyyaml", "pydantic>=2"],
    zip_safe=True,
    maintainer="you",
    maintainer_email="you@example.com",
    description="Lidar-inertial odometry preprocessing: IMU/lidar sync, stationary calibration, scan undistortion",
    license="Apache-2.0",
    tests_require=["pytest"],
    extras_require={"test": ["pytest"]},
)
