"""
Utility modules for LIO preprocessing.

Infrastructure only: buffering and synchronization, no estimation here.
"""

from lio_preprocess.utils.sensor_sync import IngressBuffers, MeasurementSynchronizer, StreamBuffer

__all__ = [
    "IngressBuffers",
    "MeasurementSynchronizer",
    "StreamBuffer",
]
