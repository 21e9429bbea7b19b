import threading

import numpy as np

from lio_preprocess.common.measurements import InertialSample
from lio_preprocess.utils.sensor_sync import IngressBuffers, MeasurementSynchronizer, StreamBuffer


def test_stream_buffer_loop_back_clears_and_keeps_new_item():
    buf = StreamBuffer("imu")
    assert not buf.push(1.0, "a")
    assert not buf.push(2.0, "b")
    assert buf.push(1.5, "c")
    assert len(buf) == 1
    assert buf.peek_oldest() == (1.5, "c")
    assert buf.loop_back_count == 1


def test_stream_buffer_equal_stamp_is_not_loop_back():
    buf = StreamBuffer("imu")
    buf.push(1.0, "a")
    assert not buf.push(1.0, "b")
    assert len(buf) == 2


def test_sync_waits_for_coverage(sample_factory, scan_factory):
    sync = MeasurementSynchronizer()
    # Scan at 9.9 s whose last point is 100 ms later: ends at 10.0
    sync.add_scan(scan_factory(9.9, [0.0, 50.0, 100.0]))
    for s in sample_factory(np.arange(8.0, 9.01, 0.5)):
        sync.add_inertial(s)
    assert sync.try_sync() is None
    assert len(sync.lidar) == 1

    sync.add_inertial(InertialSample(stamp=10.5, gyro=np.zeros(3), accel=np.zeros(3)))
    group = sync.try_sync()
    assert group is not None
    assert [s.stamp for s in group.imu] == [8.0, 8.5, 9.0]
    assert all(s.stamp <= 10.0 for s in group.imu)
    # Later sample stays for the next group
    assert len(sync.imu) == 1
    assert sync.imu.peek_oldest()[0] == 10.5
    assert sync.lidar.is_empty()


def test_sync_end_time_uses_max_offset_of_unsorted_scan(sample_factory, scan_factory):
    sync = MeasurementSynchronizer()
    sync.add_scan(scan_factory(1.0, [40.0, 100.0, 10.0]))
    for s in sample_factory([0.95, 1.05, 1.09]):
        sync.add_inertial(s)
    assert sync.try_sync() is None
    sync.add_inertial(InertialSample(stamp=1.2, gyro=np.zeros(3), accel=np.zeros(3)))
    group = sync.try_sync()
    assert group is not None
    assert [s.stamp for s in group.imu] == [0.95, 1.05, 1.09]


def test_sync_not_ready_when_either_buffer_empty(sample_factory, scan_factory):
    sync = MeasurementSynchronizer()
    assert sync.try_sync() is None
    sync.add_scan(scan_factory(0.0, [0.0]))
    assert sync.try_sync() is None


def test_sync_discards_group_without_samples(sample_factory, scan_factory):
    sync = MeasurementSynchronizer()
    for s in sample_factory([0.0, 0.1]):
        sync.add_inertial(s)
    group = sync.try_sync()
    assert group is None

    sync.add_scan(scan_factory(0.05, [0.0, 10.0]))
    group = sync.try_sync()
    assert group is not None
    assert [s.stamp for s in group.imu] == [0.0]

    # Next scan ends before the only buffered sample: ready, but empty
    sync.add_scan(scan_factory(0.06, [0.0]))
    assert sync.try_sync() is None
    assert sync.discarded_groups == 1
    assert sync.lidar.is_empty()


def test_ingress_inertial_loop_back_requests_reset(sample_factory):
    buffers = IngressBuffers()
    for s in sample_factory([1.0, 2.0]):
        buffers.submit_inertial(s)
    assert not buffers.consume_reset_request()
    buffers.submit_inertial(sample_factory([0.5])[0])
    assert buffers.buffered_counts() == (1, 0)
    assert buffers.consume_reset_request()
    assert not buffers.consume_reset_request()


def test_ingress_scan_loop_back_does_not_request_reset(scan_factory):
    buffers = IngressBuffers()
    buffers.submit_scan(scan_factory(2.0, [0.0]))
    buffers.submit_scan(scan_factory(1.0, [0.0]))
    assert buffers.buffered_counts() == (0, 1)
    assert not buffers.consume_reset_request()


def test_wait_for_group_poll_returns_none():
    buffers = IngressBuffers()
    assert buffers.wait_for_group(timeout=0) is None


def test_wait_for_group_wakes_on_exit():
    buffers = IngressBuffers()
    result = {}

    def consumer():
        result["group"] = buffers.wait_for_group(timeout=5.0)

    t = threading.Thread(target=consumer)
    t.start()
    buffers.request_exit()
    t.join(timeout=5.0)
    assert not t.is_alive()
    assert result["group"] is None
    assert buffers.exit_requested


def test_wait_for_group_wakes_on_producer(sample_factory, scan_factory):
    buffers = IngressBuffers()
    result = {}

    def consumer():
        result["group"] = buffers.wait_for_group(timeout=5.0)

    t = threading.Thread(target=consumer)
    t.start()
    buffers.submit_scan(scan_factory(0.0, [0.0, 10.0]))
    for s in sample_factory([0.0, 0.005, 0.01]):
        buffers.submit_inertial(s)
    t.join(timeout=5.0)
    assert not t.is_alive()
    assert result["group"] is not None
    assert len(result["group"].imu) == 3
