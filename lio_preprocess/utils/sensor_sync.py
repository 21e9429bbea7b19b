"""
Sensor Synchronization Utility.

Pairs each lidar scan with the inertial samples that cover its capture
window. Two append-only stream buffers feed a synchronizer; IngressBuffers
adds the lock/condition used by the producer and consumer threads.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Deque, List, Optional, Tuple

from lio_preprocess.common.measurements import InertialSample, MeasurementGroup, Scan

_logger = logging.getLogger(__name__)


class StreamBuffer:
    """
    Append-only FIFO for one sensor stream with monotonic-stamp enforcement.

    A stamp earlier than the previous one is a loop-back (e.g. bag replay
    restarting): the buffer is cleared and the new item starts a fresh run.
    """

    def __init__(self, name: str):
        self.name = name
        self._buffer: Deque[Tuple[float, Any]] = deque()
        self._last_stamp: Optional[float] = None
        self.loop_back_count = 0

    def push(self, stamp: float, data: Any) -> bool:
        """
        Append timestamped data.

        Returns:
            True if a loop-back was detected (buffer cleared before append)
        """
        stamp = float(stamp)
        looped_back = self._last_stamp is not None and stamp < self._last_stamp
        if looped_back:
            _logger.error(
                f"SensorSync[{self.name}]: loop back {stamp:.6f} < {self._last_stamp:.6f}, "
                f"clearing {len(self._buffer)} buffered"
            )
            self._buffer.clear()
            self.loop_back_count += 1
        self._last_stamp = stamp
        self._buffer.append((stamp, data))
        return looped_back

    def peek_oldest(self) -> Tuple[float, Any]:
        return self._buffer[0]

    def pop_oldest(self) -> Tuple[float, Any]:
        return self._buffer.popleft()

    def pop_until(self, stamp: float) -> List[Any]:
        """Remove and return, in order, every item with timestamp <= stamp."""
        out: List[Any] = []
        while self._buffer and self._buffer[0][0] <= stamp:
            out.append(self._buffer.popleft()[1])
        return out

    @property
    def newest_stamp(self) -> Optional[float]:
        return self._buffer[-1][0] if self._buffer else None

    @property
    def last_stamp(self) -> Optional[float]:
        """Stamp of the last submission (survives clear)."""
        return self._last_stamp

    def clear(self):
        """Drop buffered items; monotonic tracking is kept."""
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    def is_empty(self) -> bool:
        return len(self._buffer) == 0


class MeasurementSynchronizer:
    """
    Pairs the oldest scan with the inertial samples up to its end time.

    Not thread-safe on its own; IngressBuffers serializes access.

    Example usage:
        sync = MeasurementSynchronizer()
        sync.add_inertial(sample)
        sync.add_scan(scan)
        group = sync.try_sync()  # None until inertial coverage reaches scan end
    """

    def __init__(self):
        self.imu = StreamBuffer("imu")
        self.lidar = StreamBuffer("lidar")
        self.discarded_groups = 0

    def add_inertial(self, sample: InertialSample) -> bool:
        """Buffer an inertial sample. Returns True on loop-back."""
        return self.imu.push(sample.stamp, sample)

    def add_scan(self, scan: Scan) -> bool:
        """Buffer a scan. Returns True on loop-back."""
        return self.lidar.push(scan.stamp, scan)

    def try_sync(self) -> Optional[MeasurementGroup]:
        """
        Build the next MeasurementGroup if inertial coverage allows.

        Returns:
            MeasurementGroup, or None when either buffer is empty, coverage
            has not reached the oldest scan's end time, or the group had no
            inertial samples (scan discarded).
        """
        if self.lidar.is_empty() or self.imu.is_empty():
            return None

        _, scan = self.lidar.peek_oldest()
        scan_end_time = scan.end_time
        if self.imu.newest_stamp < scan_end_time:
            return None

        self.lidar.pop_oldest()
        samples = self.imu.pop_until(scan_end_time)
        if not samples:
            self.discarded_groups += 1
            _logger.warning(
                f"SensorSync: no inertial samples <= {scan_end_time:.6f} for scan at "
                f"{scan.stamp:.6f}, discarding scan"
            )
            return None

        _logger.debug(
            f"SensorSync: scan {scan.stamp:.6f} (end {scan_end_time:.6f}) with "
            f"{len(samples)} imu from {samples[0].stamp:.6f} to {samples[-1].stamp:.6f}"
        )
        return MeasurementGroup(scan=scan, imu=samples)

    def clear(self):
        self.imu.clear()
        self.lidar.clear()


class IngressBuffers:
    """
    Thread-safe front of the synchronizer.

    Producers call submit_*; the single consumer blocks in wait_for_group.
    One lock guards both streams and the control flags.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._sync = MeasurementSynchronizer()
        self._reset_requested = False
        self._exit_requested = False

    def submit_inertial(self, sample: InertialSample) -> None:
        with self._cond:
            if self._sync.add_inertial(sample):
                self._reset_requested = True
            self._cond.notify_all()

    def submit_scan(self, scan: Scan) -> None:
        with self._cond:
            self._sync.add_scan(scan)
            self._cond.notify_all()

    def wait_for_group(self, timeout: Optional[float] = None) -> Optional[MeasurementGroup]:
        """
        Block until a group is ready, a reset or exit is requested, or timeout.

        Args:
            timeout: Seconds to wait (None waits indefinitely, 0 polls once)

        Returns:
            The synchronized group, or None if woken without one
        """
        group: Optional[MeasurementGroup] = None

        def _ready() -> bool:
            nonlocal group
            if group is None:
                group = self._sync.try_sync()
            return group is not None or self._reset_requested or self._exit_requested

        with self._cond:
            self._cond.wait_for(_ready, timeout)
        return group

    def request_reset(self) -> None:
        with self._cond:
            self._reset_requested = True
            self._cond.notify_all()

    def consume_reset_request(self) -> bool:
        """Return and clear the pending reset flag."""
        with self._lock:
            requested = self._reset_requested
            self._reset_requested = False
            return requested

    def request_exit(self) -> None:
        with self._cond:
            self._exit_requested = True
            self._cond.notify_all()

    @property
    def exit_requested(self) -> bool:
        with self._lock:
            return self._exit_requested

    def clear(self) -> None:
        """Drop all buffered samples and scans."""
        with self._lock:
            self._sync.clear()

    def buffered_counts(self) -> Tuple[int, int]:
        """(inertial, scan) items currently buffered."""
        with self._lock:
            return len(self._sync.imu), len(self._sync.lidar)
