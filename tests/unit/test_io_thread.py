"""
Unit tests for the connection I/O thread.
"""

import threading

import pytest

from httpupgrade.core.io_thread import IoThread, IoThreadState


@pytest.fixture
def io_thread():
    thread = IoThread(name="test", poll_interval=0.05)
    thread.start()
    yield thread
    thread.shutdown(wait=True, timeout=2.0)


class TestIoThread:
    """Tests for IoThread."""

    def test_runs_tasks_in_order(self, io_thread):
        """Test that tasks execute one at a time, in submission order."""
        seen = []
        done = threading.Event()

        for i in range(5):
            io_thread.execute(seen.append, i)
        io_thread.execute(done.set)

        assert done.wait(2.0)
        assert seen == [0, 1, 2, 3, 4]

    def test_runs_on_its_own_thread(self, io_thread):
        """Test that tasks see is_current as True."""
        observed = []
        done = threading.Event()

        def record():
            observed.append(io_thread.is_current)
            done.set()

        io_thread.execute(record)

        assert done.wait(2.0)
        assert observed == [True]
        assert not io_thread.is_current

    def test_failing_task_keeps_thread_alive(self, io_thread):
        """Test that an exception is counted and later tasks still run."""
        done = threading.Event()

        def fail():
            raise ValueError("boom")

        io_thread.execute(fail)
        io_thread.execute(done.set)

        assert done.wait(2.0)
        assert io_thread.tasks_failed == 1
        assert io_thread.is_alive()

    def test_execute_after_shutdown(self, io_thread):
        """Test that a stopped thread refuses work."""
        io_thread.shutdown(wait=True, timeout=2.0)

        assert io_thread.state == IoThreadState.STOPPED
        with pytest.raises(RuntimeError):
            io_thread.execute(print)

    def test_execute_before_start(self):
        """Test that an unstarted thread refuses work."""
        with pytest.raises(RuntimeError):
            IoThread(name="idle").execute(print)

    def test_shutdown_is_idempotent(self, io_thread):
        io_thread.shutdown()
        io_thread.shutdown(wait=True, timeout=2.0)

        assert not io_thread.is_alive()
