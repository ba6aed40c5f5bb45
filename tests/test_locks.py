"""Tests for the reader/writer lock."""

from __future__ import annotations

import threading

from scrub.core.locks import ReadWriteLock


class TestReadWriteLock:
    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read():
                inside.wait()

        t = threading.Thread(target=reader)
        t.start()
        with lock.read():
            # Both readers must be inside at once for the barrier to release.
            inside.wait()
        t.join(timeout=5)
        assert not t.is_alive()

    def test_writer_waits_for_reader(self):
        lock = ReadWriteLock()
        wrote = threading.Event()

        def writer():
            with lock.write():
                wrote.set()

        with lock.read():
            t = threading.Thread(target=writer)
            t.start()
            assert not wrote.wait(timeout=0.2)
        t.join(timeout=5)
        assert wrote.is_set()

    def test_reader_waits_for_writer(self):
        lock = ReadWriteLock()
        read = threading.Event()

        def reader():
            with lock.read():
                read.set()

        with lock.write():
            t = threading.Thread(target=reader)
            t.start()
            assert not read.wait(timeout=0.2)
        t.join(timeout=5)
        assert read.is_set()
