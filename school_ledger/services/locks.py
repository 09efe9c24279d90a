"""Keyed mutex: at most one allocation run per student at a time"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class StudentLocks:
    """One lock per student id, created lazily and shared by every caller"""

    def __init__(self) -> None:
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, student_id: int) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(student_id, threading.Lock())

    @contextmanager
    def hold(self, student_id: int) -> Iterator[None]:
        lock = self._lock_for(student_id)
        with lock:
            yield

    def is_held(self, student_id: int) -> bool:
        lock = self._locks.get(student_id)
        return lock is not None and lock.locked()
