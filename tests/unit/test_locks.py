"""Unit tests for the per-student allocation lock"""

import threading
from school_ledger.services.locks import StudentLocks


def run_in_thread(locks: StudentLocks, student_id: int, entered: threading.Event) -> threading.Thread:
    def worker():
        with locks.hold(student_id):
            entered.set()

    thread = threading.Thread(target=worker)
    thread.start()
    return thread


def test_second_run_for_same_student_waits():
    locks = StudentLocks()
    entered = threading.Event()

    with locks.hold(1):
        thread = run_in_thread(locks, 1, entered)
        assert entered.wait(0.2) is False
        assert locks.is_held(1)

    thread.join(timeout=2)
    assert entered.is_set()
    assert locks.is_held(1) is False


def test_other_students_are_not_blocked():
    locks = StudentLocks()
    entered = threading.Event()

    with locks.hold(1):
        thread = run_in_thread(locks, 2, entered)
        assert entered.wait(2) is True

    thread.join(timeout=2)


def test_unknown_student_is_not_held():
    assert StudentLocks().is_held(42) is False
