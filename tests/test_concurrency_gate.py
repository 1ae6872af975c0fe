import sys
import os
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")
os.environ.setdefault("secret_key", "testsecret")

import threading
import time

import pytest

from app.services.concurrency_gate import ConcurrencyGate


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def test_capacity_five_with_eight_requests_admits_in_fifo_order():
    gate = ConcurrencyGate(capacity=5)
    admitted = []
    admitted_lock = threading.Lock()
    finish = [threading.Event() for _ in range(8)]
    threads = []

    def worker(i):
        with gate.permit():
            with admitted_lock:
                admitted.append(i)
            finish[i].wait(timeout=10)

    # Submit one at a time so the arrival order is deterministic.
    for i in range(8):
        t = threading.Thread(target=worker, args=(i,), daemon=True)
        t.start()
        threads.append(t)
        assert wait_until(lambda: len(admitted) + gate.waiting == i + 1)

    assert admitted == [0, 1, 2, 3, 4]
    assert gate.active == 5
    assert gate.waiting == 3

    finish[2].set()
    assert wait_until(lambda: len(admitted) == 6)
    assert admitted[5] == 5
    assert gate.waiting == 2

    finish[0].set()
    assert wait_until(lambda: len(admitted) == 7)
    finish[4].set()
    assert wait_until(lambda: len(admitted) == 8)
    assert admitted[5:] == [5, 6, 7]
    assert gate.active == 5

    for event in finish:
        event.set()
    for t in threads:
        t.join(timeout=5)
    assert gate.active == 0
    assert gate.waiting == 0


def test_permit_is_released_when_body_raises():
    gate = ConcurrencyGate(capacity=1)

    with pytest.raises(RuntimeError):
        with gate.permit():
            raise RuntimeError("stage failed")

    assert gate.active == 0
    with gate.permit():
        assert gate.active == 1


def test_release_without_permit_is_an_error():
    gate = ConcurrencyGate(capacity=2)
    with pytest.raises(RuntimeError):
        gate.release()


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ConcurrencyGate(capacity=0)
