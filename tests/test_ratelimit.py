import threading

import pytest

from codeforge.ratelimit import TokenBucket


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_bucket(capacity, refill_rate):
    clock = FakeClock()
    return TokenBucket(capacity, refill_rate, clock=clock, sleep=clock.sleep), clock


def test_starts_full_and_drains():
    bucket, _ = make_bucket(2, 1.0)

    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_refills_over_time():
    bucket, clock = make_bucket(1, 2.0)
    assert bucket.try_acquire()

    clock.now += 0.25
    assert not bucket.try_acquire()
    clock.now += 0.25
    assert bucket.try_acquire()


def test_never_exceeds_capacity():
    bucket, clock = make_bucket(3, 10.0)

    clock.now += 100.0

    assert bucket.tokens == 3.0


def test_wait_sleeps_for_the_deficit():
    bucket, clock = make_bucket(1, 2.0)
    bucket.wait_for_token()

    bucket.wait_for_token()

    assert clock.sleeps == [0.5]
    assert clock.now == 0.5


def test_burst_then_steady_rate():
    bucket, clock = make_bucket(5, 1.0)

    for _ in range(8):
        bucket.wait_for_token()

    assert clock.sleeps == [1.0, 1.0, 1.0]
    assert clock.now == pytest.approx(3.0)


@pytest.mark.parametrize("capacity, rate", [(0, 1.0), (-1, 1.0), (1, 0.0), (1, -2.0)])
def test_rejects_invalid_parameters(capacity, rate):
    with pytest.raises(ValueError):
        TokenBucket(capacity, rate)


def test_concurrent_acquires_never_overdraw():
    bucket = TokenBucket(50, 0.001)
    admitted = []

    def worker():
        for _ in range(20):
            if bucket.try_acquire():
                admitted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(admitted) == 50
