import threading

from bughunt.core.ratelimit import RateLimiter


class Clock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


def test_allows_max_then_rejects_until_window_passes():
    clock = Clock()
    rl = RateLimiter(max_requests=10, window_ms=60000, clock=clock)

    for _ in range(10):
        assert rl.is_allowed("c1")
    assert not rl.is_allowed("c1")

    clock.advance(60000)
    assert rl.is_allowed("c1")


def test_rejected_calls_do_not_consume_slots():
    clock = Clock()
    rl = RateLimiter(max_requests=2, window_ms=1000, clock=clock)
    assert rl.is_allowed("c")
    clock.advance(500)
    assert rl.is_allowed("c")
    for _ in range(5):
        assert not rl.is_allowed("c")
    # only the first request has aged out
    clock.advance(500)
    assert rl.is_allowed("c")
    assert not rl.is_allowed("c")


def test_clients_are_independent():
    rl = RateLimiter(max_requests=1, window_ms=1000, clock=Clock())
    assert rl.is_allowed("a")
    assert not rl.is_allowed("a")
    assert rl.is_allowed("b")


def test_remaining_and_reset_time():
    clock = Clock(5000)
    rl = RateLimiter(max_requests=3, window_ms=1000, clock=clock)
    assert rl.get_remaining_requests("c") == 3
    assert rl.get_reset_time("c") == 0

    rl.is_allowed("c")
    clock.advance(100)
    rl.is_allowed("c")
    assert rl.get_remaining_requests("c") == 1
    assert rl.get_reset_time("c") == 6000

    clock.advance(950)
    assert rl.get_remaining_requests("c") == 2
    # the expired first request no longer sets the reset time
    assert rl.get_reset_time("c") == 6100


def test_idle_client_has_no_reset_time():
    clock = Clock(0)
    rl = RateLimiter(max_requests=2, window_ms=1000, clock=clock)
    rl.is_allowed("c")
    clock.advance(5000)
    assert rl.get_reset_time("c") == 0
    assert rl.retry_after("c") == 0.0


def test_retry_after_in_seconds():
    clock = Clock(0)
    rl = RateLimiter(max_requests=1, window_ms=10000, clock=clock)
    assert rl.retry_after("c") == 0.0
    rl.is_allowed("c")
    clock.advance(2500)
    assert rl.retry_after("c") == 7.5


def test_prune_drops_expired_clients():
    clock = Clock()
    rl = RateLimiter(max_requests=5, window_ms=1000, clock=clock)
    rl.is_allowed("old")
    clock.advance(2000)
    rl.is_allowed("new")
    assert len(rl) == 2
    assert rl.prune() == 1
    assert len(rl) == 1
    assert rl.get_remaining_requests("new") == 4


def test_check_then_append_is_atomic_across_threads():
    rl = RateLimiter(max_requests=10, window_ms=60000)
    results = []
    lock = threading.Lock()
    start = threading.Barrier(40)

    def hit():
        start.wait()
        ok = rl.is_allowed("shared")
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=hit) for _ in range(40)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 10
