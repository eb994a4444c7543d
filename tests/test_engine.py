import random
import threading
import time

import httpx

from bughunt.core.config import ScanLimits
from bughunt.core.engine import Engine
from bughunt.core.models import CatalogEntry, PayloadError, PayloadOutcome, ResponseSignal
from conftest import LAB


def entries(*payloads):
    return [CatalogEntry(payload=p, technique="basic", label="Basic", dialect="html")
            for p in payloads]


def echo(attempt):
    return PayloadOutcome(request=attempt, response_signal=ResponseSignal(status_code=200),
                        elapsed_ms=0.0)


def test_plan_orders_parameter_then_payload():
    with Engine() as engine:
        attempts = engine.plan(LAB + "/?a=1", ["a", "b"], entries("x", "y", "z"), per_parameter=2)
    assert [(p.parameter, p.payload) for p in attempts] == [
        ("a", "x"), ("a", "y"), ("b", "x"), ("b", "y")]


def test_plan_splits_max_payloads_across_parameters():
    limits = ScanLimits(max_payloads=6)
    with Engine(limits=limits) as engine:
        attempts = engine.plan(LAB, ["a", "b", "c"], entries(*"pqrstu"), per_parameter=30)
    assert len(attempts) == 6
    assert engine.plan(LAB, [], entries("x")) == []


def test_build_url_replaces_parameter():
    url = httpx.URL(Engine.build_url(LAB + "/p?id=1&q=2", "id", "' OR 1=1--"))
    assert url.path == "/p"
    assert url.params["id"] == "' OR 1=1--"
    assert url.params["q"] == "2"


def test_execute_keeps_submission_order():
    def jittery(attempt):
        time.sleep(random.uniform(0, 0.01))
        return echo(attempt)

    with Engine(limits=ScanLimits(workers=8)) as engine:
        attempts = engine.plan(LAB, ["a", "b", "c"], entries(*"pqrst"))
        results = engine.execute(attempts, jittery)
    assert [r.request for r in results] == attempts


def test_execute_is_bounded_by_workers():
    active = 0
    peak = 0
    lock = threading.Lock()

    def tracked(attempt):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return echo(attempt)

    with Engine(limits=ScanLimits(workers=3)) as engine:
        attempts = engine.plan(LAB, ["a", "b"], entries(*"pqrstuvw"))
        engine.execute(attempts, tracked)
    assert 1 <= peak <= 3


def test_failed_attempts_become_errors(log):
    def flaky(attempt):
        if attempt.payload == "boom":
            raise httpx.ConnectTimeout("timed out")
        return echo(attempt)

    with Engine(logger=log) as engine:
        results = engine.run(LAB, ["a"], entries("ok", "boom", "ok2"), execute_one=flaky)
    assert [type(r) for r in results] == [PayloadOutcome, PayloadError, PayloadOutcome]
    assert results[1].error == "timed out"


def test_send_captures_response(engine):
    attempt = engine.plan(LAB + "/xss?q=test", ["q"], entries("<b>hi</b>"))[0]
    result = engine.send(attempt)
    assert result.succeeded
    assert result.response_signal.status_code == 200
    assert "<b>hi</b>" in result.response_signal.body
    assert result.response_signal.final_url.startswith(LAB + "/xss?q=")


def test_send_without_following_keeps_location(engine):
    attempt = engine.plan(LAB + "/redirect?url=/", ["url"], entries("//evil.com"))[0]
    result = engine.send(attempt, follow_redirects=False)
    assert result.response_signal.status_code == 302
    assert result.response_signal.location == "//evil.com"


def test_baseline_failure_is_soft(log):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    with Engine(logger=log, transport=httpx.MockTransport(refuse)) as engine:
        data = engine.baseline(LAB + "/")
    assert data.status_code == 0
    assert data.body == ""
