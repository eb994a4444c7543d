import httpx
import pytest

from bughunt.core.config import ScanLimits
from bughunt.core.engine import Engine
from bughunt.core.models import (
    BaselineData, PayloadOutcome, PayloadRequest, ResponseSignal,
)
from bughunt.reporters.console import Log
from vuln_lab.app import create_lab

LAB = "http://lab.test"


@pytest.fixture
def lab_transport():
    return httpx.WSGITransport(app=create_lab())


@pytest.fixture
def log():
    return Log(verbose=0)


@pytest.fixture
def engine(lab_transport, log):
    with Engine(logger=log, limits=ScanLimits(workers=4), transport=lab_transport) as eng:
        yield eng


def outcome(payload="x", parameter="id", technique="union", dialect="mysql",
            label="Union", body="", status=200, elapsed=0.1, location="",
            target_url=LAB + "/page?id=1", meta=()):
    """A PayloadOutcome built by hand, for classifier tests."""
    req = PayloadRequest(target_url=target_url, parameter=parameter, payload=payload,
                       technique=technique, dialect=dialect, label=label, meta=meta)
    signal = ResponseSignal(status_code=status, body=body, location=location,
                            final_url=target_url, elapsed=elapsed)
    return PayloadOutcome(request=req, response_signal=signal, elapsed_ms=elapsed * 1000)


def baseline(body="<p>hello</p>", status=200, elapsed=0.1):
    return BaselineData(status_code=status, body=body, body_length=len(body), elapsed=elapsed)
