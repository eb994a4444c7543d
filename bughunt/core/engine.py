"""Payload fan-out: parameter x payload cross product over a bounded worker pool."""

import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, List, Sequence, Union

import httpx
from colorama import Style

from bughunt.core.config import ScanLimits
from bughunt.core.errors import UpstreamFailure
from bughunt.core.models import (
    BaselineData, CatalogEntry, Finding, PayloadError, PayloadOutcome,
    PayloadRequest, ResponseSignal,
)

MAX_BODY = 1_000_000

PayloadResult = Union[PayloadOutcome, PayloadError]
Executor = Callable[[PayloadRequest], PayloadOutcome]


class Engine:
    def __init__(self, proxy: str | None = None, logger=None,
                 limits: ScanLimits | None = None, user_agent: str = "bughunt/1.0",
                 verify: bool = False, transport: httpx.BaseTransport | None = None):
        self.name = "BugHunt"
        self.version = "1.0.0"
        self.logger = logger
        self.limits = limits or ScanLimits()
        self.client = httpx.Client(
            verify=verify, proxy=proxy, transport=transport,
            timeout=self.limits.timeout, headers={"User-Agent": user_agent})

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ---------- URL helpers ----------
    @staticmethod
    def build_url(base_url: str, parameter: str, payload: str) -> str:
        """Copy *base_url* with *parameter* set to *payload*."""
        return str(httpx.URL(base_url).copy_set_param(parameter, payload))

    def plan(self, target_url: str, parameters: Sequence[str],
             payloads: Sequence[CatalogEntry], per_parameter: int | None = None,
             limits: ScanLimits | None = None) -> List[PayloadRequest]:
        """Cross product parameters x payloads, capped per parameter."""
        limits = limits or self.limits
        if not parameters:
            return []
        cap = per_parameter or limits.per_parameter
        cap = max(1, min(cap, limits.max_payloads // len(parameters)))
        attempts = []
        for param in parameters:
            for entry in payloads[:cap]:
                attempts.append(PayloadRequest(
                    target_url=target_url,
                    parameter=param,
                    payload=entry.payload,
                    technique=entry.technique,
                    dialect=entry.dialect,
                    label=entry.label,
                    meta=entry.meta,
                ))
        return attempts

    # ---------- sending ----------
    def _signal(self, resp: httpx.Response) -> ResponseSignal:
        if resp.history:
            location = resp.history[0].headers.get("location", "")
        else:
            location = resp.headers.get("location", "")
        return ResponseSignal(
            status_code=resp.status_code,
            body=(resp.text or "")[:MAX_BODY],
            headers=dict(resp.headers),
            location=location,
            final_url=str(resp.url),
            elapsed=resp.elapsed.total_seconds(),
        )

    def fetch(self, url: str, follow_redirects: bool = True,
              timeout: float | None = None) -> ResponseSignal:
        resp = self.client.get(url, follow_redirects=follow_redirects,
                               timeout=timeout or self.limits.timeout)
        return self._signal(resp)

    def send(self, attempt: PayloadRequest, follow_redirects: bool = True,
             timeout: float | None = None) -> PayloadOutcome:
        """Default executor: one GET with the payload in place."""
        try:
            url = self.build_url(attempt.target_url, attempt.parameter, attempt.payload)
        except (httpx.InvalidURL, ValueError) as exc:
            raise UpstreamFailure(attempt.target_url, f"cannot build request URL: {exc}")

        start = time.perf_counter()
        signal = self.fetch(url, follow_redirects=follow_redirects, timeout=timeout)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if not signal.final_url:
            signal.final_url = url
        return PayloadOutcome(request=attempt, response_signal=signal,
                            elapsed_ms=elapsed_ms, succeeded=True)

    def baseline(self, url: str, follow_redirects: bool = True) -> BaselineData:
        """Clean request against the target. A failure yields an empty baseline."""
        try:
            return BaselineData.from_signal(self.fetch(url, follow_redirects=follow_redirects))
        except httpx.HTTPError as exc:
            if self.logger:
                self.logger.warn(f"Baseline request failed: {url}: {exc}")
            return BaselineData()

    def _run_one(self, execute_one: Executor, attempt: PayloadRequest) -> PayloadResult:
        try:
            return execute_one(attempt)
        except (httpx.HTTPError, httpx.InvalidURL, UpstreamFailure, ValueError) as exc:
            if self.logger:
                self.logger.warn(
                    f"Payload failed: {attempt.parameter}={attempt.payload!r}: {exc}")
            return PayloadError(request=attempt, error=str(exc) or exc.__class__.__name__)

    def execute(self, attempts: Sequence[PayloadRequest], execute_one: Executor | None = None,
                limits: ScanLimits | None = None) -> List[PayloadResult]:
        """
        Execute *attempts* on at most ``limits.workers`` threads.

        Results come back in attempt order. Failed attempts are returned as
        PayloadError values and never retried.
        """
        limits = limits or self.limits
        if execute_one is None:
            execute_one = partial(self.send, timeout=limits.timeout)
        if not attempts:
            return []

        with ThreadPoolExecutor(max_workers=max(1, limits.workers)) as pool:
            futures = [pool.submit(self._run_one, execute_one, p) for p in attempts]
            return [f.result() for f in futures]

    def run(self, target_url: str, parameters: Sequence[str],
            payloads: Sequence[CatalogEntry], execute_one: Executor | None = None,
            limits: ScanLimits | None = None,
            per_parameter: int | None = None) -> List[PayloadResult]:
        attempts = self.plan(target_url, parameters, payloads, per_parameter, limits)
        return self.execute(attempts, execute_one, limits)

    # ---------- scan ----------
    def scan(self, checker, target_url: str, parameters: Sequence[str],
             payloads: Sequence[CatalogEntry], per_parameter: int | None = None,
             limits: ScanLimits | None = None,
             execute_one: Executor | None = None) -> List[Finding]:
        limits = limits or self.limits
        attempts = self.plan(target_url, parameters, payloads, per_parameter, limits)

        if self.logger:
            self.logger.info(
                f"Scanning {checker.name} on {target_url} "
                f"({len(parameters)} params, {len(attempts)} attempts)")

        baseline = self.baseline(target_url, follow_redirects=checker.follow_redirects)
        if execute_one is None:
            execute_one = partial(self.send, follow_redirects=checker.follow_redirects,
                                  timeout=limits.timeout)

        findings: List[Finding] = []
        failed = 0
        for result in self.execute(attempts, execute_one, limits):
            if isinstance(result, PayloadError):
                failed += 1
                continue
            if self.logger and self.logger.verbose >= 2:
                self.logger.debug(
                    f"→ GET {result.request.parameter}={self.logger.PAY}"
                    f"{result.request.payload}{Style.RESET_ALL} "
                    f"(HTTP {result.response_signal.status_code})")
            finding = checker.classify(result, baseline)
            if finding is not None:
                findings.append(finding)
                if self.logger:
                    self.logger.finding(finding.severity.value, checker.name,
                                        finding.parameter, finding.payload,
                                        finding.evidence)

        if self.logger:
            if failed:
                self.logger.warn(f"{failed}/{len(attempts)} attempts failed for {checker.name}")
            if not findings:
                self.logger.fail(f"No findings for {checker.name}")
        return findings
