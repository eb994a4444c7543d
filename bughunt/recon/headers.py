"""HTTP security header grading for a single URL."""

from typing import Any, Dict, List

import httpx

from bughunt.core.errors import UpstreamFailure
from bughunt.core.models import utcnow_iso
from bughunt.core.params import validate_url

# header -> (weight, impact when present, impact when missing, missing type, recommendation)
SECURITY_HEADERS = {
    "Content-Security-Policy": (
        20, "Good - CSP implemented", "Warning - CSP not implemented", "warning",
        "Implement a strict Content-Security-Policy header"),
    "Strict-Transport-Security": (
        20, "Good - HSTS implemented", "Warning - HSTS not implemented", "warning",
        "Add 'Strict-Transport-Security: max-age=31536000; includeSubDomains'"),
    "X-Frame-Options": (
        10, "Good - Clickjacking protection", "Warning - Clickjacking protection missing",
        "warning", "Add 'X-Frame-Options: DENY' or 'SAMEORIGIN'"),
    "X-Content-Type-Options": (
        10, "Good - MIME type sniffing protection", "Warning - MIME sniffing allowed",
        "warning", "Add 'X-Content-Type-Options: nosniff'"),
    "X-XSS-Protection": (
        5, "Good - XSS protection set", "Warning - XSS protection not set", "warning",
        "Add 'X-XSS-Protection: 1; mode=block'"),
    "Referrer-Policy": (
        5, "Good - Referrer policy set", "Warning - Referrer policy not set", "warning",
        "Add 'Referrer-Policy: strict-origin-when-cross-origin'"),
    "Permissions-Policy": (
        5, "Good - Feature policy set", "Info - Feature policy not set", "error",
        "Add an appropriate Permissions-Policy header"),
}

# headers that leak server software
DISCLOSURE_HEADERS = ["Server", "X-Powered-By", "X-AspNet-Version"]


def grade(score: int) -> str:
    for floor, letter in ((90, "A+"), (80, "A"), (70, "B"), (60, "C"), (50, "D")):
        if score >= floor:
            return letter
    return "F"


def grade_headers(headers: Dict[str, str]) -> Dict[str, Any]:
    """Grade a response header map. Header names match case-insensitively."""
    lower = {k.lower(): v for k, v in headers.items()}
    rows: List[Dict[str, Any]] = []
    earned = possible = 0

    for name, (weight, good, bad, missing_type, advice) in SECURITY_HEADERS.items():
        value = lower.get(name.lower())
        possible += weight
        if value is not None:
            earned += weight
            rows.append({"header": name, "value": value, "present": True,
                         "type": "success", "security_impact": good,
                         "recommendation": "Header is properly configured"})
        else:
            rows.append({"header": name, "value": "Missing", "present": False,
                         "type": missing_type, "security_impact": bad,
                         "recommendation": advice})

    score = int(earned * 100 / possible) if possible else 0
    exposed = [f"{name}: {lower[name.lower()]}" for name in DISCLOSURE_HEADERS
               if name.lower() in lower]
    secure = sum(1 for r in rows if r["present"])
    return {
        "headers": rows,
        "secure": secure,
        "missing": len(rows) - secure,
        "total": len(rows),
        "score": score,
        "grade": grade(score),
        "exposed": exposed,
    }


def analyze(engine, url: str, timeout: float = None) -> Dict[str, Any]:
    """Fetch *url* once (following redirects) and grade its headers."""
    url = validate_url(url)
    if engine.logger:
        engine.logger.info(f"Analyzing security headers for {url}")
    try:
        signal = engine.fetch(url, follow_redirects=True, timeout=timeout)
    except httpx.HTTPError as exc:
        raise UpstreamFailure(url, str(exc) or exc.__class__.__name__)

    report = {"url": url, "status_code": signal.status_code}
    report.update(grade_headers(signal.headers))
    report["timestamp"] = utcnow_iso()
    if engine.logger:
        engine.logger.ok(f"{report['secure']}/{report['total']} security headers present "
                         f"(grade {report['grade']})")
    return report
