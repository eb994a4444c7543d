"""Resolve which query parameters a scan should target."""

import re
from typing import Iterable, List, Optional

import httpx

from bughunt.core.errors import ValidationError

MAX_PARAMETERS = 10

_DOMAIN_RX = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{1,61}[a-zA-Z0-9]\.[a-zA-Z]{2,}$")


def validate_url(url) -> str:
    """Return *url* if it parses as an absolute http(s) URL."""
    if not url or not isinstance(url, str):
        raise ValidationError("URL is required")
    try:
        parsed = httpx.URL(url.strip())
    except (httpx.InvalidURL, TypeError, ValueError):
        raise ValidationError("Invalid URL format")
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValidationError("Invalid URL format")
    return url.strip()


def validate_domain(domain) -> str:
    if not domain or not isinstance(domain, str):
        raise ValidationError("Domain is required")
    domain = domain.strip().lower()
    if not _DOMAIN_RX.match(domain):
        raise ValidationError("Invalid domain format")
    return domain


def extract_parameters(url: str) -> List[str]:
    """Query-string keys of *url*, in order. Empty on a malformed URL."""
    try:
        return list(dict.fromkeys(httpx.URL(url).params.keys()))
    except (httpx.InvalidURL, TypeError, ValueError):
        return []


def resolve(target_url: str, explicit: Optional[str] = None,
            defaults: Iterable[str] = ()) -> List[str]:
    """
    Explicit comma-separated parameters win; otherwise the URL's own query
    keys followed by the tool's common parameter names. Capped at
    MAX_PARAMETERS either way.
    """
    if explicit:
        names = [p.strip() for p in str(explicit).split(",")]
        names = [p for p in names if p]
    else:
        names = extract_parameters(target_url) + list(defaults)

    names = list(dict.fromkeys(names))[:MAX_PARAMETERS]
    if not names:
        raise ValidationError("No parameters found to test")
    return names
