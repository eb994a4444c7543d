"""Shared data models for the probing pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Intensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value) -> "Intensity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.MEDIUM


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class CatalogEntry:
    """One payload yielded by a PayloadCatalog."""
    payload: str
    technique: str         # catalog key, e.g. "union"
    label: str             # human label, e.g. "Union + WAF Bypass"
    dialect: str           # "mysql", "linux", "html", ...
    meta: tuple = ()       # extra (key, value) pairs, kept hashable


@dataclass(frozen=True)
class PayloadRequest:
    """A payload substituted into one parameter of the target URL."""
    target_url: str
    parameter: str
    payload: str
    technique: str
    dialect: str
    label: str = ""
    meta: tuple = ()

    def meta_dict(self) -> Dict[str, Any]:
        return dict(self.meta)


@dataclass
class ResponseSignal:
    """Captured content of a payload response."""
    status_code: int = 0
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    location: str = ""     # Location header of the first response, if any
    final_url: str = ""
    elapsed: float = 0.0   # seconds


@dataclass
class PayloadOutcome:
    request: PayloadRequest
    response_signal: ResponseSignal
    elapsed_ms: float
    succeeded: bool = True


@dataclass
class PayloadError:
    """Failed payload request. Collected alongside outcomes, never raised."""
    request: PayloadRequest
    error: str


@dataclass
class Finding:
    """A single classified vulnerability finding."""
    parameter: str
    payload: str
    technique: str
    dialect: str
    severity: Severity
    evidence: str
    discriminator: str
    url: str = ""
    method: str = "GET"
    timestamp: str = field(default_factory=utcnow_iso)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self):
        return (self.parameter, self.discriminator)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "parameter": self.parameter,
            "payload": self.payload,
            "method": self.method,
            "severity": self.severity.value,
            "technique": self.technique,
            "evidence": self.evidence,
            "url": self.url,
            "timestamp": self.timestamp,
        }
        out.update(self.extra)
        return out

    def __str__(self):
        return (f"[{self.severity.value.upper()}] {self.technique} "
                f"@ {self.parameter} payload={self.payload!r} ({self.evidence})")


@dataclass
class ScanReport:
    target: str
    configuration: Dict[str, Any]
    findings: List[Finding]
    total: int
    generated_at: str = field(default_factory=utcnow_iso)
    severity_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.configuration)
        out.update({
            "vulnerabilities": [f.to_dict() for f in self.findings],
            "total": self.total,
            "severity_counts": dict(self.severity_counts),
            "timestamp": self.generated_at,
        })
        return out


@dataclass
class BaselineData:
    """Captured data from a clean (payloadless) request."""
    status_code: int = 0
    body: str = ""
    body_length: int = 0
    elapsed: float = 0.0
    headers: dict = field(default_factory=dict)

    @classmethod
    def from_signal(cls, signal: Optional[ResponseSignal]) -> "BaselineData":
        if signal is None:
            return cls()
        return cls(
            status_code=signal.status_code,
            body=signal.body,
            body_length=len(signal.body),
            elapsed=signal.elapsed,
            headers=dict(signal.headers),
        )
