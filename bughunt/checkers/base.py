"""Abstract base for all vulnerability checkers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from bughunt.core import params as param_resolver
from bughunt.core.aggregate import aggregate
from bughunt.core.config import ScanLimits
from bughunt.core.engine import Engine
from bughunt.core.errors import ValidationError
from bughunt.core.models import (
    BaselineData, CatalogEntry, Finding, Intensity, PayloadOutcome,
    ScanReport, Severity,
)


class BaseChecker(ABC):
    """
    Every checker owns one scan: its target, its payload selection and the
    classification of each payload outcome.

    Subclasses implement get_payloads(), classify() and configuration().
    """

    name: str = "Unnamed Checker"
    # common parameter names appended to the URL's own query keys
    common_params: Sequence[str] = ()
    # per-parameter payload cap by intensity
    caps: Dict[Intensity, int] = {Intensity.LOW: 10, Intensity.MEDIUM: 20, Intensity.HIGH: 30}
    follow_redirects: bool = True

    def __init__(self, url: str, parameters: Optional[str] = None,
                 intensity=Intensity.MEDIUM, timeout=10):
        self.url = param_resolver.validate_url(url)
        self.explicit_parameters = parameters
        self.intensity = Intensity.parse(intensity)
        self.timeout = timeout
        self._parameters: Optional[List[str]] = None

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def get_payloads(self) -> List[CatalogEntry]:
        """Return the payloads to inject into every parameter."""
        ...

    @abstractmethod
    def classify(self, outcome: PayloadOutcome,
                 baseline: Optional[BaselineData] = None) -> Optional[Finding]:
        """
        Inspect *outcome* (injected) against *baseline* (clean).
        Return a Finding if the response carries evidence, else None.
        """
        ...

    @abstractmethod
    def configuration(self) -> Dict[str, Any]:
        """Request configuration echoed back in the report."""
        ...

    @property
    def parameters(self) -> List[str]:
        if self._parameters is None:
            self._parameters = param_resolver.resolve(
                self.url, self.explicit_parameters, self.common_params)
        return self._parameters

    def per_parameter(self) -> int:
        return self.caps[self.intensity]

    def scan(self, engine, limits: Optional[ScanLimits] = None,
             max_timeout: float = 30.0) -> ScanReport:
        """Resolve, send, classify and aggregate."""
        limits = (limits or engine.limits).with_timeout(self.timeout, max_timeout)
        parameters = self.parameters
        findings = engine.scan(self, self.url, parameters, self.get_payloads(),
                               per_parameter=self.per_parameter(), limits=limits)
        config = {"url": self.url, "parameters": parameters}
        config.update(self.configuration())
        return aggregate(findings, self.url, config)

    # ── shared helpers ──────────────────────────────────────────

    @staticmethod
    def option(data: Dict[str, Any], key: str, default=None, choices=None):
        """Read a request field, checking it against *choices* if given."""
        value = data.get(key)
        if value is None or value == "":
            return default
        if choices is not None:
            value = str(value).lower()
            if value not in choices:
                raise ValidationError(f"Invalid {key}: {value}")
        return value

    def finding(self, outcome: PayloadOutcome, severity: Severity, evidence: str,
                discriminator: str, **extra) -> Finding:
        req = outcome.request
        return Finding(
            parameter=req.parameter,
            payload=req.payload,
            technique=req.label or req.technique,
            dialect=req.dialect,
            severity=severity,
            evidence=evidence,
            discriminator=discriminator,
            url=Engine.build_url(req.target_url, req.parameter, req.payload),
            extra=extra,
        )
