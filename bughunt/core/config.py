"""Runtime settings for the toolkit, read from BUGHUNT_* environment variables."""

import os
from dataclasses import dataclass, fields, replace

ENV_PREFIX = "BUGHUNT_"


@dataclass(frozen=True)
class ScanLimits:
    """Bounds applied to one scan invocation."""
    workers: int = 8
    max_payloads: int = 300
    timeout: float = 10.0
    per_parameter: int = 10

    def with_timeout(self, seconds, ceiling: float = 30.0) -> "ScanLimits":
        """Clamp a caller-declared timeout into [1, ceiling]."""
        try:
            value = float(seconds)
        except (TypeError, ValueError):
            value = self.timeout
        return replace(self, timeout=min(max(value, 1.0), ceiling))


@dataclass
class Settings:
    host: str = "127.0.0.1"
    port: int = 5000
    verbose: int = 1

    rate_limit_max: int = 10
    rate_limit_window_ms: int = 60000

    workers: int = 8
    max_payloads: int = 300
    default_timeout: float = 10.0
    max_timeout: float = 30.0
    recon_timeout: float = 5.0

    user_agent: str = "bughunt/1.0"
    verify_tls: bool = False
    trusted_header: str = "X-Forwarded-For"

    def limits(self) -> ScanLimits:
        return ScanLimits(
            workers=self.workers,
            max_payloads=self.max_payloads,
            timeout=self.default_timeout,
        )

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _coerce(f.default, raw)
        return cls(**values)


def _coerce(default, raw: str):
    raw = raw.strip()
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
