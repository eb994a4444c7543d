"""Error taxonomy shared by the scanner tools and the HTTP API."""


class ToolkitError(Exception):
    """Base for every error the toolkit raises on purpose."""

    status_code = 500


class ValidationError(ToolkitError):
    """Malformed target URL/domain or an empty parameter set."""

    status_code = 400


class RateLimitExceeded(ToolkitError):
    status_code = 429

    def __init__(self, client_id: str, retry_after: float = 0.0, remaining: int = 0):
        super().__init__("Rate limit exceeded")
        self.client_id = client_id
        self.retry_after = retry_after
        self.remaining = remaining


class UpstreamFailure(ToolkitError):
    """An outbound request failed (network error, timeout, bad URL)."""

    status_code = 502

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class SourceUnavailable(ToolkitError):
    """A passive recon source could not be queried."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason
