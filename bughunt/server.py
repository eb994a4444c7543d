"""JSON API exposing every tool as a POST route."""

import math

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from bughunt.checkers.lfi import LFI
from bughunt.checkers.open_redirect import OpenRedirect
from bughunt.checkers.sqli import SQLi
from bughunt.checkers.xss import XSS
from bughunt.core.config import Settings
from bughunt.core.engine import Engine
from bughunt.core.errors import RateLimitExceeded, ToolkitError, ValidationError
from bughunt.core.ratelimit import RateLimiter
from bughunt.recon import headers as header_analyzer
from bughunt.recon.dns_records import DNSScanner
from bughunt.recon.subdomains import SubdomainFinder
from bughunt.recon.whois import WhoisLookup
from bughunt.reporters.console import Log

SCANNERS = {
    "custom-sqli": SQLi,
    "xss-scanner": XSS,
    "lfi-checker": LFI,
    "open-redirect": OpenRedirect,
}

# limiter keys are swept once the map grows past this
PRUNE_THRESHOLD = 1024


def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def create_app(settings: Settings = None, logger: Log = None,
               limiter: RateLimiter = None, transport=None, resolver=None) -> Flask:
    """
    Build the API application.

    ``transport`` is handed to every outbound httpx client and ``resolver``
    to the DNS lookups; both exist so tests can run without the network.
    """
    settings = settings or Settings.from_env()
    logger = logger or Log(verbose=settings.verbose)

    app = Flask(__name__)
    app.config["BUGHUNT_SETTINGS"] = settings
    app.extensions["rate_limiter"] = limiter or RateLimiter(
        max_requests=settings.rate_limit_max, window_ms=settings.rate_limit_window_ms)

    def new_engine() -> Engine:
        return Engine(logger=logger, limits=settings.limits(),
                      user_agent=settings.user_agent, verify=settings.verify_tls,
                      transport=transport)

    def clamp(timeout) -> float:
        return settings.limits().with_timeout(timeout, settings.max_timeout).timeout

    # ---------- admission ----------
    @app.before_request
    def throttle():
        if not request.path.startswith("/api/tools/"):
            return None
        rl: RateLimiter = app.extensions["rate_limiter"]
        if len(rl) > PRUNE_THRESHOLD:
            rl.prune()
        client_id = request.headers.get(settings.trusted_header) or "unknown"
        if not rl.is_allowed(client_id):
            raise RateLimitExceeded(client_id, rl.retry_after(client_id),
                                    rl.get_remaining_requests(client_id))
        return None

    # ---------- errors ----------
    @app.errorhandler(ToolkitError)
    def toolkit_error(exc: ToolkitError):
        body = {"error": str(exc)}
        if isinstance(exc, RateLimitExceeded):
            body["remaining"] = exc.remaining
        resp = jsonify(body)
        resp.status_code = exc.status_code
        if isinstance(exc, RateLimitExceeded):
            logger.warn(f"Rate limit exceeded for {exc.client_id}")
            resp.headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
            resp.headers["X-RateLimit-Remaining"] = str(exc.remaining)
        return resp

    @app.errorhandler(Exception)
    def internal_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description}), exc.code
        data = request.get_json(silent=True)
        target = (data.get("url") or data.get("domain")) if isinstance(data, dict) else None
        logger.error(f"{request.path} failed for {target}: {exc!r}")
        return jsonify({"error": "Internal server error"}), 500

    # ---------- routes ----------
    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    def scanner_view(checker_cls):
        def view():
            checker = checker_cls.from_request(_body())
            with new_engine() as engine:
                report = checker.scan(engine, max_timeout=settings.max_timeout)
            return jsonify(report.to_dict())
        return view

    for route, checker_cls in SCANNERS.items():
        app.add_url_rule(f"/api/tools/{route}", endpoint=route,
                         view_func=scanner_view(checker_cls), methods=["POST"])

    @app.post("/api/tools/subdomain")
    def subdomain():
        data = _body()
        with new_engine() as engine:
            finder = SubdomainFinder(engine.client, logger=logger,
                                     timeout=clamp(data.get("timeout", settings.recon_timeout)),
                                     resolver=resolver, workers=settings.workers)
            report = finder.find(data.get("domain"), data.get("sources") or "all")
        return jsonify(report)

    @app.post("/api/tools/dns-scanner")
    def dns_scanner():
        data = _body()
        scanner = DNSScanner(logger=logger, resolver=resolver,
                             timeout=clamp(data.get("timeout", settings.recon_timeout)))
        return jsonify(scanner.scan(data.get("domain"), data.get("recordTypes") or "all",
                                    data.get("customTypes")))

    @app.post("/api/tools/whois")
    def whois():
        data = _body()
        with new_engine() as engine:
            lookup = WhoisLookup(engine.client, logger=logger,
                                 timeout=clamp(data.get("timeout", settings.recon_timeout)))
            report = lookup.lookup(data.get("domain"))
        return jsonify(report)

    @app.post("/api/tools/http-headers")
    def http_headers():
        data = _body()
        with new_engine() as engine:
            report = header_analyzer.analyze(engine, data.get("url"),
                                             timeout=clamp(data.get("timeout", 10)))
        return jsonify(report)

    return app
