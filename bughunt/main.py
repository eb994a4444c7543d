import argparse
import json
import sys
from dataclasses import replace

from bughunt.checkers.lfi import LFI
from bughunt.checkers.open_redirect import OpenRedirect
from bughunt.checkers.sqli import SQLi
from bughunt.checkers.xss import XSS
from bughunt.core.config import Settings
from bughunt.core.engine import Engine
from bughunt.core.errors import ToolkitError
from bughunt.recon import headers as header_analyzer
from bughunt.recon.dns_records import DNSScanner
from bughunt.recon.subdomains import SubdomainFinder
from bughunt.recon.whois import WhoisLookup
from bughunt.reporters import export
from bughunt.reporters.console import Log


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bughunt", description="Bug hunting toolkit")
    p.add_argument("-v", "--verbose", action="count", default=1, help="-v, -vv")
    p.add_argument("--proxy", help="Proxy (e.g. http://127.0.0.1:8080)")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    scan = sub.add_parser("scan", help="Run one tool from the command line")
    tools = scan.add_subparsers(dest="tool", required=True)

    def target(tp, field="url"):
        tp.add_argument(field)
        tp.add_argument("--timeout", type=int, default=10)
        tp.add_argument("--export", choices=export.FORMATS)
        tp.add_argument("--output", help="Export file (default: stdout)")
        return tp

    sqli = target(tools.add_parser("sqli"))
    sqli.add_argument("--parameters")
    sqli.add_argument("--injection-type", default="all")
    sqli.add_argument("--database-type", default="auto")
    sqli.add_argument("--intensity", default="medium", choices=["low", "medium", "high"])

    xss = target(tools.add_parser("xss"))
    xss.add_argument("--parameters")
    xss.add_argument("--payload-type", default="all")
    xss.add_argument("--intensity", default="medium", choices=["low", "medium", "high"])

    lfi = target(tools.add_parser("lfi"))
    lfi.add_argument("--parameters")
    lfi.add_argument("--target-files", default="all")
    lfi.add_argument("--custom-files")
    lfi.add_argument("--traversal-depth", type=int, default=5)
    lfi.add_argument("--bypass-techniques", default="all")

    redirect = target(tools.add_parser("redirect"))
    redirect.add_argument("--redirect-target", required=True)
    redirect.add_argument("--parameters")
    redirect.add_argument("--test-type", default="all")

    subdomain = target(tools.add_parser("subdomain"), field="domain")
    subdomain.add_argument("--sources", default="all",
                           choices=["all", "passive", "dns", "crt"])

    dns = target(tools.add_parser("dns"), field="domain")
    dns.add_argument("--record-types", default="all",
                     choices=["all", "basic", "security", "custom"])
    dns.add_argument("--custom-types", help="Comma list for --record-types custom, e.g. A,MX,SPF")

    target(tools.add_parser("whois"), field="domain")

    target(tools.add_parser("headers"))
    return p


def request_of(args) -> dict:
    """Map CLI flags onto the JSON request body the API takes."""
    fields = {
        "url": "url", "parameters": "parameters", "timeout": "timeout",
        "injection_type": "injectionType", "database_type": "databaseType",
        "intensity": "intensity", "payload_type": "payloadType",
        "target_files": "targetFiles", "custom_files": "customFiles",
        "traversal_depth": "traversalDepth", "bypass_techniques": "bypassTechniques",
        "redirect_target": "redirectTarget", "test_type": "testType",
    }
    return {key: getattr(args, attr) for attr, key in fields.items()
            if getattr(args, attr, None) is not None}


CHECKERS = {"sqli": SQLi, "xss": XSS, "lfi": LFI, "redirect": OpenRedirect}


def run_scan(args, settings: Settings, log: Log) -> dict:
    with Engine(proxy=args.proxy, logger=log, limits=settings.limits(),
                user_agent=settings.user_agent, verify=settings.verify_tls) as engine:
        if args.tool in CHECKERS:
            checker = CHECKERS[args.tool].from_request(request_of(args))
            return checker.scan(engine, max_timeout=settings.max_timeout).to_dict()
        timeout = settings.limits().with_timeout(args.timeout, settings.max_timeout).timeout
        if args.tool == "subdomain":
            finder = SubdomainFinder(engine.client, logger=log, timeout=timeout,
                                     workers=settings.workers)
            return finder.find(args.domain, args.sources)
        if args.tool == "dns":
            scanner = DNSScanner(logger=log, timeout=timeout)
            return scanner.scan(args.domain, args.record_types, args.custom_types)
        if args.tool == "whois":
            return WhoisLookup(engine.client, logger=log, timeout=timeout).lookup(args.domain)
        return header_analyzer.analyze(engine, args.url, timeout=timeout)


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = replace(Settings.from_env(), verbose=args.verbose)
    log = Log(verbose=args.verbose)

    if args.command == "serve":
        from bughunt.server import create_app

        host = args.host or settings.host
        port = args.port or settings.port
        log.info(f"Serving API on http://{host}:{port}")
        create_app(settings, logger=log).run(host=host, port=port, threaded=True)
        return 0

    try:
        report = run_scan(args, settings, log)
    except ToolkitError as exc:
        log.error(str(exc))
        return 2

    if not args.export:
        print(json.dumps(report, indent=2))
    elif args.output:
        export.write(report, args.export, args.output)
        log.ok(f"Exported {report.get('total', 0)} rows to {args.output}")
    else:
        print(export.render(export.rows_of(report), args.export))
    return 0


if __name__ == "__main__":
    sys.exit(main())
