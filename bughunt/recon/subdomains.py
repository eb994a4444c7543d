"""Passive and active subdomain discovery with partial-failure semantics."""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List

import dns.exception
import dns.resolver
import httpx

from bughunt.core.errors import SourceUnavailable
from bughunt.core.models import utcnow_iso
from bughunt.core.params import validate_domain

COMPREHENSIVE_SUBDOMAINS = [
    "www", "mail", "ftp", "localhost", "webmail", "smtp", "pop", "ns1",
    "webdisk", "ns2", "cpanel", "whm", "autodiscover", "autoconfig", "m",
    "imap", "test", "ns", "blog", "pop3", "dev", "www2", "admin", "forum",
    "news", "vpn", "ns3", "mail2", "new", "mysql", "old", "www1", "email",
    "img", "www3", "mail1", "ftp2", "shop", "sql", "secure", "beta", "pic",
    "mobile", "stats", "stage", "staging", "app", "api", "cdn", "media",
    "static", "assets", "files", "upload", "downloads", "docs", "help",
    "support", "chat", "live", "demo", "sandbox", "portal", "dashboard",
    "panel", "control", "manage", "account", "user", "users", "client",
    "clients", "customer", "customers", "partner", "partners", "vendor",
    "vendors", "supplier",
]

DNS_CANDIDATES = 30
WORDLIST_COMMON = ["www", "mail", "ftp", "admin", "api"]
WORDLIST_PROBABLE = ["blog", "shop", "dev", "test", "support", "help", "docs"]

SOURCE_SETS = {
    "all": ["wordlist", "dns", "crtsh", "hackertarget"],
    "passive": ["wordlist", "crtsh", "hackertarget"],
    "dns": ["wordlist", "dns"],
    "crt": ["wordlist", "crtsh"],
}
DEFAULT_SOURCES = SOURCE_SETS["dns"]


def select_sources(sources: str) -> List[str]:
    """Unknown selectors fall back to wordlist + dns."""
    return list(SOURCE_SETS.get(str(sources or "all").lower(), DEFAULT_SOURCES))


def _entry(name: str, source: str, status: str) -> Dict[str, str]:
    return {"domain": name, "source": source, "status": status}


class SubdomainFinder:
    """
    Queries every selected source concurrently and merges the results.

    A source that fails raises SourceUnavailable; the failure is logged and
    the other sources still contribute. Entries are deduplicated on the
    subdomain name and sorted; a source that confirmed a name wins over the
    wordlist candidate for it.
    """

    def __init__(self, client: httpx.Client, logger=None, timeout: float = 5.0,
                 resolver=None, workers: int = 4):
        self.client = client
        self.logger = logger
        self.timeout = timeout
        self.workers = workers
        self._resolver = resolver
        self.sources: Dict[str, Callable[[str], List[Dict[str, str]]]] = {
            "wordlist": self.wordlist,
            "dns": self.dns,
            "crtsh": self.crtsh,
            "hackertarget": self.hackertarget,
        }

    # ---------- sources ----------
    def _get(self, source: str, url: str) -> httpx.Response:
        try:
            resp = self.client.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise SourceUnavailable(source, str(exc) or exc.__class__.__name__)
        if resp.status_code != 200:
            raise SourceUnavailable(source, f"HTTP {resp.status_code}")
        return resp

    def crtsh(self, domain: str) -> List[Dict[str, str]]:
        resp = self._get("crt.sh", f"https://crt.sh/?q=%.{domain}&output=json")
        try:
            certs = resp.json()
        except ValueError as exc:
            raise SourceUnavailable("crt.sh", f"bad JSON: {exc}")
        if certs is None:
            certs = []
        if not isinstance(certs, list):
            raise SourceUnavailable("crt.sh", "unexpected JSON shape")

        names = {}
        for cert in certs:
            if not isinstance(cert, dict):
                continue
            for name in str(cert.get("name_value") or "").split("\n"):
                name = name.strip().lower()
                if name.endswith(f".{domain}") and "*" not in name:
                    names.setdefault(name, None)
        return [_entry(n, "crt.sh", "found") for n in names]

    def hackertarget(self, domain: str) -> List[Dict[str, str]]:
        resp = self._get("hackertarget",
                         f"https://api.hackertarget.com/hostsearch/?q={domain}")
        names = {}
        for line in resp.text.splitlines():
            name = line.split(",")[0].strip().lower()
            if name.endswith(f".{domain}") and name != domain:
                names.setdefault(name, None)
        return [_entry(n, "hackertarget", "found") for n in names]

    @property
    def resolver(self):
        if self._resolver is None:
            try:
                self._resolver = dns.resolver.Resolver()
            except dns.resolver.NoResolverConfiguration as exc:
                raise SourceUnavailable("dns", f"no resolver configuration: {exc}")
            self._resolver.lifetime = self.timeout
        return self._resolver

    def _resolves(self, resolver, name: str) -> bool:
        try:
            resolver.resolve(name, "A")
            return True
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return False
        except dns.exception.Timeout:
            if self.logger:
                self.logger.debug(f"DNS timeout for {name}")
            return False

    def dns(self, domain: str) -> List[Dict[str, str]]:
        """A-record brute force over the most common labels."""
        names = [f"{sub}.{domain}" for sub in COMPREHENSIVE_SUBDOMAINS[:DNS_CANDIDATES]]
        resolver = self.resolver
        try:
            with ThreadPoolExecutor(max_workers=max(1, self.workers)) as pool:
                hits = list(pool.map(lambda n: self._resolves(resolver, n), names))
        except dns.resolver.NoNameservers as exc:
            raise SourceUnavailable("dns", str(exc))
        return [_entry(n, "dns-enumeration", "discovered")
                for n, hit in zip(names, hits) if hit]

    def wordlist(self, domain: str) -> List[Dict[str, str]]:
        """Unverified candidates from the built-in wordlist."""
        return ([_entry(f"{s}.{domain}", "wordlist-common", "enumerated")
                 for s in WORDLIST_COMMON]
                + [_entry(f"{s}.{domain}", "wordlist-probable", "enumerated")
                   for s in WORDLIST_PROBABLE])

    # ---------- join ----------
    def _query(self, name: str, domain: str) -> List[Dict[str, str]]:
        try:
            results = self.sources[name](domain)
        except SourceUnavailable as exc:
            if self.logger:
                self.logger.warn(f"{exc}; continuing with other sources")
            return []
        if self.logger:
            self.logger.debug(f"{name}: {len(results)} candidates")
        return results

    def find(self, domain: str, sources: str = "all") -> Dict:
        domain = validate_domain(domain)
        selected = select_sources(sources)
        if self.logger:
            self.logger.info(f"Enumerating subdomains for {domain} ({', '.join(selected)})")

        with ThreadPoolExecutor(max_workers=len(selected)) as pool:
            per_source = list(pool.map(lambda s: self._query(s, domain), selected))

        merged: Dict[str, Dict[str, str]] = {}
        for results in per_source:
            for entry in results:
                seen = merged.get(entry["domain"])
                # a confirmed hit replaces an unverified wordlist candidate
                if seen is None or (seen["status"] == "enumerated"
                                    and entry["status"] != "enumerated"):
                    merged[entry["domain"]] = entry
        subdomains = sorted(merged.values(), key=lambda e: e["domain"])

        if self.logger:
            self.logger.ok(f"{len(subdomains)} subdomains for {domain}")
        return {
            "domain": domain,
            "subdomains": subdomains,
            "total": len(subdomains),
            "sources": selected,
            "timestamp": utcnow_iso(),
            "note": ("Subdomain enumeration completed" if subdomains
                     else "No subdomains discovered"),
        }
