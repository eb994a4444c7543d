"""DNS record lookups: one query per record type, TTL kept per answer."""

from typing import Any, Dict, List, Optional

import dns.exception
import dns.resolver

from bughunt.core.errors import UpstreamFailure, ValidationError
from bughunt.core.models import utcnow_iso
from bughunt.core.params import validate_domain

RECORD_TYPES = ["A", "AAAA", "MX", "NS", "TXT", "CNAME", "SOA"]

RECORD_SETS = {
    "all": RECORD_TYPES,
    "basic": ["A", "AAAA", "MX", "NS"],
    "security": ["SPF", "DMARC", "DKIM"],
}

# security records are TXT lookups on a derived name, filtered by prefix
SECURITY_LOOKUPS = {
    "SPF": ("{domain}", "v=spf1"),
    "DMARC": ("_dmarc.{domain}", "v=dmarc1"),
    "DKIM": ("default._domainkey.{domain}", "v=dkim1"),
}


def select_record_types(record_types: str, custom: Optional[str] = None) -> List[str]:
    """
    Map the ``recordTypes`` selector onto concrete types. ``custom`` takes a
    comma-separated list checked against the known types.
    """
    selector = str(record_types or "all").lower()
    if selector in RECORD_SETS:
        return list(RECORD_SETS[selector])
    if selector != "custom":
        raise ValidationError(f"Invalid recordTypes: {record_types}")

    wanted = [t.strip().upper() for t in str(custom or "").split(",") if t.strip()]
    known = RECORD_TYPES + list(SECURITY_LOOKUPS)
    unknown = [t for t in wanted if t not in known]
    if unknown:
        raise ValidationError(f"Unsupported record types: {', '.join(unknown)}")
    if not wanted:
        raise ValidationError("customTypes is required when recordTypes is custom")
    return list(dict.fromkeys(wanted))


def _text(rdata, rdtype: str) -> str:
    if rdtype == "MX":
        return f"{rdata.preference} {rdata.exchange}"
    if rdtype == "SOA":
        return f"{rdata.mname} {rdata.rname} {rdata.serial}"
    if rdtype == "TXT":
        return b"".join(rdata.strings).decode("utf-8", errors="replace")
    return str(rdata)


class DNSScanner:
    """
    Resolves each selected record type for a domain. Names or types with no
    data contribute nothing; a timeout on one type is logged and the rest
    still run.
    """

    def __init__(self, logger=None, timeout: float = 5.0, resolver=None):
        self.logger = logger
        self.timeout = timeout
        self._resolver = resolver

    @property
    def resolver(self):
        if self._resolver is None:
            try:
                self._resolver = dns.resolver.Resolver()
            except dns.resolver.NoResolverConfiguration as exc:
                raise UpstreamFailure("dns", f"no resolver configuration: {exc}")
            self._resolver.lifetime = self.timeout
        return self._resolver

    def _answers(self, name: str, rdtype: str):
        try:
            answer = self.resolver.resolve(name, rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None, []
        except (dns.exception.Timeout, dns.resolver.NoNameservers) as exc:
            if self.logger:
                self.logger.warn(f"DNS {rdtype} lookup for {name} failed: {exc}")
            return None, []
        rrset = getattr(answer, "rrset", None)
        return (rrset.ttl if rrset is not None else None), list(answer)

    def lookup(self, domain: str, rdtype: str) -> List[Dict[str, Any]]:
        if rdtype in SECURITY_LOOKUPS:
            template, prefix = SECURITY_LOOKUPS[rdtype]
            ttl, rdatas = self._answers(template.format(domain=domain), "TXT")
            values = [_text(r, "TXT") for r in rdatas]
            values = [v for v in values if v.lower().startswith(prefix)]
        else:
            ttl, rdatas = self._answers(domain, rdtype)
            values = [_text(r, rdtype) for r in rdatas]
        return [{"record_type": rdtype, "value": v, "ttl": ttl} for v in values]

    def scan(self, domain: str, record_types: str = "all",
             custom_types: Optional[str] = None) -> Dict[str, Any]:
        domain = validate_domain(domain)
        selected = select_record_types(record_types, custom_types)
        if self.logger:
            self.logger.info(f"Querying {', '.join(selected)} records for {domain}")

        records = []
        for rdtype in selected:
            records.extend(self.lookup(domain, rdtype))

        if self.logger:
            self.logger.ok(f"Found {len(records)} DNS records for {domain}")
        return {
            "domain": domain,
            "recordTypes": str(record_types or "all").lower(),
            "queried": selected,
            "records": records,
            "total": len(records),
            "timestamp": utcnow_iso(),
        }
