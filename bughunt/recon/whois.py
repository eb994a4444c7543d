"""Domain registration lookup over RDAP, flattened into WHOIS-style fields."""

from typing import Any, Dict, List, Optional

import httpx

from bughunt.core.errors import UpstreamFailure
from bughunt.core.models import utcnow_iso
from bughunt.core.params import validate_domain

RDAP_URL = "https://rdap.org/domain/{domain}"

EVENT_FIELDS = {
    "registration": "Creation Date",
    "last changed": "Updated Date",
    "expiration": "Registry Expiry Date",
}


def _vcard(entity: Dict[str, Any], key: str) -> Optional[str]:
    vcard = entity.get("vcardArray") or []
    items = vcard[1] if len(vcard) > 1 and isinstance(vcard[1], list) else []
    for item in items:
        if isinstance(item, list) and len(item) > 3 and item[0] == key:
            return str(item[3])
    return None


def _entities(data: Dict[str, Any], role: str) -> List[Dict[str, Any]]:
    return [e for e in data.get("entities") or []
            if isinstance(e, dict) and role in (e.get("roles") or [])]


def rdap_fields(data: Dict[str, Any]) -> List[Dict[str, str]]:
    """Field/data rows in the order a WHOIS record reads."""
    rows = []

    def add(field, value):
        if value:
            rows.append({"field": field, "data": str(value), "value": f"{field}: {value}"})

    add("Domain Name", str(data.get("ldhName") or "").upper())
    add("Registry Domain ID", data.get("handle"))

    for registrar in _entities(data, "registrar")[:1]:
        add("Registrar", _vcard(registrar, "fn"))
        for pid in registrar.get("publicIds") or []:
            if isinstance(pid, dict) and "IANA" in str(pid.get("type", "")):
                add("Registrar IANA ID", pid.get("identifier"))
        for abuse in _entities(registrar, "abuse")[:1]:
            add("Registrar Abuse Contact Email", _vcard(abuse, "email"))
            add("Registrar Abuse Contact Phone", _vcard(abuse, "tel"))

    events = {e.get("eventAction"): e.get("eventDate")
              for e in data.get("events") or [] if isinstance(e, dict)}
    for action, field in EVENT_FIELDS.items():
        add(field, events.get(action))

    for status in data.get("status") or []:
        add("Domain Status", status)
    for ns in data.get("nameservers") or []:
        if isinstance(ns, dict):
            add("Name Server", str(ns.get("ldhName") or "").lower())

    secure = data.get("secureDNS")
    if isinstance(secure, dict):
        add("DNSSEC", "signedDelegation" if secure.get("delegationSigned") else "unsigned")
    return rows


class WhoisLookup:
    def __init__(self, client: httpx.Client, logger=None, timeout: float = 5.0):
        self.client = client
        self.logger = logger
        self.timeout = timeout

    def lookup(self, domain: str) -> Dict[str, Any]:
        domain = validate_domain(domain)
        if self.logger:
            self.logger.info(f"RDAP lookup for {domain}")

        url = RDAP_URL.format(domain=domain)
        try:
            resp = self.client.get(url, timeout=self.timeout, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(url, str(exc) or exc.__class__.__name__)

        if resp.status_code == 404:
            fields = []
        elif resp.status_code != 200:
            raise UpstreamFailure(url, f"HTTP {resp.status_code}")
        else:
            try:
                data = resp.json()
            except ValueError as exc:
                raise UpstreamFailure(url, f"bad JSON: {exc}")
            if not isinstance(data, dict):
                raise UpstreamFailure(url, "unexpected JSON shape")
            fields = rdap_fields(data)

        if self.logger:
            self.logger.ok(f"{len(fields)} registration fields for {domain}")
        return {
            "domain": domain,
            "fields": fields,
            "total": len(fields),
            "source": "rdap",
            "note": ("Registration data retrieved" if fields
                     else "No registration data found"),
            "timestamp": utcnow_iso(),
        }
