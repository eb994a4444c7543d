import httpx
import pytest

from bughunt.core.errors import UpstreamFailure, ValidationError
from bughunt.recon.whois import WhoisLookup, rdap_fields

RDAP = {
    "objectClassName": "domain",
    "handle": "2336799_DOMAIN_COM-VRSN",
    "ldhName": "example.com",
    "status": ["client delete prohibited", "client transfer prohibited"],
    "events": [
        {"eventAction": "registration", "eventDate": "1995-08-14T04:00:00Z"},
        {"eventAction": "expiration", "eventDate": "2026-08-13T04:00:00Z"},
        {"eventAction": "last changed", "eventDate": "2025-08-14T07:01:39Z"},
    ],
    "entities": [{
        "roles": ["registrar"],
        "publicIds": [{"type": "IANA Registrar ID", "identifier": "376"}],
        "vcardArray": ["vcard", [["version", {}, "text", "4.0"],
                                 ["fn", {}, "text", "RESERVED-Internet Assigned Numbers Authority"]]],
        "entities": [{
            "roles": ["abuse"],
            "vcardArray": ["vcard", [["email", {}, "text", "abuse@iana.org"]]],
        }],
    }],
    "nameservers": [{"ldhName": "A.IANA-SERVERS.NET"}, {"ldhName": "B.IANA-SERVERS.NET"}],
    "secureDNS": {"delegationSigned": True},
}


def lookup(log, handler):
    return WhoisLookup(httpx.Client(transport=httpx.MockTransport(handler)), logger=log)


def test_rdap_fields_read_like_whois():
    rows = {(r["field"], r["data"]) for r in rdap_fields(RDAP)}
    assert ("Domain Name", "EXAMPLE.COM") in rows
    assert ("Registry Domain ID", "2336799_DOMAIN_COM-VRSN") in rows
    assert ("Registrar", "RESERVED-Internet Assigned Numbers Authority") in rows
    assert ("Registrar IANA ID", "376") in rows
    assert ("Registrar Abuse Contact Email", "abuse@iana.org") in rows
    assert ("Creation Date", "1995-08-14T04:00:00Z") in rows
    assert ("Registry Expiry Date", "2026-08-13T04:00:00Z") in rows
    assert ("Name Server", "b.iana-servers.net") in rows
    assert ("Domain Status", "client transfer prohibited") in rows
    assert ("DNSSEC", "signedDelegation") in rows
    assert rdap_fields(RDAP)[0]["value"] == "Domain Name: EXAMPLE.COM"


def test_rdap_fields_skip_missing_data():
    assert rdap_fields({"ldhName": "x.com", "entities": ["junk"]}) == [
        {"field": "Domain Name", "data": "X.COM", "value": "Domain Name: X.COM"}]


def test_lookup(log):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json=RDAP)

    report = lookup(log, handler).lookup("Example.com")
    assert seen == ["https://rdap.org/domain/example.com"]
    assert report["domain"] == "example.com"
    assert report["total"] == len(report["fields"])
    assert report["source"] == "rdap"


def test_unregistered_domain_is_empty(log):
    report = lookup(log, lambda request: httpx.Response(404)).lookup("example.com")
    assert report["fields"] == []
    assert report["note"] == "No registration data found"


@pytest.mark.parametrize("response", [
    httpx.Response(503, text="busy"),
    httpx.Response(200, json=["not", "an", "object"]),
    httpx.Response(200, text="<html>"),
])
def test_bad_rdap_answers_raise(log, response):
    with pytest.raises(UpstreamFailure):
        lookup(log, lambda request: response).lookup("example.com")


def test_unreachable(log):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamFailure):
        lookup(log, refuse).lookup("example.com")


def test_invalid_domain(log):
    with pytest.raises(ValidationError):
        lookup(log, lambda request: httpx.Response(200, json=RDAP)).lookup("bad_domain")
