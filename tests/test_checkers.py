import pytest

from bughunt.checkers.lfi import LFI, PAYLOADS_PER_FILE, file_payloads
from bughunt.checkers.open_redirect import OpenRedirect, target_domain
from bughunt.checkers.sqli import SQLi
from bughunt.checkers.xss import XSS, determine_context
from bughunt.core.errors import ValidationError
from bughunt.core.models import Severity
from conftest import LAB, baseline, outcome

URL = LAB + "/page?id=1"


# ---------- SQLi ----------

@pytest.mark.parametrize("evidence_body", ["", "SQL syntax error near", "<p>fine</p>"])
def test_stacked_is_always_high(evidence_body):
    assert SQLi.severity("stacked", "Stacked") is Severity.HIGH
    checker = SQLi(URL, injection_type="stacked")
    finding = checker.classify(
        outcome(technique="stacked", label="Stacked", status=500, body=evidence_body),
        baseline())
    assert finding.severity is Severity.HIGH


def test_error_is_always_medium():
    assert SQLi.severity("error", "Error") is Severity.MEDIUM
    checker = SQLi(URL)
    finding = checker.classify(
        outcome(technique="error", label="Error + WAF Bypass",
                body="Warning: pg_query(): Query failed"), baseline())
    assert finding.severity is Severity.MEDIUM
    assert finding.evidence == "SQL error detected: warning: pg_"


def test_union_label_is_high_and_boolean_low():
    assert SQLi.severity("boolean", "Union") is Severity.HIGH
    assert SQLi.severity("boolean", "Boolean") is Severity.LOW
    assert SQLi.severity("time", "Time") is Severity.MEDIUM


def test_sqli_fingerprint_already_in_baseline_is_ignored():
    checker = SQLi(URL)
    noisy = baseline(body="<p>Docs: how to fix a SQL syntax problem</p>")
    assert checker.classify(outcome(body=noisy.body + "<p>x</p>"), noisy) is None


def test_sqli_union_leak_and_fields():
    checker = SQLi(URL, injection_type="union", database_type="mysql")
    finding = checker.classify(outcome(body="5.7.33-MySQL"), baseline())
    assert finding is not None
    assert finding.to_dict()["database_type"] == "mysql"
    assert finding.to_dict()["injection_type"] == "union"
    assert finding.discriminator == "union"
    assert finding.url == LAB + "/page?id=x"


def test_sqli_time_delay_against_baseline():
    checker = SQLi(URL)
    slow = outcome(technique="time", label="Time", elapsed=5.3)
    assert checker.classify(slow, baseline(elapsed=0.2)).severity is Severity.MEDIUM
    fast = outcome(technique="time", label="Time", elapsed=1.0)
    assert checker.classify(fast, baseline(elapsed=0.2)) is None


def test_sqli_server_error_only_when_new():
    checker = SQLi(URL)
    assert checker.classify(outcome(technique="boolean", label="Boolean", status=500),
                            baseline()) is not None
    assert checker.classify(outcome(technique="boolean", label="Boolean", status=500),
                            baseline(status=500)) is None


def test_sqli_request_validation():
    with pytest.raises(ValidationError):
        SQLi.from_request({"url": URL, "injectionType": "blind"})
    with pytest.raises(ValidationError):
        SQLi.from_request({"url": URL, "databaseType": "sqlite"})
    checker = SQLi.from_request({"url": URL, "injectionType": "UNION", "testMethod": "post"})
    assert checker.injection_type == "union"
    assert checker.configuration()["testMethod"] == "POST"


def test_sqli_caps_by_intensity():
    assert SQLi(URL, intensity="low").per_parameter() == 10
    assert SQLi(URL, intensity="high").per_parameter() == 30
    assert SQLi(URL, intensity="bogus").intensity.value == "medium"


# ---------- XSS ----------

def test_xss_payload_counts():
    assert len(XSS(URL, payload_type="basic", intensity="low").get_payloads()) == 5
    assert len(XSS(URL, payload_type="reflected", intensity="low").get_payloads()) == 11
    assert len(XSS(URL, intensity="medium").get_payloads()) == 22 + 3
    assert len(XSS(URL, intensity="high").get_payloads()) == 22 + 6
    assert XSS(URL, payload_type="nonsense").payload_type == "basic"


@pytest.mark.parametrize("body,context", [
    ('<input value="<b>">', "HTML_ATTRIBUTE"),
    ("<script>var a='<b>'</script>", "JAVASCRIPT"),
    ("<style><b></style>", "CSS"),
    ("<!-- <b> -->", "HTML_COMMENT"),
    ('<a href="/x"><b></a>', "URL"),
    ("<p><b></p>", "HTML_BODY"),
])
def test_determine_context(body, context):
    assert determine_context(body, "<b>") == context


def test_xss_reflection_severity():
    checker = XSS(URL)
    payload = "<script>alert('XSS')</script>"
    finding = checker.classify(outcome(payload=payload, body=f"<p>{payload}</p>"), baseline())
    assert finding.severity is Severity.HIGH
    assert finding.to_dict()["context"] == "JAVASCRIPT"
    assert finding.to_dict()["vulnerability_type"] == "Reflected XSS"

    payload = "<svg/onload=alert('Reflected XSS')>"
    finding = checker.classify(outcome(payload=payload, body=f"<p>{payload}</p>"), baseline())
    assert finding.severity is Severity.MEDIUM


def test_xss_escaped_echo_is_not_a_finding():
    checker = XSS(URL)
    payload = "<img src=x onerror=alert('XSS')>"
    escaped = "<p>&lt;img src=x onerror=alert(&#39;XSS&#39;)&gt;</p>"
    assert checker.classify(outcome(payload=payload, body=escaped), baseline()) is None


def test_xss_indicator_must_be_new():
    checker = XSS(URL)
    page = "<script>init()</script><img src=a onload=go()>"
    assert checker.classify(outcome(payload="zzz", body=page), baseline(body=page)) is None
    injected = outcome(payload="zzz", body="<img src=a onerror=steal()>")
    assert "onerror" in checker.classify(injected, baseline()).evidence


def test_dom_type_label():
    checker = XSS(URL, payload_type="dom")
    payload = "<svg onload=alert(location.hash)>"
    finding = checker.classify(outcome(payload=payload, body=payload), baseline())
    assert finding.to_dict()["vulnerability_type"] == "DOM-based XSS"


# ---------- LFI ----------

def test_lfi_payloads_per_file_are_capped():
    checker = LFI(URL, target_files="linux")
    payloads = checker.get_payloads()
    assert len(payloads) == 18 * PAYLOADS_PER_FILE
    assert checker.per_parameter() == len(payloads)
    first = payloads[0]
    assert first.payload == "..//etc/passwd"
    assert first.label == "Basic Traversal"
    assert dict(first.meta)["file_path"] == "/etc/passwd"


def test_lfi_payloads_interleave_files(engine):
    checker = LFI(LAB + "/lfi?file=x")
    selected = [p for files in checker.files.values() for p in files]
    assert len(checker.parameters) == 10

    plan = engine.plan(checker.url, checker.parameters, checker.get_payloads(),
                       checker.per_parameter())
    for param in checker.parameters:
        covered = {dict(p.meta)["file_path"] for p in plan if p.parameter == param}
        assert covered == set(selected)

    first_round = [dict(e.meta)["file_path"] for e in checker.get_payloads()[:len(selected)]]
    assert first_round == selected


def test_lfi_file_cap_and_custom_files():
    assert sum(len(f) for f in LFI(URL).files.values()) == 20
    checker = LFI(URL, target_files="custom", custom_files="/opt/app.env,\n/srv/secret")
    assert checker.files == {"custom": ["/opt/app.env", "/srv/secret"]}
    with pytest.raises(ValidationError):
        LFI(URL, target_files="custom")


def test_lfi_depth_is_clamped():
    assert LFI(URL, traversal_depth=99).traversal_depth == 10
    assert LFI(URL, traversal_depth=0).traversal_depth == 1
    with pytest.raises(ValidationError):
        LFI(URL, traversal_depth="deep")


def test_lfi_technique_fallthrough():
    grouped = file_payloads("/etc/passwd", "all", depth=1)
    assert list(grouped) == ["basic", "encoding", "nullbyte", "wrappers"]
    assert file_payloads("win.ini", "wrappers", depth=1) == {"wrappers": []}
    assert grouped["nullbyte"][0] == ("..//etc/passwd%00", "Null Byte Injection")


@pytest.mark.parametrize("path,severity", [
    ("/etc/passwd", Severity.HIGH),
    ("C:\\windows\\system32\\config\\sam", Severity.HIGH),
    ("/etc/hosts", Severity.MEDIUM),
    ("/var/log/apache2/access.log", Severity.MEDIUM),
    ("/proc/version", Severity.LOW),
])
def test_lfi_severity(path, severity):
    assert LFI.severity(path) is severity


def test_lfi_evidence_needs_new_markers():
    assert LFI.evidence("root:x:0:0:root", "/etc/passwd") == "Found root: in response"
    assert LFI.evidence("root:x:0:0:root", "/etc/passwd", "root:x:0:0:root") is None
    assert LFI.evidence("[fonts]\n[extensions]", "C:\\boot.ini") == \
        "Windows INI file structure detected"


def test_lfi_classify_uses_file_path_discriminator():
    checker = LFI(URL)
    hit = outcome(payload="../../etc/passwd", technique="basic", dialect="linux",
                  label="Basic Traversal", body="root:x:0:0:root:/root:/bin/bash",
                  meta=(("file_path", "/etc/passwd"),))
    finding = checker.classify(hit, baseline())
    assert finding.discriminator == "/etc/passwd"
    assert finding.severity is Severity.HIGH
    assert finding.to_dict()["file_path"] == "/etc/passwd"


# ---------- Open redirect ----------

def test_target_domain():
    assert target_domain("https://Evil.com/path") == "evil.com"
    assert target_domain("evil.com") == "evil.com"


def test_redirect_requires_target():
    with pytest.raises(ValidationError, match="redirect target"):
        OpenRedirect.from_request({"url": URL})


def test_redirect_unknown_test_type_falls_back_to_basic():
    checker = OpenRedirect(URL, "evil.com", test_type="weird")
    assert [p.payload for p in checker.get_payloads()] == [
        "evil.com", "//evil.com", "http://evil.com", "https://evil.com"]
    assert OpenRedirect(URL, "evil.com", test_type="advanced").get_payloads()[0].label == \
        "Advanced Bypass"


def test_redirect_evidence():
    checker = OpenRedirect(URL, "evil.com")
    assert "evil.com" in checker.evidence(URL, "//evil.com")
    assert "evil.com" in checker.evidence(URL, "\\\\evil.com/")
    assert "other.org" in checker.evidence(URL, "https://other.org/")
    assert checker.evidence(URL, "javascript:alert(1)").startswith("Redirect to dangerous")
    assert checker.evidence(URL, "/home") is None
    assert checker.evidence(URL, "evil.com") is None
    assert checker.evidence(URL, "") is None


def test_redirect_severity():
    assert OpenRedirect.severity("javascript:x", "Basic Redirect") is Severity.HIGH
    assert OpenRedirect.severity("ftp://evil.com", "Protocol Manipulation") is Severity.HIGH
    assert OpenRedirect.severity("http://a@evil.com", "Advanced Bypass") is Severity.MEDIUM
    assert OpenRedirect.severity("/evil.com", "Filter Bypass") is Severity.MEDIUM
    assert OpenRedirect.severity("//evil.com", "Basic Redirect") is Severity.LOW


def test_redirect_classify_fields():
    checker = OpenRedirect(URL, "evil.com")
    hit = outcome(payload="//evil.com", technique="basic", dialect="generic",
                  label="Basic Redirect", status=302, location="//evil.com")
    data = checker.classify(hit, baseline()).to_dict()
    assert data["status_code"] == 302
    assert data["target_domain"] == "evil.com"
    assert data["bypass_technique"] == "Basic Redirect"
    assert data["location"] == "//evil.com"
