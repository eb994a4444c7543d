from bughunt.core.aggregate import aggregate, dedupe
from bughunt.core.models import Finding, Severity


def finding(parameter, discriminator, evidence, severity=Severity.LOW):
    return Finding(parameter=parameter, payload="p", technique="Union", dialect="mysql",
                   severity=severity, evidence=evidence, discriminator=discriminator)


def test_duplicates_collapse_to_first_seen():
    unique = dedupe([
        finding("id", "union", "first"),
        finding("id", "union", "second"),
        finding("q", "union", "third"),
    ])
    assert [f.evidence for f in unique] == ["first", "third"]


def test_report_counts_and_shape():
    report = aggregate(
        [finding("id", "union", "a", Severity.HIGH),
         finding("id", "error", "b", Severity.MEDIUM),
         finding("id", "union", "dup", Severity.HIGH)],
        "https://x.com/?id=1",
        {"url": "https://x.com/?id=1", "injectionType": "all"},
    )
    assert report.total == 2
    assert report.severity_counts == {"Low": 0, "Medium": 1, "High": 1}

    data = report.to_dict()
    assert data["injectionType"] == "all"
    assert data["total"] == 2
    assert [v["evidence"] for v in data["vulnerabilities"]] == ["a", "b"]
    assert data["vulnerabilities"][0]["severity"] == "High"
    assert data["timestamp"].endswith("Z")


def test_empty_scan_is_a_successful_report():
    data = aggregate([], "https://x.com/", {"url": "https://x.com/"}).to_dict()
    assert data["total"] == 0
    assert data["vulnerabilities"] == []
