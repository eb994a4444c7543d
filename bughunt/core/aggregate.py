"""Deduplicate findings and build the scan report."""

from typing import Any, Dict, Iterable, List

from bughunt.core.models import Finding, ScanReport, Severity


def dedupe(findings: Iterable[Finding]) -> List[Finding]:
    """Keep the first finding per (parameter, discriminator)."""
    seen = set()
    unique = []
    for f in findings:
        if f.key in seen:
            continue
        seen.add(f.key)
        unique.append(f)
    return unique


def severity_counts(findings: Iterable[Finding]) -> Dict[str, int]:
    counts = {s.value: 0 for s in Severity}
    for f in findings:
        counts[f.severity.value] += 1
    return counts


def aggregate(findings: Iterable[Finding], target: str,
              configuration: Dict[str, Any]) -> ScanReport:
    unique = dedupe(findings)
    return ScanReport(
        target=target,
        configuration=dict(configuration),
        findings=unique,
        total=len(unique),
        severity_counts=severity_counts(unique),
    )
