"""Render report rows as txt, json or csv."""

import csv
import io
import json
from typing import Any, Dict, List

FORMATS = ("txt", "json", "csv")


def rows_of(report: Dict[str, Any]) -> List[Any]:
    """The exportable rows of a tool report."""
    for key in ("vulnerabilities", "subdomains", "headers", "records", "fields"):
        if key in report:
            return list(report[key])
    return []


def _line(row) -> str:
    if isinstance(row, str):
        return row
    if isinstance(row, dict) and row.get("value"):
        return str(row["value"])
    return json.dumps(row)


def render(rows: List[Any], fmt: str) -> str:
    if fmt == "txt":
        return "\n".join(_line(r) for r in rows)
    if fmt == "json":
        return json.dumps(rows, indent=2)
    if fmt == "csv":
        if not rows:
            return ""
        # union of keys, in first-seen order; absent cells stay empty
        fieldnames = list(dict.fromkeys(k for r in rows for k in r))
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames, restval="",
                                lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        return buf.getvalue().rstrip("\n")
    raise ValueError(f"Unknown export format: {fmt}")


def write(report: Dict[str, Any], fmt: str, path: str) -> str:
    """Write the rows of *report* to *path* and return the path."""
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(render(rows_of(report), fmt))
    return path
