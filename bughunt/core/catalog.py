"""Technique x dialect payload tables with "all"/"auto" resolution."""

from typing import Callable, Dict, List, Mapping, Sequence, Tuple

from bughunt.core.errors import ValidationError
from bughunt.core.models import CatalogEntry, Intensity

ALL = "all"
AUTO = "auto"

# transform(payload) -> payload
Transform = Callable[[str], str]

TRANSFORMS_PER_INTENSITY = {
    Intensity.LOW: 0,
    Intensity.MEDIUM: 3,
    Intensity.HIGH: 6,
}


class PayloadCatalog:
    """
    Read-only registry ``technique -> dialect -> [payload, ...]``.

    ``labels`` maps a technique key to its human label (defaults to the
    capitalised key). ``meta`` maps ``(technique, dialect, payload)`` to
    extra ``(key, value)`` pairs; a ``"label"`` pair overrides the
    technique label for that payload. ``transforms`` are evasion rewrites applied to every
    base payload at medium/high intensity; each transform yields one extra
    variant per base payload, labelled ``"<label> + <transform_label>"``.
    """

    def __init__(
        self,
        table: Mapping[str, Mapping[str, Sequence[str]]],
        labels: Mapping[str, str] = None,
        transforms: Sequence[Transform] = (),
        transform_label: str = "WAF Bypass",
        meta: Mapping[Tuple[str, str, str], tuple] = None,
    ):
        self._table: Dict[str, Dict[str, Tuple[str, ...]]] = {
            tech: {dia: tuple(p) for dia, p in dialects.items()}
            for tech, dialects in table.items()
        }
        self._labels = dict(labels or {})
        self._transforms = tuple(transforms)
        self._transform_label = transform_label
        self._meta = dict(meta or {})

    # ── lookups ────────────────────────────────────────────────

    @property
    def techniques(self) -> List[str]:
        return list(self._table)

    @property
    def dialects(self) -> List[str]:
        seen = {}
        for dialects in self._table.values():
            for d in dialects:
                seen.setdefault(d, None)
        return list(seen)

    def label(self, technique: str) -> str:
        return self._labels.get(technique, technique[:1].upper() + technique[1:])

    def resolve_techniques(self, technique: str) -> List[str]:
        technique = (technique or ALL).lower()
        if technique == ALL:
            return self.techniques
        if technique not in self._table:
            raise ValidationError(f"Unknown technique: {technique}")
        return [technique]

    def resolve_dialects(self, dialect: str) -> List[str]:
        dialect = (dialect or AUTO).lower()
        if dialect == AUTO:
            return self.dialects
        if dialect not in self.dialects:
            raise ValidationError(f"Unknown dialect: {dialect}")
        return [dialect]

    # ── generation ─────────────────────────────────────────────

    def base(self, technique: str = ALL, dialect: str = AUTO) -> List[CatalogEntry]:
        """Base payloads, dialect-major then technique order."""
        out = []
        techniques = self.resolve_techniques(technique)
        for dia in self.resolve_dialects(dialect):
            for tech in techniques:
                for payload in self._table[tech].get(dia, ()):
                    meta = dict(self._meta.get((tech, dia, payload), ()))
                    label = meta.pop("label", None) or self.label(tech)
                    out.append(CatalogEntry(
                        payload=payload,
                        technique=tech,
                        label=label,
                        dialect=dia,
                        meta=tuple(meta.items()),
                    ))
        return out

    def payloads_for(self, technique: str = ALL, dialect: str = AUTO,
                     intensity=Intensity.LOW) -> List[CatalogEntry]:
        entries = self.base(technique, dialect)
        count = TRANSFORMS_PER_INTENSITY[Intensity.parse(intensity)]
        transforms = self._transforms[:count]
        if not transforms:
            return entries

        variants = []
        for entry in entries:
            for fn in transforms:
                variants.append(CatalogEntry(
                    payload=fn(entry.payload),
                    technique=entry.technique,
                    label=f"{entry.label} + {self._transform_label}",
                    dialect=entry.dialect,
                    meta=entry.meta,
                ))
        return entries + variants

    def __len__(self):
        return sum(len(p) for d in self._table.values() for p in d.values())
