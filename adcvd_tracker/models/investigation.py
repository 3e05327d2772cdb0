from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

InvestigationType = Literal["AD", "CVD", "201", "337", "Other"]


@dataclass(frozen=True, slots=True)
class InvestigationTag:
    number: str
    phase: str | None
    types: tuple[InvestigationType, ...]
    title: str
    product_title: str
    case_numbers: tuple[str, ...]
    countries: tuple[str, ...]
    url: str | None = None

    @property
    def primary_type(self) -> InvestigationType:
        return self.types[0] if self.types else "Other"

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "phase": self.phase,
            "types": list(self.types),
            "type": self.primary_type,
            "title": self.title,
            "productTitle": self.product_title,
            "caseNumbers": list(self.case_numbers),
            "countries": list(self.countries),
            "url": self.url,
        }
