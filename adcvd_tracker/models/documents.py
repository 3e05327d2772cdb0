from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class CandidateDocument:
    document_number: str
    title: str
    type: str | None = None
    publication_date: str | None = None
    html_url: str | None = None
    body_html_url: str | None = None
    pdf_url: str | None = None
    public_inspection_pdf_url: str | None = None
    full_text_xml_url: str | None = None
    raw_text_url: str | None = None
    toc_subject: str | None = None
    toc_doc: str | None = None
    agencies: list[dict[str, Any]] = field(default_factory=list)
    agencies_text: str = ""
    abstract: str | None = None
    excerpts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_latest(self) -> dict[str, Any]:
        """Shape used for the selected document of an entity."""
        return {
            "title": self.title,
            "url": self.html_url,
            "date": self.publication_date,
            "document_number": self.document_number,
            "body_html_url": self.body_html_url,
            "pdf_url": self.pdf_url,
            "public_inspection_pdf_url": self.public_inspection_pdf_url,
            "full_text_xml_url": self.full_text_xml_url,
            "raw_text_url": self.raw_text_url,
            "toc_subject": self.toc_subject,
            "toc_doc": self.toc_doc,
            "agencies": list(self.agencies),
            "agencies_text": self.agencies_text,
            "abstract": self.abstract,
            "excerpts": list(self.excerpts),
        }


@dataclass(frozen=True, slots=True)
class SearchChunk:
    entity: str
    term: str
    index: int = 0


@dataclass(slots=True)
class FetchRecord:
    kind: str
    entity: str
    url: str
    status: int | None = None
    adapter_mode: str = ""
    cache_header: str = ""
    result_count: int | None = None
    error: str | None = None
    document_number: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind,
            "country": self.entity,
            "url": self.url,
        }
        if self.document_number:
            data["document_number"] = self.document_number
        if self.error is not None:
            data["error"] = self.error
            return data
        data.update(
            {
                "status": self.status,
                "adapter_mode": self.adapter_mode,
                "x_cache": self.cache_header,
                "count": self.result_count or 0,
            }
        )
        return data


@dataclass(slots=True)
class TableSignal:
    has_body_html: bool = False
    has_rate_table: bool = False
    matched_headers: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ScoredCandidate:
    entity: str
    document: CandidateDocument
    score: float
    base_score: float
    matched_rules: list[str] = field(default_factory=list)
    bonus: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "country": self.entity,
            "doc": self.document.to_dict(),
            "score": self.score,
            "base_score": self.base_score,
            "matched_rules": list(self.matched_rules),
            "bonus": dict(self.bonus),
        }


@dataclass(slots=True)
class SelectedResult:
    entity: str
    latest: dict[str, Any] | None = None
    score: float | None = None

    @property
    def has_case(self) -> bool:
        return self.latest is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "country": self.entity,
            "hasCase": self.has_case,
            "latest": self.latest,
            "score": self.score,
        }
