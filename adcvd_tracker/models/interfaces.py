from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from adcvd_tracker.models.documents import CandidateDocument

ScheduleMode = Literal["round_robin", "per_entity_parallel"]
EnrichMode = Literal["winner", "all", "none"]
TableCheckMode = Literal["none", "topN", "all"]


@dataclass(frozen=True, slots=True)
class SearchQuery:
    term: str
    per_page: int = 20
    order: str = "newest"
    agencies: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    facets: tuple[str, ...] = ()


@dataclass(slots=True)
class SearchPage:
    url: str
    status_code: int
    documents: list[CandidateDocument] = field(default_factory=list)
    adapter_mode: str = ""
    cache_header: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(slots=True)
class DetailPage:
    url: str
    status_code: int
    document: CandidateDocument | None = None
    adapter_mode: str = ""
    cache_header: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class DocumentSource(Protocol):
    """Search, detail and raw-HTML access to Federal Register documents."""

    def search_url(self, query: SearchQuery) -> str: ...

    async def search(self, query: SearchQuery) -> SearchPage: ...

    def detail_url(self, document_number: str) -> str: ...

    async def find(self, document_number: str) -> DetailPage: ...

    async def fetch_html(self, url: str) -> str: ...


class InvestigationFeed(Protocol):
    async def fetch_investigations(self, hts_code: str, year: str) -> list[dict[str, Any]]: ...
