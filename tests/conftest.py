from __future__ import annotations

from typing import Any, Callable

import pytest

from adcvd_tracker.models.documents import CandidateDocument
from adcvd_tracker.models.interfaces import DetailPage, SearchPage, SearchQuery
from adcvd_tracker.services.result_cache import InMemoryTTLCache


def make_doc(number: str, title: str, date: str = "2024-01-01", **extra: Any) -> CandidateDocument:
    return CandidateDocument(
        document_number=number,
        title=title,
        publication_date=date,
        html_url=f"https://www.federalregister.gov/d/{number}",
        **extra,
    )


class FakeSource:
    """In-memory document source recording every call it receives."""

    def __init__(
        self,
        search_fn: Callable[[SearchQuery], list[CandidateDocument]] | None = None,
        details: dict[str, CandidateDocument] | None = None,
        html: dict[str, str] | None = None,
    ):
        self.search_fn = search_fn or (lambda _query: [])
        self.details = details or {}
        self.html = html or {}
        self.search_calls: list[SearchQuery] = []
        self.find_calls: list[str] = []
        self.html_calls: list[str] = []

    def search_url(self, query: SearchQuery) -> str:
        return f"https://fr.test/documents.json?term={query.term}"

    async def search(self, query: SearchQuery) -> SearchPage:
        self.search_calls.append(query)
        docs = self.search_fn(query)
        return SearchPage(
            url=self.search_url(query),
            status_code=200,
            documents=list(docs),
            adapter_mode="fake",
            cache_header="MISS",
        )

    def detail_url(self, document_number: str) -> str:
        return f"https://fr.test/documents/{document_number}.json"

    async def find(self, document_number: str) -> DetailPage:
        self.find_calls.append(document_number)
        detail = self.details.get(document_number)
        return DetailPage(
            url=self.detail_url(document_number),
            status_code=200 if detail else 404,
            document=detail,
            adapter_mode="fake",
        )

    async def fetch_html(self, url: str) -> str:
        self.html_calls.append(url)
        if url not in self.html:
            raise RuntimeError(f"no html for {url}")
        return self.html[url]


class FakeFeed:
    def __init__(self, records: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.records = records or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def fetch_investigations(self, hts_code: str, year: str) -> list[dict[str, Any]]:
        self.calls.append((hts_code, year))
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def cache() -> InMemoryTTLCache:
    return InMemoryTTLCache(ttl_seconds=4 * 3600)


@pytest.fixture
def two_country_records() -> list[dict[str, Any]]:
    return [
        {
            "investigationNumber": "731-TA-1000",
            "phase": "Final",
            "caseId": 1,
            "investigationId": 11,
            "investigationTitle": "Steel Nails from China Inv. No. 731-TA-1000 (Final)",
        },
        {
            "investigationNumber": "731-TA-2000",
            "phase": "Final",
            "caseId": 2,
            "investigationId": 22,
            "investigationTitle": "Steel Nails from Vietnam Inv. No. 731-TA-2000 (Final)",
        },
    ]
