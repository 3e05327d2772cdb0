from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from adcvd_tracker.config import settings
from adcvd_tracker.models.documents import CandidateDocument
from adcvd_tracker.models.interfaces import DetailPage, SearchPage, SearchQuery

SEARCH_FIELDS = (
    "document_number",
    "title",
    "type",
    "publication_date",
    "html_url",
    "body_html_url",
    "pdf_url",
    "public_inspection_pdf_url",
    "full_text_xml_url",
    "raw_text_url",
    "toc_subject",
    "toc_doc",
    "agencies",
    "abstract",
    "excerpts",
)


def _flatten_attributes(obj: dict[str, Any]) -> dict[str, Any]:
    attrs = obj.get("attributes")
    if isinstance(attrs, dict):
        return {**obj, **attrs}
    return obj


def _normalize_agencies(raw: Any) -> tuple[list[dict[str, Any]], str]:
    if not isinstance(raw, list):
        return [], ""
    agencies: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            agencies.append({})
            continue
        agencies.append(
            {
                "name": item.get("name") or item.get("raw_name"),
                "id": item.get("id"),
                "slug": item.get("slug"),
                "raw_name": item.get("raw_name"),
            }
        )
    text = ", ".join(a.get("name") or a.get("raw_name") or "" for a in agencies if a.get("name") or a.get("raw_name"))
    return agencies, text


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str):
        return [value] if value else []
    return []


def _extract_excerpts(obj: dict[str, Any]) -> list[str]:
    highlight = obj.get("highlight") or obj.get("highlights") or {}
    if not isinstance(highlight, dict):
        highlight = {}
    for candidate in (obj.get("excerpts"), highlight.get("excerpts"), highlight.get("matches")):
        values = _string_list(candidate)
        if values:
            return values
    return []


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def normalize_document(obj: Any) -> CandidateDocument | None:
    """Normalize one Federal Register payload (search result or detail)."""
    if not isinstance(obj, dict) or not obj:
        return None
    merged = _flatten_attributes(obj)
    agencies, agencies_text = _normalize_agencies(merged.get("agencies"))
    abstract = merged.get("abstract")
    return CandidateDocument(
        document_number=str(merged.get("document_number") or merged.get("documentNumber") or ""),
        title=str(merged.get("title") or merged.get("name") or ""),
        type=_optional_str(merged.get("type") or merged.get("action")),
        publication_date=_optional_str(
            merged.get("publication_date") or merged.get("published_at") or merged.get("date")
        ),
        html_url=_optional_str(
            merged.get("html_url") or merged.get("body_html_url") or merged.get("full_text_url")
        ),
        body_html_url=_optional_str(merged.get("body_html_url")),
        pdf_url=_optional_str(merged.get("pdf_url")),
        public_inspection_pdf_url=_optional_str(merged.get("public_inspection_pdf_url")),
        full_text_xml_url=_optional_str(merged.get("full_text_xml_url")),
        raw_text_url=_optional_str(merged.get("raw_text_url")),
        toc_subject=_optional_str(merged.get("toc_subject")),
        toc_doc=_optional_str(merged.get("toc_doc")),
        agencies=agencies,
        agencies_text=agencies_text,
        abstract=abstract if isinstance(abstract, str) else None,
        excerpts=_extract_excerpts(merged),
    )


def pick_results(payload: Any) -> list[Any]:
    if not isinstance(payload, dict):
        return []
    if isinstance(payload.get("results"), list):
        return payload["results"]
    documents = payload.get("documents")
    if isinstance(documents, dict) and isinstance(documents.get("results"), list):
        return documents["results"]
    if isinstance(documents, list):
        return documents
    return []


def normalize_results(payload: Any) -> list[CandidateDocument]:
    docs: list[CandidateDocument] = []
    for item in pick_results(payload):
        doc = normalize_document(item)
        if doc and doc.document_number and doc.title:
            docs.append(doc)
    return docs


def normalize_find(payload: Any) -> CandidateDocument | None:
    if isinstance(payload, dict) and isinstance(payload.get("document"), dict):
        return normalize_document(payload["document"])
    return normalize_document(payload)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class FederalRegisterClient:
    """httpx-backed document source for the Federal Register API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        search_timeout: float | None = None,
        detail_timeout: float | None = None,
        html_timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.federal_register_base_url).rstrip("/")
        self.search_timeout = search_timeout or settings.search_timeout_seconds
        self.detail_timeout = detail_timeout or settings.detail_timeout_seconds
        self.html_timeout = html_timeout or settings.html_timeout_seconds

    def _search_params(self, query: SearchQuery) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = [
            ("conditions[term]", query.term),
            ("per_page", str(query.per_page)),
            ("order", query.order),
        ]
        params.extend(("conditions[agencies][]", a) for a in query.agencies)
        params.extend(("conditions[type][]", t) for t in query.types)
        params.extend(("fields[]", f) for f in SEARCH_FIELDS)
        if query.facets:
            params.append(("facets", ",".join(query.facets)))
        return params

    def search_url(self, query: SearchQuery) -> str:
        request = httpx.Request(
            "GET",
            f"{self.base_url}/documents.json",
            params=self._search_params(query),
        )
        return str(request.url)

    async def search(self, query: SearchQuery) -> SearchPage:
        async with httpx.AsyncClient(timeout=self.search_timeout, follow_redirects=True) as client:
            response = await client.get(
                f"{self.base_url}/documents.json",
                params=self._search_params(query),
                headers={"Accept": "application/json"},
            )
        payload = _safe_json(response)
        return SearchPage(
            url=str(response.request.url),
            status_code=response.status_code,
            documents=normalize_results(payload) if response.is_success else [],
            adapter_mode=str(payload.get("adapter_mode", "fr-api")) if isinstance(payload, dict) else "",
            cache_header=response.headers.get("X-Cache", ""),
        )

    def detail_url(self, document_number: str) -> str:
        return f"{self.base_url}/documents/{quote(document_number, safe='')}.json"

    async def find(self, document_number: str) -> DetailPage:
        url = self.detail_url(document_number)
        async with httpx.AsyncClient(timeout=self.detail_timeout, follow_redirects=True) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
        payload = _safe_json(response)
        return DetailPage(
            url=url,
            status_code=response.status_code,
            document=normalize_find(payload) if response.is_success else None,
            adapter_mode=str(payload.get("adapter_mode", "fr-api")) if isinstance(payload, dict) else "",
            cache_header=response.headers.get("X-Cache", ""),
        )

    async def fetch_html(self, url: str) -> str:
        async with httpx.AsyncClient(timeout=self.html_timeout, follow_redirects=True) as client:
            response = await client.get(url, headers={"Accept": "text/html"})
            response.raise_for_status()
            return response.text
