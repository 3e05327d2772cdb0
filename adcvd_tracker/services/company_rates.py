from __future__ import annotations

from typing import Any

from adcvd_tracker.config import settings
from adcvd_tracker.models.documents import CandidateDocument
from adcvd_tracker.models.interfaces import DocumentSource
from adcvd_tracker.services import logger as log_service
from adcvd_tracker.services.errors import InvalidRequestError, UpstreamError
from adcvd_tracker.services.outcomes import with_timeout
from adcvd_tracker.services.pipeline import PipelineResult
from adcvd_tracker.services.result_cache import ResultCache
from adcvd_tracker.tools import rate_parser


def company_rates_cache_key(document_number: str) -> str:
    return f"company-rates-{document_number}"


def _special_payload(
    doc: CandidateDocument,
    special_case: str,
    adapter_mode: str,
    message: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"special_case": special_case}
    if message:
        payload["message"] = message
    payload.update(
        {
            "html_url": doc.html_url,
            "publication_date": doc.publication_date,
            "adapter_mode": adapter_mode,
        }
    )
    return payload


class CompanyRateService:
    """Company/rate table extraction for a single Federal Register notice."""

    def __init__(self, source: DocumentSource, cache: ResultCache):
        self.source = source
        self.cache = cache

    async def lookup(self, document_number: str) -> PipelineResult:
        document_number = (document_number or "").strip()
        if not document_number:
            raise InvalidRequestError("Missing required parameter: document_number")

        key = company_rates_cache_key(document_number)
        entry = self.cache.get(key)
        if entry is not None:
            log_service.log_pipeline_run("company-rates", key, "cache_hit")
            return PipelineResult(payload=entry.payload, cache_hit=True)

        payload = await self._extract(document_number)
        self.cache.set(key, payload)
        log_service.log_pipeline_run("company-rates", key, "computed", {"rates": len(payload.get("rates", []))})
        return PipelineResult(payload=payload)

    async def _extract(self, document_number: str) -> dict[str, Any]:
        try:
            page = await with_timeout(self.source.find(document_number), settings.detail_timeout_seconds)
        except Exception as exc:
            raise UpstreamError(f"Failed to fetch document details for {document_number}: {exc}") from exc
        if not page.ok:
            raise UpstreamError(
                f"Failed to fetch document details for {document_number}",
                status_code=502,
            )
        doc = page.document
        if doc is None or not doc.document_number:
            raise UpstreamError(
                f"Document {document_number} not found or missing required fields.",
                status_code=404,
            )

        if not doc.body_html_url:
            return _special_payload(
                doc,
                "pdf_only",
                page.adapter_mode,
                "HTML body URL not available for this document.",
            )

        try:
            html = await with_timeout(self.source.fetch_html(doc.body_html_url), settings.html_timeout_seconds)
        except Exception as exc:
            raise UpstreamError(f"Failed to fetch HTML content: {exc}", status_code=502) from exc

        if rate_parser.is_pdf_only(html):
            return _special_payload(
                doc,
                "pdf_only",
                page.adapter_mode,
                "This document is only available in PDF or text format.",
            )

        rates = rate_parser.parse_company_rates(html)
        special = rate_parser.detect_special_case(html)
        if special and not rates:
            return _special_payload(doc, special, page.adapter_mode)

        period = rate_parser.extract_review_period(html)
        return {
            "document_number": document_number,
            "publication_date": doc.publication_date,
            "title": doc.title,
            "source_url": doc.html_url,
            "body_html_url": doc.body_html_url,
            "pdf_url": doc.pdf_url,
            "public_inspection_pdf_url": doc.public_inspection_pdf_url,
            "rates": [r.to_dict() for r in rates],
            "period_start": period.start if period else None,
            "period_end": period.end if period else None,
            "period_text": period.text if period else None,
            "heading_text": rate_parser.extract_heading_text(html),
            "adapter_mode": page.adapter_mode,
        }
