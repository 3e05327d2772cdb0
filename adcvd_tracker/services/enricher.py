from __future__ import annotations

from dataclasses import replace

from adcvd_tracker.models.documents import CandidateDocument, FetchRecord
from adcvd_tracker.models.interfaces import DetailPage, DocumentSource
from adcvd_tracker.services import logger as log_service
from adcvd_tracker.services.outcomes import Outcome, settle_all, with_timeout


def merge_detail(summary: CandidateDocument, detail: CandidateDocument) -> CandidateDocument:
    """Overlay the richer detail record onto a search summary."""
    return replace(
        summary,
        title=detail.title or summary.title,
        html_url=detail.html_url or summary.html_url,
        publication_date=detail.publication_date or summary.publication_date,
        document_number=detail.document_number or summary.document_number,
        body_html_url=detail.body_html_url,
        pdf_url=detail.pdf_url,
        public_inspection_pdf_url=detail.public_inspection_pdf_url,
        full_text_xml_url=detail.full_text_xml_url,
        raw_text_url=detail.raw_text_url,
        toc_subject=detail.toc_subject,
        toc_doc=detail.toc_doc,
        agencies=list(detail.agencies) if detail.agencies else list(summary.agencies),
        agencies_text=detail.agencies_text or summary.agencies_text,
        abstract=detail.abstract or summary.abstract,
        excerpts=list(detail.excerpts) if detail.excerpts else list(summary.excerpts),
    )


class DetailEnricher:
    """Memoized, capped document-detail lookups for one pipeline run."""

    def __init__(self, source: DocumentSource, *, cap: int, timeout_seconds: float = 12.0):
        self.source = source
        self.cap = max(int(cap), 0)
        self.timeout_seconds = timeout_seconds
        self.calls_made = 0
        self.records: list[FetchRecord] = []
        self._details: dict[str, CandidateDocument | None] = {}

    async def enrich(self, entity: str, doc: CandidateDocument) -> CandidateDocument:
        number = doc.document_number
        if not number:
            return doc
        if number in self._details:
            detail = self._details[number]
            return merge_detail(doc, detail) if detail else doc
        if self.calls_made >= self.cap:
            return doc

        self.calls_made += 1
        [outcome] = await settle_all([with_timeout(self.source.find(number), self.timeout_seconds)])
        detail = self._record(entity, number, outcome)
        self._details[number] = detail
        return merge_detail(doc, detail) if detail else doc

    async def enrich_many(self, entity: str, docs: list[CandidateDocument]) -> list[CandidateDocument]:
        outcomes = await settle_all(self.enrich(entity, doc) for doc in docs)
        return [o.value if o.ok and o.value is not None else doc for o, doc in zip(outcomes, docs)]

    def _record(
        self,
        entity: str,
        number: str,
        outcome: Outcome[DetailPage],
    ) -> CandidateDocument | None:
        if not outcome.ok or outcome.value is None:
            record = FetchRecord(
                kind="find",
                entity=entity,
                url=self.source.detail_url(number),
                error=outcome.reason or "empty response",
                document_number=number,
            )
            detail = None
        else:
            page = outcome.value
            detail = page.document if page.ok else None
            record = FetchRecord(
                kind="find",
                entity=entity,
                url=page.url,
                status=page.status_code,
                adapter_mode=page.adapter_mode,
                cache_header=page.cache_header,
                result_count=1 if detail else 0,
                document_number=number,
            )
        self.records.append(record)
        log_service.log_fetch(
            record.kind,
            entity,
            record.url,
            status=record.status,
            result_count=record.result_count,
            error=record.error,
        )
        return detail
