from __future__ import annotations

import re

from bs4 import BeautifulSoup

from adcvd_tracker.models.documents import CandidateDocument, TableSignal
from adcvd_tracker.models.interfaces import DocumentSource
from adcvd_tracker.services.logger import logger
from adcvd_tracker.services.outcomes import settle_all, with_timeout

COMPANY_WORDS = ("company", "exporter", "manufacturer")
RATE_WORDS = ("rate", "margin", "assessment")
MAX_MATCHED_HEADERS = 20


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("\xa0", " ")).strip().lower()


def _table_headers(table) -> list[str]:
    headers = [_collapse(th.get_text(" ")) for th in table.find_all("th")]
    if not headers:
        first_row = table.find("tr")
        if first_row is not None:
            headers = [_collapse(td.get_text(" ")) for td in first_row.find_all("td")]
    return [h for h in headers if h]


def detect_rate_table(
    html: str,
    company_words: tuple[str, ...] = COMPANY_WORDS,
    rate_words: tuple[str, ...] = RATE_WORDS,
) -> TableSignal:
    """Look for a table whose headers name both a company and a rate column."""
    soup = BeautifulSoup(html or "", "html.parser")
    for table in soup.find_all("table"):
        headers = _table_headers(table)
        has_company = any(any(w in h for w in company_words) for h in headers)
        has_rate = any(any(w in h for w in rate_words) for h in headers)
        if has_company and has_rate:
            return TableSignal(
                has_body_html=True,
                has_rate_table=True,
                matched_headers=headers[:MAX_MATCHED_HEADERS],
            )
    return TableSignal(has_body_html=True, has_rate_table=False)


class TableSignalChecker:
    """Fetches body HTML for a bounded number of candidates and flags rate tables."""

    def __init__(self, source: DocumentSource, *, cap: int, timeout_seconds: float = 8.0):
        self.source = source
        self.cap = max(int(cap), 0)
        self.timeout_seconds = timeout_seconds
        self.checked = 0

    async def check(self, doc: CandidateDocument) -> TableSignal:
        if not doc.body_html_url:
            return TableSignal()
        try:
            html = await with_timeout(self.source.fetch_html(doc.body_html_url), self.timeout_seconds)
        except Exception as exc:
            logger.debug(f"Table check failed for {doc.document_number}: {exc}")
            return TableSignal(has_body_html=True)
        return detect_rate_table(html)

    async def check_many(self, docs: list[CandidateDocument]) -> dict[str, TableSignal]:
        """Signals keyed by document number; candidates past the cap are skipped."""
        picked: list[CandidateDocument] = []
        for doc in docs:
            if self.checked >= self.cap:
                break
            picked.append(doc)
            self.checked += 1
        outcomes = await settle_all(self.check(doc) for doc in picked)
        return {
            doc.document_number: (
                outcome.value
                if outcome.ok and outcome.value is not None
                else TableSignal(has_body_html=bool(doc.body_html_url))
            )
            for doc, outcome in zip(picked, outcomes)
        }
