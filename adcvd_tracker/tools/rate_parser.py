"""Company/rate extraction from Federal Register AD/CVD notice HTML."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from bs4 import BeautifulSoup, Tag

SpecialCase = Literal["rescission", "clerical_correction"]

PDF_ONLY_MARKER = "full text of this document is currently available in PDF format"

TABLE_KEYWORDS = (
    "exporter",
    "producer",
    "company",
    "dumping",
    "margin",
    "weighted-average",
    "subsidy",
    "cash deposit",
    "rate",
)
COMPANY_HEADER_WORDS = ("exporter", "producer", "company")
RATE_HEADER_WORDS = ("margin", "rate", "cash deposit", "weighted")
RESULTS_HEADING_MARKERS = (
    "final weighted-average",
    "final results of",
    "amended final results",
    "final determination",
)
NO_RATE_VALUES = {"n/a", "na", "not applicable", "-"}

_ALL_OTHERS_RE = re.compile(r"all[-\s]others[^\d%]*([0-9]+(?:\.[0-9]+)?)\s*(?:%|percent)", re.IGNORECASE)
_NON_SELECTED_RE = re.compile(
    r"non-selected companies[^\d%]*([0-9]+(?:\.[0-9]+)?)\s*(?:%|percent)", re.IGNORECASE
)
_RATE_NUMBER_RE = re.compile(r"([0-9]+\.?[0-9]*)")
_TAG_RE = re.compile(r"<[^>]+>")
_HEADING_TAG_RE = re.compile(
    r"<(h[1-6])[^>]*>\s*([^<]*(?:preliminary\s+results|final\s+results)[^<]*)</\1>",
    re.IGNORECASE,
)
_HEADING_TEXT_RE = re.compile(r"((?:preliminary|final)\s+results[^.]{0,160}?review)", re.IGNORECASE)

_DATE = r"([A-Za-z]+\s+\d{1,2},\s+\d{4})"
_RANGE_SEP = r"(?:-|to|through|thru|–|—|‒|‑|‐)"
_PERIOD_PATTERNS = (
    re.compile(rf"(?:exist|exists)\s+for\s+the\s+period\s+{_DATE}[\s\S]{{0,80}}?{_RANGE_SEP}\s*{_DATE}", re.IGNORECASE),
    re.compile(rf"for\s+the\s+period\s+{_DATE}[\s\S]{{0,80}}?{_RANGE_SEP}\s*{_DATE}", re.IGNORECASE),
    re.compile(
        rf"{_DATE}[\s\S]{{0,80}}?{_RANGE_SEP}\s*{_DATE}[\s\S]{{0,24}}?(?:period|review|results)",
        re.IGNORECASE,
    ),
)


@dataclass(frozen=True, slots=True)
class CompanyRate:
    company: str
    rate: str

    def to_dict(self) -> dict[str, str]:
        return {
            "company": self.company,
            "rate": self.rate,
            "unit": "percent",
            "rate_text": f"{self.rate}%" if self.rate else "",
        }


@dataclass(frozen=True, slots=True)
class ReviewPeriod:
    start: str
    end: str
    text: str


def normalize_company(name: str) -> str:
    if not name:
        return ""
    cleaned = re.sub(r"\s+", " ", name)
    cleaned = re.sub(r"\[\d+\]", "", cleaned)
    cleaned = re.sub(r"[*†‡]", "", cleaned)
    cleaned = re.sub(r"\d+$", "", cleaned)
    cleaned = re.sub(r",$", "", cleaned).strip()

    lowered = cleaned.lower()
    if "companies not selected for individual examination" in lowered or "non-selected companies" in lowered:
        return "Non-Selected Companies"
    if "all others" in lowered:
        return "All Others"
    return cleaned


def normalize_rate(raw: str) -> str:
    if not raw:
        return ""
    lowered = raw.strip().lower()
    if lowered in NO_RATE_VALUES:
        return ""
    match = _RATE_NUMBER_RE.search(lowered)
    return match.group(1) if match else ""


def detect_special_case(html: str) -> SpecialCase | None:
    """Notices where automatic rate extraction should not be trusted."""
    if not html:
        return None
    lowered = html.lower()
    if "rescission" in lowered and ("review" in lowered or "sunset" in lowered):
        return "rescission"
    if "clerical error" in lowered or "correction of clerical" in lowered:
        return "clerical_correction"
    return None


def is_pdf_only(html: str) -> bool:
    return PDF_ONLY_MARKER in (html or "")


def _target_tables(soup: BeautifulSoup) -> list[Tag]:
    for heading in soup.find_all(["h2", "h3"]):
        text = heading.get_text().lower()
        if any(marker in text for marker in RESULTS_HEADING_MARKERS):
            table = heading.find_next_sibling("table")
            if table is not None:
                return [table]
            break
    return soup.find_all("table")


def _header_indices(row: Tag) -> tuple[int, int]:
    company_idx = rate_idx = -1
    for idx, cell in enumerate(row.find_all(["th", "td"])):
        text = cell.get_text().strip().lower()
        if any(word in text for word in COMPANY_HEADER_WORDS):
            company_idx = idx
        if any(word in text for word in RATE_HEADER_WORDS):
            rate_idx = idx
    return company_idx, rate_idx


def _body_rows(table: Tag) -> list[Tag]:
    bodies = table.find_all("tbody")
    if bodies:
        return [row for body in bodies for row in body.find_all("tr")]
    thead = table.find("thead")
    return [row for row in table.find_all("tr") if thead is None or row.find_parent("thead") is None]


def _parse_table(table: Tag) -> list[CompanyRate]:
    lowered = table.decode_contents().lower()
    if not any(keyword in lowered for keyword in TABLE_KEYWORDS):
        return []

    company_idx = rate_idx = -1
    header_row = table.select_one("thead tr")
    if header_row is not None:
        company_idx, rate_idx = _header_indices(header_row)

    rows = _body_rows(table)
    if (company_idx < 0 or rate_idx < 0) and rows:
        company_idx, rate_idx = _header_indices(rows[0])
        rows = rows[1:]
    if company_idx < 0 or rate_idx < 0:
        return []

    rates: list[CompanyRate] = []
    for row in rows:
        cells = row.find_all("td")
        if len(cells) <= max(company_idx, rate_idx):
            continue
        company = normalize_company(cells[company_idx].get_text().strip())
        rate = normalize_rate(cells[rate_idx].get_text().strip())
        if company and rate:
            rates.append(CompanyRate(company=company, rate=rate))
    return rates


def _dedupe_by_company(rates: list[CompanyRate]) -> list[CompanyRate]:
    by_company: dict[str, CompanyRate] = {}
    for item in rates:
        by_company[item.company] = item
    return list(by_company.values())


def parse_company_rates(html: str) -> list[CompanyRate]:
    """Company/rate rows, preferring the table after a final-results heading."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    rates: list[CompanyRate] = []
    for table in _target_tables(soup):
        rates.extend(_parse_table(table))

    if not rates:
        text = soup.get_text()
        all_others = _ALL_OTHERS_RE.search(text)
        if all_others:
            rates.append(CompanyRate(company="All Others", rate=all_others.group(1)))
        non_selected = _NON_SELECTED_RE.search(text)
        if non_selected:
            rates.append(CompanyRate(company="Non-Selected Companies", rate=non_selected.group(1)))

    return _dedupe_by_company(rates)


def _plain_text(html: str) -> str:
    return _TAG_RE.sub(" ", html)


def extract_heading_text(html: str) -> str | None:
    tag_match = _HEADING_TAG_RE.search(html or "")
    if tag_match:
        heading = tag_match.group(2)
    else:
        text_match = _HEADING_TEXT_RE.search(_plain_text(html or ""))
        heading = text_match.group(1) if text_match else None
    return re.sub(r"\s+", " ", heading).strip() if heading else None


def extract_review_period(html: str) -> ReviewPeriod | None:
    plain = _plain_text(html or "")
    for pattern in _PERIOD_PATTERNS:
        match = pattern.search(html or "") or pattern.search(plain)
        if match:
            return ReviewPeriod(
                start=match.group(1),
                end=match.group(2),
                text=re.sub(r"\s+", " ", match.group(0)).strip(),
            )
    return None
