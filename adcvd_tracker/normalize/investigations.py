"""Normalize raw USITC investigation records into structured tags.

The interesting part is case-number extraction. Titles end with a block
such as ``Inv. Nos. 701-TA-500 and 731-TA-100-102, 104 (Final)`` where a
``-TA-`` prefix is written once and carried across the following bare
numbers and ranges. The block is tokenized, each token is classified, and
a small state machine walks the tokens carrying the current prefix.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from adcvd_tracker.config import settings
from adcvd_tracker.models.investigation import InvestigationTag, InvestigationType

_DASH = r"[-–—]"

_CVD_RE = re.compile(rf"\b701(?:\s*{_DASH}\s*ta)?\s*{_DASH}\s*\d+\b", re.IGNORECASE)
_AD_RE = re.compile(rf"\b731(?:\s*{_DASH}\s*ta)?\s*{_DASH}\s*\d+\b", re.IGNORECASE)
_S337_RE = re.compile(rf"\b337\s*{_DASH}\s*ta\s*{_DASH}?\s*\d+\b", re.IGNORECASE)
_S337_PHRASE_RE = re.compile(r"section\s*337\b", re.IGNORECASE)
_S201_RE = re.compile(rf"\b(?:ta\s*{_DASH}\s*)?201\s*{_DASH}\s*\d+\b", re.IGNORECASE)
_S201_PHRASE_RE = re.compile(r"section\s*201\b|safeguard\b", re.IGNORECASE)

_COUNTRIES_RE = re.compile(r"from\s+(.*?)(?:\s+Inv\.\s+Nos?\.|$)", re.IGNORECASE)
_COUNTRY_SPLIT_RE = re.compile(r",\s*(?:and\s+)?|\s+and\s+", re.IGNORECASE)
_PRODUCT_RE = re.compile(r"^(.*?)\s+from", re.IGNORECASE)
_BLOCK_RE = re.compile(r"Inv\.\s+Nos?\.\s+(.*?)\s+\(")
_BLOCK_AND_RE = re.compile(r"\s+and\s+", re.IGNORECASE)

_PREFIX_INFIX = "-TA-"
_TRAILING_RANGE_RE = re.compile(r"(\d+)-(\d+)$")
_BARE_NUMBER_RE = re.compile(r"^\d+$")
_BARE_RANGE_RE = re.compile(r"^(\d+)-(\d+)$")


class TokenKind(str, Enum):
    PREFIXED_FULL = "prefixed_full"
    PREFIXED_RANGE = "prefixed_range"
    BARE_NUMBER = "bare_number"
    BARE_RANGE = "bare_range"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class CaseToken:
    kind: TokenKind
    text: str
    prefix: str = ""
    start: int | None = None
    end: int | None = None


def classify_types_from_title(title: str) -> list[InvestigationType]:
    """Detect every trade-remedy case type mentioned in a title."""
    types: list[InvestigationType] = []
    if _CVD_RE.search(title):
        types.append("CVD")
    if _AD_RE.search(title):
        types.append("AD")
    if _S201_RE.search(title) or _S201_PHRASE_RE.search(title):
        types.append("201")
    if _S337_RE.search(title) or _S337_PHRASE_RE.search(title):
        types.append("337")
    return types


def _types_from_number(number: str) -> list[InvestigationType]:
    if number.startswith("701"):
        return ["CVD"]
    if number.startswith("731"):
        return ["AD"]
    if number.startswith("A-"):
        return ["AD"]
    if number.startswith("C-"):
        return ["CVD"]
    if number.startswith("201"):
        return ["201"]
    if number.startswith("337"):
        return ["337"]
    return []


def classify_types(title: str, number: str) -> tuple[InvestigationType, ...]:
    types = classify_types_from_title(title) or _types_from_number(number)
    return tuple(types) if types else ("Other",)


def dedupe_investigations(records: Iterable[dict[str, Any]] | None) -> list[dict[str, Any]]:
    seen: set[tuple[str, str, str]] = set()
    unique: list[dict[str, Any]] = []
    for record in records or []:
        key = (
            str(record.get("investigationId")),
            str(record.get("investigationNumber")),
            str(record.get("phase")),
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def extract_countries(title: str) -> list[str]:
    match = _COUNTRIES_RE.search(title)
    if not match or not match.group(1):
        return []
    raw = match.group(1).strip()
    raw = re.sub(r";$", "", raw).strip()
    return [c.strip() for c in _COUNTRY_SPLIT_RE.split(raw) if c and c.strip()]


def extract_product_title(title: str) -> str:
    match = _PRODUCT_RE.search(title)
    product = match.group(1) if match else title
    return re.sub(r",$", "", product.strip())


def tokenize_case_block(block: str) -> list[CaseToken]:
    """Split an ``Inv. Nos.`` block and classify each token."""
    normalized = _BLOCK_AND_RE.sub(", ", block)
    tokens: list[CaseToken] = []
    for raw in re.split(r",\s*", normalized):
        text = raw.strip()
        if not text:
            continue
        tokens.append(_classify_token(text))
    return tokens


def _classify_token(text: str) -> CaseToken:
    if _PREFIX_INFIX in text:
        prefix = text[: text.index(_PREFIX_INFIX) + len(_PREFIX_INFIX)]
        remainder = text[len(prefix):]
        range_match = _TRAILING_RANGE_RE.search(remainder)
        if range_match:
            return CaseToken(
                kind=TokenKind.PREFIXED_RANGE,
                text=text,
                prefix=text[: len(prefix) + range_match.start()],
                start=int(range_match.group(1)),
                end=int(range_match.group(2)),
            )
        return CaseToken(kind=TokenKind.PREFIXED_FULL, text=text, prefix=prefix)

    range_match = _BARE_RANGE_RE.match(text)
    if range_match:
        return CaseToken(
            kind=TokenKind.BARE_RANGE,
            text=text,
            start=int(range_match.group(1)),
            end=int(range_match.group(2)),
        )
    if _BARE_NUMBER_RE.match(text):
        return CaseToken(kind=TokenKind.BARE_NUMBER, text=text, start=int(text), end=int(text))
    return CaseToken(kind=TokenKind.OTHER, text=text)


def expand_case_tokens(tokens: Iterable[CaseToken]) -> list[str]:
    """Walk classified tokens, carrying the last ``-TA-`` prefix forward."""
    numbers: list[str] = []
    current_prefix = ""
    for token in tokens:
        if token.kind is TokenKind.PREFIXED_FULL:
            current_prefix = token.prefix
            numbers.append(token.text)
        elif token.kind is TokenKind.PREFIXED_RANGE:
            current_prefix = token.text[: token.text.index(_PREFIX_INFIX) + len(_PREFIX_INFIX)]
            numbers.extend(f"{token.prefix}{i}" for i in range(token.start, token.end + 1))
        elif token.kind in (TokenKind.BARE_NUMBER, TokenKind.BARE_RANGE) and current_prefix:
            numbers.extend(f"{current_prefix}{i}" for i in range(token.start, token.end + 1))
    return numbers


def extract_case_numbers(title: str, number: str) -> tuple[str, ...]:
    found: dict[str, None] = {}
    if number:
        found[number] = None
    match = _BLOCK_RE.search(title)
    if match and match.group(1):
        for case_number in expand_case_tokens(tokenize_case_block(match.group(1))):
            found.setdefault(case_number, None)
    return tuple(found)


def build_case_url(case_id: Any, investigation_id: Any) -> str | None:
    if not case_id or not investigation_id:
        return None
    return settings.ids_case_url_template.format(
        case_id=case_id,
        investigation_id=investigation_id,
    )


def normalize_investigation(record: dict[str, Any]) -> InvestigationTag:
    title = str(record.get("investigationTitle") or "")
    number = str(record.get("investigationNumber") or "")
    phase = record.get("phase")
    return InvestigationTag(
        number=number,
        phase=str(phase) if phase is not None else None,
        types=classify_types(title, number),
        title=title,
        product_title=extract_product_title(title),
        case_numbers=extract_case_numbers(title, number),
        countries=tuple(extract_countries(title)),
        url=build_case_url(record.get("caseId"), record.get("investigationId")),
    )


def normalize_investigations(records: Iterable[dict[str, Any]] | None) -> list[InvestigationTag]:
    return [normalize_investigation(r) for r in dedupe_investigations(records)]
