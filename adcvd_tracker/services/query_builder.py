from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from adcvd_tracker.models.documents import SearchChunk
from adcvd_tracker.models.investigation import InvestigationTag

ALL_ENTITIES = "all"


@dataclass(slots=True)
class EntityClues:
    product_titles: list[str] = field(default_factory=list)
    case_numbers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "productTitles": list(self.product_titles),
            "caseNumbers": list(self.case_numbers),
        }


@dataclass(frozen=True, slots=True)
class CustomTerm:
    phrase: str
    exact: bool = False
    and_final: bool = False
    country: str | None = None


def normalize_boolean_operators(text: str) -> str:
    """Rewrite textual AND/OR into the search engine's ``&``/``|`` operators."""
    text = re.sub(r"\bAND\b", "&", text, flags=re.IGNORECASE)
    return re.sub(r"\bOR\b", "|", text, flags=re.IGNORECASE)


def group_by_entity(tags: Iterable[InvestigationTag]) -> dict[str, EntityClues]:
    """Collect product titles and case numbers per country, in discovery order."""
    grouped: dict[str, EntityClues] = {}
    for tag in tags:
        for country in tag.countries:
            clues = grouped.setdefault(country, EntityClues())
            if tag.product_title and tag.product_title not in clues.product_titles:
                clues.product_titles.append(tag.product_title)
            for number in tag.case_numbers:
                if number not in clues.case_numbers:
                    clues.case_numbers.append(number)
    return grouped


def _with_country(expression: str, country: str, include_country: bool) -> str:
    if include_country and country:
        return f'{expression} & "{country}"'
    return expression


def _dedupe_and_cap(terms: Iterable[str], max_terms: int) -> list[str]:
    unique = list(dict.fromkeys(t for t in terms if t))
    if max_terms > 0:
        return unique[:max_terms]
    return unique


def build_entity_terms(
    entity: str,
    clues: EntityClues,
    *,
    legal_terms: str,
    max_terms: int,
    include_country: bool = False,
) -> list[str]:
    """Build the prioritized search expressions for one entity."""
    terms: list[str] = []
    for number in clues.case_numbers:
        terms.append(_with_country(f'("{number}") & {legal_terms}', entity, include_country))
        terms.append(_with_country(f'"{number}"', entity, include_country))
    for product_title in clues.product_titles:
        terms.append(_with_country(f'("{product_title}") & {legal_terms}', entity, include_country))
    return _dedupe_and_cap(terms, max_terms)


def build_custom_term(term: CustomTerm, entity: str, include_country: bool) -> str:
    parts = [f'"{term.phrase}"' if term.exact else term.phrase]
    if term.and_final:
        parts.append("Final Results")
    if include_country and entity:
        parts.append(f'"{entity}"')
    return " & ".join(parts)


def build_custom_terms(
    entities: Iterable[str],
    custom_terms: Iterable[CustomTerm],
    *,
    max_terms: int,
    include_country: bool = False,
    broadcast: bool = False,
) -> dict[str, list[str]]:
    """Distribute caller-supplied phrases over the known entities.

    A phrase goes to its named entity; the ``all`` marker or ``broadcast``
    sends it to every entity. Phrases naming an unknown entity are skipped.
    """
    constructed: dict[str, list[str]] = {entity: [] for entity in entities}
    for term in custom_terms:
        if not term.phrase:
            continue
        target = term.country if term.country and term.country != ALL_ENTITIES else None
        if target and target in constructed:
            constructed[target].append(build_custom_term(term, target, include_country))
        elif term.country == ALL_ENTITIES or broadcast:
            for entity in constructed:
                constructed[entity].append(build_custom_term(term, entity, include_country))
    return {entity: _dedupe_and_cap(terms, max_terms) for entity, terms in constructed.items()}


def chunk_terms(entity: str, terms: list[str], chunk_size: int) -> list[SearchChunk]:
    size = max(int(chunk_size), 1)
    chunks: list[SearchChunk] = []
    for start in range(0, len(terms), size):
        combined = " | ".join(f"({t})" for t in terms[start:start + size])
        if combined:
            chunks.append(SearchChunk(entity=entity, term=combined, index=len(chunks)))
    return chunks


def build_search_chunks(
    grouped: dict[str, EntityClues],
    *,
    legal_terms: str,
    chunk_size: int,
    max_terms: int,
    include_country: bool = False,
    custom_terms: list[CustomTerm] | None = None,
    broadcast: bool = False,
) -> tuple[dict[str, list[str]], dict[str, list[SearchChunk]]]:
    """Return ``(constructed_terms, chunks)`` keyed by entity in discovery order."""
    legal = normalize_boolean_operators(legal_terms)
    if custom_terms:
        constructed = build_custom_terms(
            grouped.keys(),
            custom_terms,
            max_terms=max_terms,
            include_country=include_country,
            broadcast=broadcast,
        )
    else:
        constructed = {
            entity: build_entity_terms(
                entity,
                clues,
                legal_terms=legal,
                max_terms=max_terms,
                include_country=include_country,
            )
            for entity, clues in grouped.items()
        }
    chunks = {entity: chunk_terms(entity, terms, chunk_size) for entity, terms in constructed.items()}
    return constructed, chunks
