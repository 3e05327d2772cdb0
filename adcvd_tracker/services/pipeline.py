"""End-to-end notice lookup: investigations in, one notice per country out.

Two presets share the same flow. ``tracker`` is the lean variant (parallel
per-entity fetches, zero scores excluded, winner-only enrichment) and
``verifier`` is the diagnostic one that returns the whole trace.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal

from adcvd_tracker.config import settings
from adcvd_tracker.models.documents import CandidateDocument, ScoredCandidate, SelectedResult, TableSignal
from adcvd_tracker.models.interfaces import (
    DocumentSource,
    EnrichMode,
    InvestigationFeed,
    ScheduleMode,
    TableCheckMode,
)
from adcvd_tracker.models.investigation import InvestigationTag
from adcvd_tracker.normalize.investigations import normalize_investigations
from adcvd_tracker.services import logger as log_service
from adcvd_tracker.services.enricher import DetailEnricher
from adcvd_tracker.services.errors import InvalidRequestError
from adcvd_tracker.services.fetch_scheduler import FetchScheduler
from adcvd_tracker.services.query_builder import CustomTerm, EntityClues, build_search_chunks, group_by_entity
from adcvd_tracker.services.result_cache import ResultCache, build_cache_key, cached_run
from adcvd_tracker.services.scoring import DEFAULT_WEIGHTS, ScoreWeights, score_candidate, select_best
from adcvd_tracker.tools.table_signals import TableSignalChecker

PipelineName = Literal["tracker", "verifier"]


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class PipelineOptions:
    name: PipelineName = "verifier"
    schedule_mode: ScheduleMode = "round_robin"
    exclude_floor: bool = False
    enrich_mode: EnrichMode = "all"
    diagnostic: bool = True
    enable_scoring: bool = True
    per_page: int = 20
    chunk_size: int = 10
    max_terms_per_entity: int = 200
    fetch_cap: int = 12
    per_entity_minimum: int = 1
    legal_terms: str = ""
    include_country: bool = False
    country_broadcast: bool = False
    custom_terms: tuple[CustomTerm, ...] = ()
    weights: ScoreWeights = DEFAULT_WEIGHTS
    agencies: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    facets: tuple[str, ...] = ()
    table_check_mode: TableCheckMode = "topN"
    table_check_top_n: int = 3
    table_check_cap: int = 10
    detail_fetch_cap: int | None = None

    @classmethod
    def tracker_defaults(cls, **overrides: Any) -> "PipelineOptions":
        base = cls(
            name="tracker",
            schedule_mode="per_entity_parallel",
            exclude_floor=True,
            enrich_mode="winner",
            diagnostic=False,
            per_page=settings.tracker_per_page,
            chunk_size=settings.tracker_chunk_size,
            max_terms_per_entity=settings.tracker_max_terms_per_country,
            fetch_cap=settings.tracker_fetch_cap,
            per_entity_minimum=settings.tracker_per_country_min,
            legal_terms=settings.default_legal_terms,
            agencies=_split_csv(settings.default_agencies),
            types=_split_csv(settings.default_document_types),
            table_check_mode="none",
        )
        return replace(base, **overrides)

    @classmethod
    def verifier_defaults(cls, **overrides: Any) -> "PipelineOptions":
        base = cls(
            name="verifier",
            per_page=settings.verifier_per_page,
            chunk_size=settings.verifier_chunk_size,
            max_terms_per_entity=settings.verifier_max_terms_per_country,
            fetch_cap=settings.verifier_fetch_cap,
            per_entity_minimum=settings.verifier_per_country_min,
            legal_terms=settings.default_legal_terms,
            agencies=_split_csv(settings.default_agencies),
            types=_split_csv(settings.default_document_types),
            table_check_top_n=settings.verifier_table_check_top_n,
            table_check_cap=settings.verifier_table_check_cap,
        )
        return replace(base, **overrides)

    def resolved_detail_cap(self, entity_count: int) -> int:
        if self.detail_fetch_cap is not None:
            return max(self.detail_fetch_cap, 0)
        if self.enrich_mode == "all":
            return min(settings.verifier_detail_fetch_cap, max(self.per_page * self.fetch_cap, 25))
        if self.enrich_mode == "winner":
            return entity_count
        return 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["custom_terms"] = [asdict(t) for t in self.custom_terms]
        data["weights"] = self.weights.to_dict()
        return data


@dataclass(slots=True)
class PipelineResult:
    payload: dict[str, Any]
    cache_hit: bool = False


@dataclass(slots=True)
class _RunState:
    tags: list[InvestigationTag] = field(default_factory=list)
    grouped: dict[str, EntityClues] = field(default_factory=dict)
    constructed: dict[str, list[str]] = field(default_factory=dict)
    chunks: dict[str, list[str]] = field(default_factory=dict)
    records: list[dict[str, Any]] = field(default_factory=list)
    documents: dict[str, list[CandidateDocument]] = field(default_factory=dict)
    features: dict[str, dict[str, TableSignal]] = field(default_factory=dict)
    feature_rows: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    candidates: list[ScoredCandidate] = field(default_factory=list)
    selected: dict[str, SelectedResult] = field(default_factory=dict)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def ids_links(tags: list[InvestigationTag]) -> list[dict[str, str]]:
    """Case links keyed by URL; a repeated URL keeps its first position, last title."""
    by_url: dict[str, dict[str, str]] = {}
    for tag in tags:
        if tag.url:
            by_url[tag.url] = {"title": tag.title, "url": tag.url}
    return list(by_url.values())


def doc_html_links(documents: dict[str, list[CandidateDocument]]) -> dict[str, str]:
    links: dict[str, str] = {}
    for docs in documents.values():
        for doc in docs:
            if doc.document_number and doc.html_url:
                links[doc.document_number] = doc.html_url
    return links


def _feature_dict(doc: CandidateDocument, signal: TableSignal) -> dict[str, Any]:
    return {
        "has_body_html": signal.has_body_html,
        "has_rate_table": signal.has_rate_table,
        "matched_headers": list(signal.matched_headers),
        "body_html_url": doc.body_html_url,
        "full_text_xml_url": doc.full_text_xml_url,
        "raw_text_url": doc.raw_text_url,
        "toc_subject": doc.toc_subject,
        "toc_doc": doc.toc_doc,
    }


class NoticePipeline:
    """Runs one lookup against injected collaborators, memoized in ``cache``."""

    def __init__(self, source: DocumentSource, feed: InvestigationFeed, cache: ResultCache):
        self.source = source
        self.feed = feed
        self.cache = cache

    async def run(self, hts_code: str, year: str, options: PipelineOptions) -> PipelineResult:
        hts_code = (hts_code or "").strip()
        year = str(year or "").strip()
        if not hts_code:
            raise InvalidRequestError("Missing hts_code")
        if not year:
            raise InvalidRequestError("Missing year")

        key = build_cache_key(options.name, hts_code, year, options.to_dict())
        started = time.perf_counter()
        try:
            payload, hit = await cached_run(
                self.cache,
                key,
                lambda: self._compute(hts_code, year, options),
            )
        except Exception as exc:
            log_service.log_pipeline_run(options.name, key, "failed", {"error": str(exc)})
            raise

        log_service.log_pipeline_run(
            options.name,
            key,
            "cache_hit" if hit else "computed",
            {"elapsed_ms": int((time.perf_counter() - started) * 1000)},
        )
        return PipelineResult(payload=payload, cache_hit=hit)

    async def _compute(self, hts_code: str, year: str, options: PipelineOptions) -> dict[str, Any]:
        raw_records = await self.feed.fetch_investigations(hts_code, year)
        state = _RunState(tags=normalize_investigations(raw_records))
        if not state.tags:
            log_service.log_event("no_investigations", f"No investigations for {hts_code}/{year}")
            return self._payload(hts_code, year, options, state)

        state.grouped = group_by_entity(state.tags)
        constructed, chunks = build_search_chunks(
            state.grouped,
            legal_terms=options.legal_terms or settings.default_legal_terms,
            chunk_size=options.chunk_size,
            max_terms=options.max_terms_per_entity,
            include_country=options.include_country,
            custom_terms=list(options.custom_terms),
            broadcast=options.country_broadcast,
        )
        state.constructed = constructed
        state.chunks = {entity: [c.term for c in entity_chunks] for entity, entity_chunks in chunks.items()}

        scheduler = FetchScheduler(
            self.source,
            mode=options.schedule_mode,
            per_page=options.per_page,
            agencies=options.agencies,
            types=options.types,
            facets=options.facets,
            timeout_seconds=settings.search_timeout_seconds,
        )
        report = await scheduler.run(
            chunks,
            fetch_cap=options.fetch_cap,
            per_entity_minimum=options.per_entity_minimum,
        )
        state.documents = report.documents

        enricher = DetailEnricher(
            self.source,
            cap=options.resolved_detail_cap(len(state.documents)),
            timeout_seconds=settings.detail_timeout_seconds,
        )
        if options.enrich_mode == "all":
            for entity, docs in state.documents.items():
                state.documents[entity] = await enricher.enrich_many(entity, docs)

        if options.table_check_mode != "none":
            await self._collect_features(state, options)

        if options.enable_scoring:
            await self._score(state, options, enricher)

        state.records = [r.to_dict() for r in report.records + enricher.records]
        return self._payload(hts_code, year, options, state)

    async def _collect_features(self, state: _RunState, options: PipelineOptions) -> None:
        checker = TableSignalChecker(
            self.source,
            cap=options.table_check_cap,
            timeout_seconds=settings.html_timeout_seconds,
        )
        for entity, docs in state.documents.items():
            to_check = docs if options.table_check_mode == "all" else docs[: max(options.table_check_top_n, 0)]
            signals = await checker.check_many(to_check)
            state.features[entity] = signals
            state.feature_rows[entity] = {
                doc.document_number: _feature_dict(doc, signals[doc.document_number])
                for doc in to_check
                if doc.document_number in signals
            }

    async def _score(self, state: _RunState, options: PipelineOptions, enricher: DetailEnricher) -> None:
        for entity, docs in state.documents.items():
            signals = state.features.get(entity, {})
            scored = [
                score_candidate(entity, doc, options.weights, signals.get(doc.document_number))
                for doc in docs
            ]
            state.candidates.extend(scored)
            winner = select_best(scored, exclude_floor=options.exclude_floor, floor=options.weights.floor)
            if winner is None:
                continue
            document = winner.document
            if options.enrich_mode == "winner":
                document = await enricher.enrich(entity, document)
            state.selected[entity] = SelectedResult(entity=entity, latest=document.to_latest(), score=winner.score)

    def _countries(self, state: _RunState) -> list[dict[str, Any]]:
        return [
            state.selected.get(entity, SelectedResult(entity=entity)).to_dict()
            for entity in sorted(state.documents)
        ]

    def _payload(
        self,
        hts_code: str,
        year: str,
        options: PipelineOptions,
        state: _RunState,
    ) -> dict[str, Any]:
        if not options.diagnostic:
            return {
                "updatedAt": _utc_now_iso(),
                "countries": self._countries(state),
                "idsLinks": ids_links(state.tags),
                "debug_found_docs": state.records,
            }

        scoring = None
        if options.enable_scoring:
            scoring = {
                "rule": options.weights.to_dict(),
                "candidates_per_country": [c.to_dict() for c in state.candidates],
                "selected_per_country": {
                    entity: {"latest": result.latest, "score": result.score}
                    for entity, result in state.selected.items()
                },
            }
        return {
            "input": {"hts_code": hts_code, "year": year, **options.to_dict()},
            "investigations": [t.to_dict() for t in state.tags],
            "grouped": {entity: clues.to_dict() for entity, clues in state.grouped.items()},
            "legalTerms": options.legal_terms or settings.default_legal_terms,
            "constructed_terms": state.constructed,
            "chunks": state.chunks,
            "fetches": state.records,
            "raw_documents": {
                entity: [d.to_dict() for d in docs] for entity, docs in state.documents.items()
            },
            "features": state.feature_rows,
            "scoring": scoring,
            "output": {
                "countries": self._countries(state),
                "idsLinks": ids_links(state.tags),
                "docHtmlLinks": doc_html_links(state.documents),
            },
        }
