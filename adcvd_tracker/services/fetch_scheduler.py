"""Budgeted, fair scheduling of Federal Register searches across entities.

Planning is pure: :func:`plan_fetches` decides which chunk each call will
consume before any network traffic happens. Every attempt costs one unit
of budget whether it succeeds or not. Execution then follows the plan
in one of two shapes (``round_robin`` or ``per_entity_parallel``).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from adcvd_tracker.models.documents import CandidateDocument, FetchRecord, SearchChunk
from adcvd_tracker.models.interfaces import DocumentSource, ScheduleMode, SearchPage, SearchQuery
from adcvd_tracker.services import logger as log_service
from adcvd_tracker.services.outcomes import Outcome, settle_all, with_timeout


@dataclass(slots=True)
class FetchPlan:
    fairness: list[SearchChunk] = field(default_factory=list)
    round_robin: list[SearchChunk] = field(default_factory=list)

    @property
    def calls(self) -> list[SearchChunk]:
        return self.fairness + self.round_robin


@dataclass(slots=True)
class SchedulerReport:
    records: list[FetchRecord] = field(default_factory=list)
    documents: dict[str, list[CandidateDocument]] = field(default_factory=dict)
    calls_made: int = 0

    def raw_documents(self) -> dict[str, list[dict[str, Any]]]:
        return {entity: [d.to_dict() for d in docs] for entity, docs in self.documents.items()}


def _single_pass(
    chunks: dict[str, list[SearchChunk]],
    cursors: dict[str, int],
    budget_left: int,
) -> list[SearchChunk]:
    picked: list[SearchChunk] = []
    for entity, entity_chunks in chunks.items():
        if len(picked) >= budget_left:
            break
        idx = cursors[entity]
        if idx < len(entity_chunks):
            picked.append(entity_chunks[idx])
            cursors[entity] = idx + 1
    return picked


def plan_fetches(
    chunks: dict[str, list[SearchChunk]],
    *,
    fetch_cap: int,
    per_entity_minimum: int,
) -> FetchPlan:
    """Allocate at most ``fetch_cap`` calls, fairness phase first."""
    plan = FetchPlan()
    cursors = {entity: 0 for entity in chunks}
    budget = max(int(fetch_cap), 0)

    for _round in range(max(int(per_entity_minimum), 0)):
        if budget <= 0:
            break
        picked = _single_pass(chunks, cursors, budget)
        if not picked:
            break
        plan.fairness.extend(picked)
        budget -= len(picked)

    while budget > 0:
        picked = _single_pass(chunks, cursors, budget)
        if not picked:
            break
        plan.round_robin.extend(picked)
        budget -= len(picked)

    return plan


def dedupe_documents(documents: list[CandidateDocument]) -> list[CandidateDocument]:
    by_number: dict[str, CandidateDocument] = {}
    for doc in documents:
        if doc.document_number:
            by_number[doc.document_number] = doc
    return list(by_number.values())


class FetchScheduler:
    """Runs a :class:`FetchPlan` against a document source."""

    def __init__(
        self,
        source: DocumentSource,
        *,
        mode: ScheduleMode = "round_robin",
        per_page: int = 20,
        agencies: tuple[str, ...] = (),
        types: tuple[str, ...] = (),
        facets: tuple[str, ...] = (),
        timeout_seconds: float = 12.0,
    ):
        if mode not in ("round_robin", "per_entity_parallel"):
            raise ValueError(f"Unsupported schedule mode: {mode}")
        self.source = source
        self.mode = mode
        self.per_page = per_page
        self.agencies = agencies
        self.types = types
        self.facets = facets
        self.timeout_seconds = timeout_seconds

    def _query(self, chunk: SearchChunk) -> SearchQuery:
        return SearchQuery(
            term=chunk.term,
            per_page=self.per_page,
            order="newest",
            agencies=self.agencies,
            types=self.types,
            facets=self.facets,
        )

    async def run(
        self,
        chunks: dict[str, list[SearchChunk]],
        *,
        fetch_cap: int,
        per_entity_minimum: int,
    ) -> SchedulerReport:
        plan = plan_fetches(chunks, fetch_cap=fetch_cap, per_entity_minimum=per_entity_minimum)
        report = SchedulerReport(documents={entity: [] for entity in chunks})

        for phase in (plan.fairness, plan.round_robin):
            if self.mode == "round_robin":
                for chunk in phase:
                    await self._run_batch([chunk], report)
            else:
                for entity in chunks:
                    batch = [c for c in phase if c.entity == entity]
                    if batch:
                        await self._run_batch(batch, report)

        for entity, docs in report.documents.items():
            report.documents[entity] = dedupe_documents(docs)
        return report

    async def _run_batch(self, batch: list[SearchChunk], report: SchedulerReport) -> None:
        queries = [self._query(chunk) for chunk in batch]
        report.calls_made += len(batch)
        outcomes = await settle_all(
            with_timeout(self.source.search(query), self.timeout_seconds) for query in queries
        )
        for chunk, query, outcome in zip(batch, queries, outcomes):
            self._collect(chunk, query, outcome, report)

    def _collect(
        self,
        chunk: SearchChunk,
        query: SearchQuery,
        outcome: Outcome[SearchPage],
        report: SchedulerReport,
    ) -> None:
        if not outcome.ok or outcome.value is None:
            record = FetchRecord(
                kind="search",
                entity=chunk.entity,
                url=self.source.search_url(query),
                error=outcome.reason or "empty response",
            )
        else:
            page = outcome.value
            count = len(page.documents) if page.ok else 0
            record = FetchRecord(
                kind="search",
                entity=chunk.entity,
                url=page.url or self.source.search_url(query),
                status=page.status_code,
                adapter_mode=page.adapter_mode,
                cache_header=page.cache_header,
                result_count=count,
            )
            if page.ok:
                report.documents[chunk.entity].extend(page.documents)

        report.records.append(record)
        log_service.log_fetch(
            record.kind,
            record.entity,
            record.url,
            status=record.status,
            result_count=record.result_count,
            error=record.error,
        )
