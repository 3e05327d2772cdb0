from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from adcvd_tracker.models.documents import SearchChunk
from adcvd_tracker.models.interfaces import SearchPage, SearchQuery
from adcvd_tracker.services.fetch_scheduler import FetchScheduler, dedupe_documents, plan_fetches
from conftest import FakeSource, make_doc


def _chunks(**counts: int) -> dict[str, list[SearchChunk]]:
    return {
        entity: [SearchChunk(entity=entity, term=f"{entity}-{i}", index=i) for i in range(n)]
        for entity, n in counts.items()
    }


def test_plan_gives_every_entity_its_minimum_first():
    plan = plan_fetches(_chunks(A=3, B=1, C=2), fetch_cap=4, per_entity_minimum=1)
    assert [c.term for c in plan.fairness] == ["A-0", "B-0", "C-0"]
    assert [c.term for c in plan.round_robin] == ["A-1"]
    assert len(plan.calls) == 4


def test_plan_minimum_of_two_skips_exhausted_entities():
    plan = plan_fetches(_chunks(A=3, B=1, C=2), fetch_cap=10, per_entity_minimum=2)
    assert [c.term for c in plan.fairness] == ["A-0", "B-0", "C-0", "A-1", "C-1"]
    assert [c.term for c in plan.round_robin] == ["A-2"]


def test_plan_never_exceeds_cap():
    chunks = _chunks(A=5, B=5, C=5)
    for cap in range(0, 17):
        assert len(plan_fetches(chunks, fetch_cap=cap, per_entity_minimum=1).calls) == min(cap, 15)


def test_plan_cap_below_entity_count_serves_discovery_order():
    plan = plan_fetches(_chunks(A=2, B=2, C=2), fetch_cap=2, per_entity_minimum=1)
    assert [c.term for c in plan.calls] == ["A-0", "B-0"]


def test_dedupe_documents_by_number():
    docs = [make_doc("1", "first"), make_doc("2", "other"), make_doc("1", "again")]
    deduped = dedupe_documents(docs)
    assert [d.document_number for d in deduped] == ["1", "2"]
    assert deduped[0].title == "again"


@pytest.mark.asyncio
async def test_round_robin_records_failures_and_counts_them_against_budget():
    def search_fn(query: SearchQuery):
        if query.term.startswith("B"):
            raise RuntimeError("boom")
        return [make_doc(f"{query.term}-doc", "Final Results of Administrative Review")]

    source = FakeSource(search_fn=search_fn)
    scheduler = FetchScheduler(source, mode="round_robin", per_page=20)
    report = await scheduler.run(_chunks(A=2, B=2), fetch_cap=3, per_entity_minimum=1)

    assert report.calls_made == 3
    assert [q.term for q in source.search_calls] == ["A-0", "B-0", "A-1"]
    assert report.documents["B"] == []
    assert [d.document_number for d in report.documents["A"]] == ["A-0-doc", "A-1-doc"]
    failed = [r for r in report.records if r.error]
    assert len(failed) == 1
    assert failed[0].entity == "B"
    assert "boom" in failed[0].error


@pytest.mark.asyncio
async def test_non_success_status_yields_no_documents():
    class ErrorSource(FakeSource):
        async def search(self, query):
            self.search_calls.append(query)
            return SearchPage(url="https://fr.test/x", status_code=503, documents=[make_doc("9", "x")])

    source = ErrorSource()
    report = await FetchScheduler(source).run(_chunks(A=1), fetch_cap=5, per_entity_minimum=1)
    assert report.documents["A"] == []
    assert report.records[0].status == 503
    assert report.records[0].result_count == 0


@pytest.mark.asyncio
async def test_timeouts_become_failed_records():
    class SlowSource(FakeSource):
        async def search(self, query):
            await asyncio.sleep(1)
            return await super().search(query)

    report = await FetchScheduler(SlowSource(), timeout_seconds=0.01).run(
        _chunks(A=1), fetch_cap=1, per_entity_minimum=1
    )
    assert report.calls_made == 1
    assert "timed out" in report.records[0].error


@pytest.mark.asyncio
async def test_parallel_mode_finishes_fairness_phase_before_round_robin():
    source = FakeSource(search_fn=lambda q: [make_doc(q.term, "Initiation")])
    scheduler = FetchScheduler(source, mode="per_entity_parallel")
    report = await scheduler.run(_chunks(A=3, B=1), fetch_cap=4, per_entity_minimum=1)

    terms = [q.term for q in source.search_calls]
    assert terms[:2] == ["A-0", "B-0"]
    assert sorted(terms[2:]) == ["A-1", "A-2"]
    assert report.calls_made == 4
    assert len(report.documents["A"]) == 3


@pytest.mark.asyncio
async def test_queries_carry_filters_and_newest_order():
    source = FakeSource()
    scheduler = FetchScheduler(
        source,
        per_page=50,
        agencies=("international-trade-administration",),
        types=("RULE", "NOTICE"),
        facets=("agency",),
    )
    await scheduler.run(_chunks(A=1), fetch_cap=1, per_entity_minimum=1)
    query = source.search_calls[0]
    assert query.per_page == 50
    assert query.order == "newest"
    assert query.types == ("RULE", "NOTICE")
    assert query.facets == ("agency",)


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        FetchScheduler(FakeSource(), mode="sideways")


@pytest.mark.asyncio
async def test_filters_reach_every_search_query():
    source = FakeSource()
    page = SearchPage(url="https://fr.test/documents.json", status_code=200, documents=[make_doc("1", "Final Results")])
    scheduler = FetchScheduler(
        source,
        mode="per_entity_parallel",
        per_page=5,
        agencies=("international-trade-administration",),
        types=("NOTICE",),
    )

    with patch.object(source, "search", new=AsyncMock(return_value=page)) as mocked:
        report = await scheduler.run(_chunks(A=1, B=1), fetch_cap=10, per_entity_minimum=1)

    assert mocked.await_count == 2
    queries = [call.args[0] for call in mocked.await_args_list]
    assert [q.term for q in queries] == ["A-0", "B-0"]
    assert all(q.per_page == 5 and q.order == "newest" for q in queries)
    assert all(q.agencies == ("international-trade-administration",) for q in queries)
    assert report.documents == {"A": [page.documents[0]], "B": [page.documents[0]]}
