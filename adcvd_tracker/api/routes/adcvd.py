from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from adcvd_tracker.api.deps import get_company_rate_service, get_pipeline
from adcvd_tracker.models.schemas import parse_custom_terms, parse_score_weights
from adcvd_tracker.services import logger as log_service
from adcvd_tracker.services.company_rates import CompanyRateService
from adcvd_tracker.services.errors import InvalidRequestError, UpstreamError
from adcvd_tracker.services.pipeline import NoticePipeline, PipelineOptions, PipelineResult

router = APIRouter(prefix="/api/adcvd", tags=["adcvd"])

VERIFIER_ADAPTER_MODE = "verifier:company-rates"


def _current_year() -> str:
    return str(datetime.now(timezone.utc).year)


def _csv(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _overrides(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


async def _respond(
    run: Callable[[], Awaitable[PipelineResult]],
    *,
    context: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    base_headers = dict(headers or {})
    try:
        result = await run()
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc), headers=base_headers or None)
    except UpstreamError as exc:
        log_service.logger.warning(f"{context} upstream failure: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)}, headers=base_headers)
    except Exception as exc:
        log_service.logger.exception(f"{context} failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "internal_error"}, headers=base_headers)

    if result.cache_hit:
        base_headers["X-Cache-Hit"] = "true"
    return JSONResponse(content=result.payload, headers=base_headers)


@router.get("/tracker")
async def adcvd_tracker(
    hts_code: str = Query(""),
    year: str | None = Query(None),
    per_page: int | None = Query(None, ge=1),
    chunk_size: int | None = Query(None, ge=1),
    legal_terms: str | None = Query(None, alias="legalTerms"),
    agencies: str | None = Query(None),
    doc_type: str | None = Query(None, alias="type"),
    fetch_cap: int | None = Query(None, alias="fetchCap", ge=0),
    per_country_min: int | None = Query(None, alias="perCountryMin", ge=0),
    pipeline: NoticePipeline = Depends(get_pipeline),
):
    """Latest rate-setting notice per country for an HTS code."""
    options = PipelineOptions.tracker_defaults(
        **_overrides(
            per_page=per_page,
            chunk_size=chunk_size,
            legal_terms=legal_terms,
            agencies=_csv(agencies),
            types=_csv(doc_type),
            fetch_cap=fetch_cap,
            per_entity_minimum=per_country_min,
        )
    )
    return await _respond(
        lambda: pipeline.run(hts_code, year or _current_year(), options),
        context="tracker",
    )


@router.get("/verifier")
async def adcvd_verifier(
    hts_code: str = Query(""),
    year: str | None = Query(None),
    per_page: int | None = Query(None, ge=1),
    chunk_size: int | None = Query(None, ge=1),
    legal_terms: str | None = Query(None, alias="legalTerms"),
    agencies: str | None = Query(None),
    doc_type: str | None = Query(None, alias="type"),
    facets: str | None = Query(None),
    fetch_cap: int | None = Query(None, alias="fetchCap", ge=0),
    per_country_min: int | None = Query(None, alias="perCountryMin", ge=0),
    include_country: bool = Query(False, alias="includeCountry"),
    country_broadcast: bool = Query(False, alias="countryBroadcast"),
    enable_scoring: bool = Query(True, alias="enableScoring"),
    add_table_signals: bool = Query(True, alias="addTableSignals"),
    table_check_mode: str | None = Query(None, alias="tableCheckMode", pattern="^(none|topN|all)$"),
    table_check_top_n: int | None = Query(None, alias="tableCheckTopN", ge=0),
    table_check_cap: int | None = Query(None, alias="tableCheckCap", ge=0),
    enrich_mode: str | None = Query(None, alias="enrichMode", pattern="^(winner|all|none)$"),
    score_weights: str | None = Query(None, alias="scoreWeights"),
    custom_terms: str | None = Query(None, alias="customTerms"),
    pipeline: NoticePipeline = Depends(get_pipeline),
):
    """Diagnostic run that returns every intermediate stage of the lookup."""
    options = PipelineOptions.verifier_defaults(
        **_overrides(
            per_page=per_page,
            chunk_size=chunk_size,
            legal_terms=legal_terms,
            agencies=_csv(agencies),
            types=_csv(doc_type),
            facets=_csv(facets),
            fetch_cap=fetch_cap,
            per_entity_minimum=per_country_min,
            include_country=include_country,
            country_broadcast=country_broadcast,
            enable_scoring=enable_scoring,
            table_check_mode=table_check_mode if add_table_signals else "none",
            table_check_top_n=table_check_top_n,
            table_check_cap=table_check_cap,
            enrich_mode=enrich_mode,
            weights=parse_score_weights(score_weights),
            custom_terms=tuple(parse_custom_terms(custom_terms)),
        )
    )
    return await _respond(
        lambda: pipeline.run(hts_code, year or _current_year(), options),
        context="verifier",
        headers={"X-Adapter-Mode": VERIFIER_ADAPTER_MODE},
    )


@router.get("/company-rates")
async def company_rates(
    document_number: str = Query(""),
    service: CompanyRateService = Depends(get_company_rate_service),
):
    """Company-level rates parsed from one notice's HTML body."""
    return await _respond(lambda: service.lookup(document_number), context="company-rates")
