from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from adcvd_tracker.config import settings
from adcvd_tracker.models.interfaces import DocumentSource, InvestigationFeed
from adcvd_tracker.services.company_rates import CompanyRateService
from adcvd_tracker.services.pipeline import NoticePipeline
from adcvd_tracker.services.result_cache import InMemoryTTLCache, ResultCache
from adcvd_tracker.tools.dataweb import DatawebClient
from adcvd_tracker.tools.federal_register import FederalRegisterClient


@lru_cache(maxsize=1)
def get_result_cache() -> ResultCache:
    """Process-wide result cache shared by every request."""
    return InMemoryTTLCache(settings.result_cache_ttl_seconds)


def get_document_source() -> DocumentSource:
    return FederalRegisterClient()


def get_investigation_feed() -> InvestigationFeed:
    return DatawebClient()


def get_pipeline(
    source: DocumentSource = Depends(get_document_source),
    feed: InvestigationFeed = Depends(get_investigation_feed),
    cache: ResultCache = Depends(get_result_cache),
) -> NoticePipeline:
    return NoticePipeline(source, feed, cache)


def get_company_rate_service(
    source: DocumentSource = Depends(get_document_source),
    cache: ResultCache = Depends(get_result_cache),
) -> CompanyRateService:
    return CompanyRateService(source, cache)
