from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from adcvd_tracker.services.logger import logger
from adcvd_tracker.services.query_builder import CustomTerm
from adcvd_tracker.services.scoring import DEFAULT_WEIGHTS, ScoreRule, ScoreWeights


# --- Tuning payloads (JSON in query strings) ---


class ScoreRuleModel(BaseModel):
    pattern: str
    score: float
    type: Literal["contains", "regex"] = "contains"
    and_: list[str] | None = Field(default=None, alias="and")


class ScoreBonusModel(BaseModel):
    has_body_html: float = 0.0
    has_rate_table: float = 0.0


class ScoreWeightsModel(BaseModel):
    terms: list[ScoreRuleModel]
    bonus: ScoreBonusModel | None = None


class CustomTermModel(BaseModel):
    phrase: str
    exact: bool = False
    andFinal: bool = False
    country: str | None = None


_custom_terms_adapter = TypeAdapter(list[CustomTermModel])


def parse_score_weights(raw: str | None) -> ScoreWeights:
    """Parse caller-supplied weights; malformed input falls back to the defaults."""
    if not raw:
        return DEFAULT_WEIGHTS
    try:
        model = ScoreWeightsModel.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning(f"Ignoring malformed scoreWeights: {exc.error_count()} error(s)")
        return DEFAULT_WEIGHTS
    bonus = model.bonus or ScoreBonusModel()
    return ScoreWeights(
        rules=tuple(
            ScoreRule(
                pattern=term.pattern,
                score=term.score,
                match_type=term.type,
                and_patterns=tuple(term.and_ or ()),
            )
            for term in model.terms
        ),
        has_body_html_bonus=bonus.has_body_html,
        has_rate_table_bonus=bonus.has_rate_table,
    )


def parse_custom_terms(raw: str | None) -> list[CustomTerm]:
    """Parse the custom term list; malformed input yields no custom terms."""
    if not raw:
        return []
    try:
        items = _custom_terms_adapter.validate_json(raw)
    except ValidationError as exc:
        logger.warning(f"Ignoring malformed customTerms: {exc.error_count()} error(s)")
        return []
    return [
        CustomTerm(
            phrase=item.phrase,
            exact=item.exact,
            and_final=item.andFinal,
            country=item.country,
        )
        for item in items
    ]


# --- Responses ---


class HealthResponse(BaseModel):
    status: str
    service: str
