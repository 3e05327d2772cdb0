"""Declarative title scoring and per-entity winner selection.

Rules are plain data; :func:`score_title` is a pure function over an
immutable rule tuple. A document's base score is the maximum over matching
rules, never the sum.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from typing import Iterable, Literal

from adcvd_tracker.models.documents import CandidateDocument, ScoredCandidate, TableSignal

MatchType = Literal["contains", "regex"]


@dataclass(frozen=True, slots=True)
class ScoreRule:
    pattern: str
    score: float
    match_type: MatchType = "contains"
    and_patterns: tuple[str, ...] = ()

    @property
    def descriptor(self) -> str:
        if self.match_type == "regex":
            return f"/{self.pattern}/i:{self.score:g}"
        extra = "+" + "+".join(self.and_patterns) if self.and_patterns else ""
        return f"{self.pattern}{extra}:{self.score:g}"

    def to_dict(self) -> dict:
        data: dict = {"pattern": self.pattern, "score": self.score, "type": self.match_type}
        if self.and_patterns:
            data["and"] = list(self.and_patterns)
        return data


@dataclass(frozen=True, slots=True)
class ScoreWeights:
    rules: tuple[ScoreRule, ...]
    has_body_html_bonus: float = 0.5
    has_rate_table_bonus: float = 1.0
    floor: float = 0.0

    def to_dict(self) -> dict:
        return {
            "terms": [r.to_dict() for r in self.rules],
            "bonus": {
                "has_body_html": self.has_body_html_bonus,
                "has_rate_table": self.has_rate_table_bonus,
            },
        }


@dataclass(frozen=True, slots=True)
class TitleScore:
    score: float
    matched: tuple[str, ...] = field(default_factory=tuple)


DEFAULT_RULES: tuple[ScoreRule, ...] = (
    ScoreRule("amended final", 7),
    ScoreRule("final results", 6, and_patterns=("administrative review",)),
    ScoreRule("final determination", 5),
    ScoreRule("preliminary", 4),
    ScoreRule("initiation", 3),
    ScoreRule("changed circumstances", 2),
    ScoreRule("sunset review", 1),
)

DEFAULT_WEIGHTS = ScoreWeights(rules=DEFAULT_RULES)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def _rule_matches(rule: ScoreRule, title: str, lowered: str) -> bool:
    if rule.match_type == "regex":
        compiled = _compile(rule.pattern)
        return bool(compiled and compiled.search(title))
    if rule.pattern.lower() not in lowered:
        return False
    return all(extra.lower() in lowered for extra in rule.and_patterns)


def score_title(title: str, rules: Iterable[ScoreRule], floor: float = 0.0) -> TitleScore:
    lowered = (title or "").lower()
    best = floor
    matched: list[str] = []
    for rule in rules:
        if _rule_matches(rule, title or "", lowered):
            best = max(best, rule.score)
            matched.append(rule.descriptor)
    return TitleScore(score=best, matched=tuple(matched))


def score_candidate(
    entity: str,
    document: CandidateDocument,
    weights: ScoreWeights,
    signal: TableSignal | None = None,
) -> ScoredCandidate:
    base = score_title(document.title, weights.rules, weights.floor)
    body_bonus = weights.has_body_html_bonus if signal and signal.has_body_html else 0.0
    table_bonus = weights.has_rate_table_bonus if signal and signal.has_rate_table else 0.0
    return ScoredCandidate(
        entity=entity,
        document=document,
        score=base.score + body_bonus + table_bonus,
        base_score=base.score,
        matched_rules=list(base.matched),
        bonus={
            "has_body_html_bonus": body_bonus,
            "has_rate_table_bonus": table_bonus,
        },
    )


def _publication_day(value: str | None) -> date:
    if not value:
        return date.min
    try:
        return datetime.fromisoformat(value[:10]).date()
    except ValueError:
        return date.min


def select_best(
    candidates: Iterable[ScoredCandidate],
    *,
    exclude_floor: bool,
    floor: float = 0.0,
) -> ScoredCandidate | None:
    """Highest total score wins; ties go to the later publication date.

    With ``exclude_floor`` a document whose base score sits at the floor is
    never eligible; otherwise it stays in the running and simply ranks last.
    """
    best: ScoredCandidate | None = None
    for candidate in candidates:
        if exclude_floor and candidate.base_score <= floor:
            continue
        if best is None or candidate.score > best.score:
            best = candidate
        elif candidate.score == best.score and _publication_day(
            candidate.document.publication_date
        ) > _publication_day(best.document.publication_date):
            best = candidate
    return best
