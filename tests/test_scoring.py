from __future__ import annotations

from adcvd_tracker.models.documents import TableSignal
from adcvd_tracker.models.schemas import parse_custom_terms, parse_score_weights
from adcvd_tracker.services.scoring import (
    DEFAULT_RULES,
    DEFAULT_WEIGHTS,
    ScoreRule,
    score_candidate,
    score_title,
    select_best,
)
from conftest import make_doc


def test_base_score_is_max_not_sum():
    result = score_title("Amended Final Results of Administrative Review", DEFAULT_RULES)
    assert result.score == 7
    assert result.matched == ("amended final:7", "final results+administrative review:6")


def test_and_patterns_must_all_be_present():
    assert score_title("Final Results of Sunset Review", DEFAULT_RULES).score == 1
    assert score_title("Notice of Meeting", DEFAULT_RULES).score == 0


def test_regex_rules_and_invalid_regex():
    rules = (ScoreRule(r"final\s+results", 9, match_type="regex"), ScoreRule("([", 99, match_type="regex"))
    result = score_title("FINAL   RESULTS of review", rules)
    assert result.score == 9
    assert result.matched == (r"/final\s+results/i:9",)


def test_bonuses_are_added_from_table_signal():
    doc = make_doc("1", "Preliminary Results")
    scored = score_candidate("China", doc, DEFAULT_WEIGHTS, TableSignal(has_body_html=True, has_rate_table=True))
    assert scored.base_score == 4
    assert scored.score == 5.5
    assert scored.bonus == {"has_body_html_bonus": 0.5, "has_rate_table_bonus": 1.0}


def test_ties_go_to_later_publication_date():
    older = score_candidate("China", make_doc("1", "Final Determination", "2023-01-01"), DEFAULT_WEIGHTS)
    newer = score_candidate("China", make_doc("2", "Final Determination", "2024-06-01"), DEFAULT_WEIGHTS)
    assert select_best([older, newer], exclude_floor=True).document.document_number == "2"
    assert select_best([newer, older], exclude_floor=True).document.document_number == "2"


def test_higher_score_beats_later_date():
    strong = score_candidate("China", make_doc("1", "Amended Final Results", "2020-01-01"), DEFAULT_WEIGHTS)
    weak = score_candidate("China", make_doc("2", "Initiation", "2024-01-01"), DEFAULT_WEIGHTS)
    assert select_best([weak, strong], exclude_floor=True).document.document_number == "1"


def test_zero_score_policy():
    zero = score_candidate("China", make_doc("1", "Notice of Meeting"), DEFAULT_WEIGHTS)
    assert select_best([zero], exclude_floor=True) is None
    assert select_best([zero], exclude_floor=False).document.document_number == "1"

    ranked = score_candidate("China", make_doc("2", "Sunset Review"), DEFAULT_WEIGHTS)
    assert select_best([zero, ranked], exclude_floor=False).document.document_number == "2"


def test_parse_score_weights_accepts_custom_rules():
    weights = parse_score_weights(
        '{"terms": [{"pattern": "final", "score": 3, "and": ["review"]}], "bonus": {"has_rate_table": 2}}'
    )
    assert weights.rules == (ScoreRule("final", 3, and_patterns=("review",)),)
    assert weights.has_rate_table_bonus == 2
    assert weights.has_body_html_bonus == 0


def test_malformed_json_falls_back_to_defaults():
    assert parse_score_weights("{not json") is DEFAULT_WEIGHTS
    assert parse_score_weights(None) is DEFAULT_WEIGHTS
    assert parse_custom_terms("[{]") == []


def test_parse_custom_terms():
    terms = parse_custom_terms('[{"phrase": "nails", "exact": true, "andFinal": true, "country": "all"}]')
    assert len(terms) == 1
    assert terms[0].exact and terms[0].and_final
    assert terms[0].country == "all"
