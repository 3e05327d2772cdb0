from __future__ import annotations

from adcvd_tracker.normalize.investigations import (
    TokenKind,
    classify_types,
    dedupe_investigations,
    extract_case_numbers,
    extract_countries,
    extract_product_title,
    normalize_investigation,
    normalize_investigations,
    tokenize_case_block,
)


def test_case_numbers_carry_prefix_across_ranges_and_bare_numbers():
    title = "Steel Wire from China Inv. Nos. 731-TA-99 and 100-102 and 104 (Final)"
    assert extract_case_numbers(title, "731-TA-99") == (
        "731-TA-99",
        "731-TA-100",
        "731-TA-101",
        "731-TA-102",
        "731-TA-104",
    )


def test_case_numbers_switch_prefix_between_series():
    title = "Pipe from Korea Inv. Nos. 701-TA-500 and 731-TA-1200-1201 (Preliminary)"
    assert extract_case_numbers(title, "701-TA-500") == (
        "701-TA-500",
        "731-TA-1200",
        "731-TA-1201",
    )


def test_bare_numbers_without_prefix_are_ignored():
    title = "Widgets from Japan Inv. Nos. 100-102 and 104 (Final)"
    assert extract_case_numbers(title, "731-TA-1") == ("731-TA-1",)


def test_tokenizer_classifies_each_token():
    kinds = [t.kind for t in tokenize_case_block("731-TA-99, 731-TA-5-7, 100-102 and 104, (see note)")]
    assert kinds == [
        TokenKind.PREFIXED_FULL,
        TokenKind.PREFIXED_RANGE,
        TokenKind.BARE_RANGE,
        TokenKind.BARE_NUMBER,
        TokenKind.OTHER,
    ]


def test_countries_split_on_commas_and_and():
    title = "Certain Steel Nails from Korea, Malaysia, and Oman; Inv. Nos. 731-TA-1-3 (Final)"
    assert extract_countries(title) == ["Korea", "Malaysia", "Oman"]
    assert extract_countries("Steel from China and Vietnam") == ["China", "Vietnam"]
    assert extract_countries("No origin given") == []


def test_product_title_strips_trailing_comma():
    assert extract_product_title("Certain Steel Nails, from China") == "Certain Steel Nails"
    assert extract_product_title("Standalone Title") == "Standalone Title"


def test_types_from_title_then_number_then_other():
    assert classify_types("Pipe Inv. Nos. 701-TA-500 and 731-TA-1200", "x") == ("CVD", "AD")
    assert classify_types("Section 337 patent case", "") == ("337",)
    assert classify_types("Global safeguard on washers", "") == ("201",)
    assert classify_types("Some notice", "A-570-001") == ("AD",)
    assert classify_types("Some notice", "C-570-002") == ("CVD",)
    assert classify_types("Some notice", "999") == ("Other",)


def test_dash_variants_are_accepted():
    assert classify_types("Pipe Inv. No. 731–TA–10", "") == ("AD",)


def test_dedupe_keeps_first_occurrence_and_is_idempotent():
    records = [
        {"investigationId": 1, "investigationNumber": "731-TA-1", "phase": "Final", "investigationTitle": "a"},
        {"investigationId": 1, "investigationNumber": "731-TA-1", "phase": "Final", "investigationTitle": "b"},
        {"investigationId": 1, "investigationNumber": "731-TA-1", "phase": "Prelim", "investigationTitle": "c"},
    ]
    once = dedupe_investigations(records)
    assert [r["investigationTitle"] for r in once] == ["a", "c"]
    assert dedupe_investigations(once) == once
    assert normalize_investigations(once) == normalize_investigations(records)


def test_url_only_when_both_ids_present():
    with_ids = normalize_investigation(
        {"investigationNumber": "731-TA-1", "caseId": 7, "investigationId": 9, "investigationTitle": "x"}
    )
    without = normalize_investigation({"investigationNumber": "731-TA-1", "caseId": 7, "investigationTitle": "x"})
    assert with_ids.url == "https://ids.usitc.gov/case/7/investigation/9"
    assert without.url is None


def test_normalized_tag_shape():
    tag = normalize_investigation(
        {
            "investigationNumber": "731-TA-1000",
            "phase": "Final",
            "investigationTitle": "Steel Nails from China Inv. No. 731-TA-1000 (Final)",
        }
    )
    data = tag.to_dict()
    assert data["productTitle"] == "Steel Nails"
    assert data["countries"] == ["China"]
    assert data["caseNumbers"] == ["731-TA-1000"]
    assert data["types"] == ["AD"]
    assert data["type"] == "AD"


def test_empty_input_yields_no_tags():
    assert normalize_investigations(None) == []
    assert normalize_investigations([]) == []
