from __future__ import annotations

import json

import pytest

from driver_posture.rula.feedback import (
    AFFIRMATIVE_TEXT,
    DEFAULT_RECOMMENDATION_RULES,
    RecommendationRule,
    classify_risk,
    generate_recommendations,
    load_recommendation_rules,
)
from driver_posture.rula.tables import TABLE_C, table_values


@pytest.mark.parametrize(
    ("final_score", "risk"),
    [(1, "low"), (2, "low"), (3, "medium"), (4, "medium"), (5, "high"), (6, "high"), (7, "very-high"), (9, "very-high")],
)
def test_classify_risk(final_score: int, risk: str) -> None:
    assert classify_risk(final_score) == risk


def test_every_table_c_value_has_a_tier() -> None:
    assert {classify_risk(value) for value in table_values(TABLE_C)} == {"low", "medium", "high", "very-high"}


def test_recommendations_follow_rule_order() -> None:
    scores = {"upper_arm": 3, "lower_arm": 3, "wrist": 3, "neck": 3, "trunk": 3}

    texts = generate_recommendations(scores)

    assert texts == [rule.feedback_text for rule in DEFAULT_RECOMMENDATION_RULES]
    assert [rule.joint for rule in DEFAULT_RECOMMENDATION_RULES] == [
        "upper_arm",
        "lower_arm",
        "neck",
        "trunk",
        "wrist",
    ]


def test_recommendation_threshold_is_three() -> None:
    texts = generate_recommendations({"upper_arm": 2, "lower_arm": 1, "wrist": 1, "neck": 3, "trunk": 2})
    assert texts == ["Adjust headrest - keep head against it while looking at road"]


def test_affirmative_when_nothing_matches() -> None:
    scores = {"upper_arm": 2, "lower_arm": 2, "wrist": 2, "neck": 2, "trunk": 2}
    assert generate_recommendations(scores) == [AFFIRMATIVE_TEXT]
    assert generate_recommendations(scores, (), affirmative="ok") == ["ok"]


def test_load_rules_from_mapping_and_single_rule() -> None:
    rules = load_recommendation_rules(
        {"rules": [{"joint": "Neck", "feedback_text": "Chin back", "min_score": 2}]}
    )
    assert rules == (RecommendationRule("neck", "neck", "Chin back", 2),)

    single = load_recommendation_rules({"rule_id": "grip", "joint": "wrist", "text": "Loosen grip"})
    assert single[0].rule_id == "grip"
    assert single[0].min_score == 3


def test_load_rules_from_json_file(tmp_path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"joint": "trunk", "feedback_text": "Sit back"}]), encoding="utf-8")

    rules = load_recommendation_rules(path)

    assert [rule.feedback_text for rule in rules] == ["Sit back"]
    assert load_recommendation_rules(None) is DEFAULT_RECOMMENDATION_RULES


@pytest.mark.parametrize(
    "bad",
    [
        42,
        {"nothing": True},
        [{"joint": "knee", "feedback_text": "x"}],
        [{"joint": "neck"}],
        [{"joint": "neck", "feedback_text": "x", "min_score": "high"}],
        ["not a rule"],
    ],
)
def test_load_rules_rejects_bad_input(bad: object) -> None:
    with pytest.raises(ValueError):
        load_recommendation_rules(bad)
