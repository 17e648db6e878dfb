"""Risk tiers and corrective recommendations for a RULA result.

Recommendation rules are plain records evaluated in list order; every rule
whose joint score reaches `min_score` contributes its text. Rules can be given
as `RecommendationRule` objects, dicts, or loaded from a JSON file.

Rule shape (JSON / dict):
    {
      "rule_id": "steering_wheel_height",
      "joint": "upper_arm",
      "min_score": 3,
      "feedback_text": "Adjust steering wheel height - ..."
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence, Tuple

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"
RISK_VERY_HIGH = "very-high"
RISK_LEVELS: Tuple[str, ...] = (RISK_LOW, RISK_MEDIUM, RISK_HIGH, RISK_VERY_HIGH)

# Upper bound (inclusive) of the final score for each tier; anything above is very-high.
_RISK_STEPS: Tuple[Tuple[int, str], ...] = ((2, RISK_LOW), (4, RISK_MEDIUM), (6, RISK_HIGH))

DEFAULT_SEVERITY_THRESHOLD = 3

AFFIRMATIVE_TEXT = "Excellent driving posture! Stay safe on the road!"

_RULE_JOINTS = ("upper_arm", "lower_arm", "wrist", "neck", "trunk")


@dataclass(frozen=True)
class RecommendationRule:
    rule_id: str
    joint: str
    feedback_text: str
    min_score: int = DEFAULT_SEVERITY_THRESHOLD

    def matches(self, scores: Mapping[str, int]) -> bool:
        return int(scores.get(self.joint, 0) or 0) >= self.min_score


# Evaluation order: upper arm, lower arm, neck, trunk, wrist.
DEFAULT_RECOMMENDATION_RULES: Tuple[RecommendationRule, ...] = (
    RecommendationRule(
        "steering_wheel_height",
        "upper_arm",
        "Adjust steering wheel height - arms should be relaxed at 9 and 3 position",
    ),
    RecommendationRule(
        "seat_distance",
        "lower_arm",
        "Move seat closer/further - elbows should be slightly bent",
    ),
    RecommendationRule(
        "headrest_position",
        "neck",
        "Adjust headrest - keep head against it while looking at road",
    ),
    RecommendationRule(
        "seat_recline",
        "trunk",
        "Adjust seat recline - slight backward tilt reduces back strain",
    ),
    RecommendationRule(
        "wheel_grip",
        "wrist",
        "Relax grip on wheel - wrists should be straight, not bent",
    ),
)


def classify_risk(final_score: int) -> str:
    """Map a final RULA score to its risk tier (<=2 low, <=4 medium, <=6 high, else very-high)."""
    for upper, level in _RISK_STEPS:
        if final_score <= upper:
            return level
    return RISK_VERY_HIGH


def _coerce_rule(raw: Any) -> RecommendationRule:
    if isinstance(raw, RecommendationRule):
        return raw
    if not isinstance(raw, Mapping):
        raise ValueError("Recommendation rules must be mappings with joint/feedback_text.")
    joint = str(raw.get("joint") or "").strip().lower()
    if joint not in _RULE_JOINTS:
        raise ValueError(f"Unknown joint {joint!r} in recommendation rule; expected one of {_RULE_JOINTS}.")
    text = str(raw.get("feedback_text") or raw.get("text") or "").strip()
    if not text:
        raise ValueError(f"Recommendation rule for {joint!r} has no feedback_text.")
    try:
        min_score = int(raw.get("min_score", DEFAULT_SEVERITY_THRESHOLD))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Recommendation rule for {joint!r} has a non-integer min_score.") from exc
    rule_id = str(raw.get("rule_id") or joint).strip()
    return RecommendationRule(rule_id=rule_id, joint=joint, feedback_text=text, min_score=min_score)


def load_recommendation_rules(rules: Any | None = None) -> Tuple[RecommendationRule, ...]:
    """Load/normalize recommendation rules.

    Accepted inputs:
      - None: built-in driving rules.
      - Path/str: JSON file holding a list or `{"rules": [...]}`.
      - dict: `{"rules": [...]}` or a single rule object.
      - list/tuple: rule objects or dicts.
    """
    if rules is None:
        return DEFAULT_RECOMMENDATION_RULES
    if isinstance(rules, (str, Path)):
        rules = json.loads(Path(rules).read_text(encoding="utf-8"))
    if isinstance(rules, Mapping):
        if "rules" in rules:
            rules = rules["rules"]
        elif "joint" in rules:
            rules = [rules]
        else:
            raise ValueError("Unsupported rules mapping; expected {'rules': [...]} or a single rule object.")
    if not isinstance(rules, Sequence) or isinstance(rules, (str, bytes)):
        raise ValueError("Unsupported rules type; expected None, path, dict, or list.")
    return tuple(_coerce_rule(rule) for rule in rules)


def generate_recommendations(
    scores: Mapping[str, int],
    rules: Sequence[RecommendationRule] = DEFAULT_RECOMMENDATION_RULES,
    *,
    affirmative: str = AFFIRMATIVE_TEXT,
) -> list[str]:
    """Return the advisory strings for every matching rule, in rule order.

    Never empty: when nothing matches, the single affirmative message is returned.
    """
    out = [rule.feedback_text for rule in rules if rule.matches(scores)]
    if not out:
        out.append(affirmative)
    return out


__all__ = [
    "RISK_LOW",
    "RISK_MEDIUM",
    "RISK_HIGH",
    "RISK_VERY_HIGH",
    "RISK_LEVELS",
    "AFFIRMATIVE_TEXT",
    "DEFAULT_SEVERITY_THRESHOLD",
    "RecommendationRule",
    "DEFAULT_RECOMMENDATION_RULES",
    "classify_risk",
    "load_recommendation_rules",
    "generate_recommendations",
]
