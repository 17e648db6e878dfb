"""RULA lookup tables (McAtamney & Corlett, 1993) and the score combiner.

Scores are 1-indexed; lookups subtract one and clamp every index to the
table's extent, so an out-of-range score reads the nearest edge cell.
"""

from __future__ import annotations

from typing import Any, Sequence

# TABLE_A[wrist][lower_arm][upper_arm] -> posture score A (wrist twist 1).
TABLE_A: tuple[tuple[tuple[int, ...], ...], ...] = (
    # Wrist 1
    ((1, 2, 2, 2, 3), (2, 2, 2, 2, 3), (2, 3, 3, 3, 4)),
    # Wrist 2
    ((2, 2, 2, 3, 3), (2, 2, 2, 3, 3), (2, 3, 3, 3, 4)),
    # Wrist 3
    ((2, 3, 3, 3, 4), (2, 3, 3, 3, 4), (2, 3, 4, 4, 5)),
    # Wrist 4
    ((3, 3, 3, 4, 4), (3, 3, 3, 4, 4), (3, 3, 4, 4, 5)),
)

# TABLE_B[neck][trunk] -> posture score B (legs supported).
TABLE_B: tuple[tuple[int, ...], ...] = (
    (1, 2, 3, 5, 7, 8),
    (2, 2, 3, 5, 7, 8),
    (3, 3, 3, 5, 7, 8),
    (5, 5, 5, 6, 7, 8),
    (7, 7, 7, 7, 7, 8),
    (8, 8, 8, 8, 8, 8),
)

# TABLE_C[score_a][score_b] -> final score.
TABLE_C: tuple[tuple[int, ...], ...] = (
    (1, 2, 3, 3, 4, 5, 5),
    (2, 2, 3, 4, 4, 5, 5),
    (3, 3, 3, 4, 4, 5, 6),
    (3, 3, 3, 4, 5, 6, 6),
    (4, 4, 4, 5, 6, 7, 7),
    (4, 4, 5, 6, 6, 7, 7),
    (5, 5, 6, 6, 7, 7, 7),
    (5, 5, 6, 7, 7, 7, 7),
)

# Returned only when a table dimension is empty.
FALLBACK_SCORE_A = 3
FALLBACK_SCORE_B = 4
FALLBACK_FINAL_SCORE = 5


def lookup(table: Sequence[Any], scores: Sequence[int], fallback: int) -> int:
    """Index `table` with 1-based `scores`, clamping each index to its dimension."""
    current: Any = table
    for score in scores:
        if not isinstance(current, Sequence) or len(current) == 0:
            return fallback
        index = min(max(int(score) - 1, 0), len(current) - 1)
        current = current[index]
    if isinstance(current, Sequence):
        return fallback
    return int(current)


def table_a_score(wrist: int, lower_arm: int, upper_arm: int) -> int:
    return lookup(TABLE_A, (wrist, lower_arm, upper_arm), FALLBACK_SCORE_A)


def table_b_score(neck: int, trunk: int) -> int:
    return lookup(TABLE_B, (neck, trunk), FALLBACK_SCORE_B)


def table_c_score(score_a: int, score_b: int) -> int:
    return lookup(TABLE_C, (score_a, score_b), FALLBACK_FINAL_SCORE)


def combine_scores(upper_arm: int, lower_arm: int, wrist: int, neck: int, trunk: int) -> tuple[int, int, int]:
    """Return (score A, score B, final score) for the five joint scores."""
    score_a = table_a_score(wrist, lower_arm, upper_arm)
    score_b = table_b_score(neck, trunk)
    return score_a, score_b, table_c_score(score_a, score_b)


def table_values(table: Sequence[Any]) -> set[int]:
    """Flatten a lookup table into the set of scores it can return."""
    out: set[int] = set()
    for item in table:
        if isinstance(item, Sequence):
            out |= table_values(item)
        else:
            out.add(int(item))
    return out


__all__ = [
    "TABLE_A",
    "TABLE_B",
    "TABLE_C",
    "FALLBACK_SCORE_A",
    "FALLBACK_SCORE_B",
    "FALLBACK_FINAL_SCORE",
    "lookup",
    "table_a_score",
    "table_b_score",
    "table_c_score",
    "combine_scores",
    "table_values",
]
