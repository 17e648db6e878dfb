from __future__ import annotations

import itertools

import pytest

from driver_posture.rula.config import JOINT_SCORE_RANGES
from driver_posture.rula.tables import (
    FALLBACK_FINAL_SCORE,
    FALLBACK_SCORE_A,
    FALLBACK_SCORE_B,
    TABLE_A,
    TABLE_B,
    TABLE_C,
    combine_scores,
    lookup,
    table_a_score,
    table_b_score,
    table_c_score,
    table_values,
)


def test_table_shapes() -> None:
    assert len(TABLE_A) == 4
    assert all(len(rows) == 3 and all(len(row) == 5 for row in rows) for rows in TABLE_A)
    assert len(TABLE_B) == 6 and all(len(row) == 6 for row in TABLE_B)
    assert len(TABLE_C) == 8 and all(len(row) == 7 for row in TABLE_C)


def test_known_cells() -> None:
    assert table_a_score(wrist=1, lower_arm=1, upper_arm=1) == 1
    assert table_a_score(wrist=1, lower_arm=2, upper_arm=2) == 2
    assert table_a_score(wrist=4, lower_arm=3, upper_arm=5) == 5
    assert table_b_score(neck=4, trunk=1) == 5
    assert table_b_score(neck=6, trunk=6) == 8
    assert table_c_score(3, 5) == 4
    assert table_c_score(8, 7) == 7


@pytest.mark.parametrize(
    ("scores", "expected"),
    [
        ((0, 0, 0), 1),
        ((-3, 1, 1), 1),
        ((9, 9, 9), 5),
        ((1, 1, 99), 3),
    ],
)
def test_table_a_clamps_out_of_range_indices(scores: tuple[int, int, int], expected: int) -> None:
    assert table_a_score(*scores) == expected


def test_table_b_and_c_clamp() -> None:
    assert table_b_score(0, 0) == 1
    assert table_b_score(10, 10) == 8
    assert table_c_score(0, 0) == 1
    assert table_c_score(12, 12) == 7


def test_lookup_fallback_only_for_empty_dimensions() -> None:
    assert lookup((), (1,), FALLBACK_SCORE_A) == FALLBACK_SCORE_A
    assert lookup(((),), (1, 1), FALLBACK_SCORE_B) == FALLBACK_SCORE_B
    # Too few indices leaves a row, which is not a score.
    assert lookup(TABLE_B, (1,), FALLBACK_SCORE_B) == FALLBACK_SCORE_B
    assert lookup(TABLE_C, (1, 1), FALLBACK_FINAL_SCORE) == 1


def test_combine_scores_side_view_example() -> None:
    assert combine_scores(upper_arm=4, lower_arm=2, wrist=1, neck=2, trunk=1) == (2, 2, 2)
    assert combine_scores(upper_arm=3, lower_arm=3, wrist=1, neck=4, trunk=3) == (3, 5, 4)


def test_joint_boundaries_stay_within_table_value_sets() -> None:
    a_values, b_values, c_values = table_values(TABLE_A), table_values(TABLE_B), table_values(TABLE_C)
    ranges = [JOINT_SCORE_RANGES[joint] for joint in ("upper_arm", "lower_arm", "wrist", "neck", "trunk")]

    for upper, lower, wrist, neck, trunk in itertools.product(*ranges):
        score_a, score_b, final = combine_scores(upper, lower, wrist, neck, trunk)
        assert score_a in a_values
        assert score_b in b_values
        assert final in c_values
        assert 1 <= final <= 7
