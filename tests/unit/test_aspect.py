# tests/unit/test_aspect.py
"""Tests for aspect-ratio bucket selection."""

import math

import pytest

from linework.llm.aspect import SUPPORTED_ASPECT_RATIOS, closest_aspect_ratio


@pytest.mark.parametrize(
    "width,height,expected",
    [
        (8.5, 11, "3:4"),
        (1, 1, "1:1"),
        (1024, 1024, "1:1"),
        (1024, 768, "4:3"),
        (1920, 1080, "16:9"),
        (1080, 1920, "9:16"),
        (6, 9, "3:4"),
        (100, 10, "16:9"),
        (10, 100, "9:16"),
    ],
)
def test_closest_bucket(width, height, expected):
    assert closest_aspect_ratio(width, height) == expected


def test_trade_paperback_is_deterministic():
    results = {closest_aspect_ratio(8.5, 11) for _ in range(10)}
    assert results == {"3:4"}


def test_exact_tie_picks_first_listed_bucket():
    # 7/8 = 0.875 sits exactly between 1:1 (1.0) and 3:4 (0.75)
    assert closest_aspect_ratio(7, 8) == "1:1"


def test_scale_invariant():
    assert closest_aspect_ratio(8.5, 11) == closest_aspect_ratio(816, 1056)


def test_bucket_order():
    assert [ratio_id for ratio_id, _ in SUPPORTED_ASPECT_RATIOS] == [
        "1:1",
        "3:4",
        "4:3",
        "9:16",
        "16:9",
    ]


@pytest.mark.parametrize(
    "width,height",
    [(0, 11), (8.5, 0), (-1, 5), (5, -1), (math.inf, 5), (5, math.nan)],
)
def test_invalid_dimensions_raise(width, height):
    with pytest.raises(ValueError):
        closest_aspect_ratio(width, height)
