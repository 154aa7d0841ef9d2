"""Tests for the rule-based travel input parser."""
from __future__ import annotations

import pytest

from src.core.heuristics import (
    chinese_to_number,
    extract_budget,
    extract_days,
    extract_destination,
    extract_party_size,
    extract_preferences,
    parse_travel_input,
)
from src.core.schemas import HeuristicParseResult


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3", 3),
        ("2.5", 2.5),
        ("三", 3),
        ("十", 10),
        ("十二", 12),
        ("二十", 20),
        ("两千", 2000),
        ("一千五百", 1500),
        ("一万", 10000),
        ("1万", 10000),
        ("三点五", 3.5),
    ],
)
def test_chinese_to_number(text, expected):
    assert chinese_to_number(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["", "abc", "三个"])
def test_chinese_to_number_rejects_non_numerals(text):
    assert chinese_to_number(text) is None


def test_extract_destination():
    assert extract_destination("我想去成都") == "成都"
    assert extract_destination("目的地是 厦门") == "厦门"
    assert extract_destination("随便走走") is None


@pytest.mark.parametrize(
    "text, expected",
    [("玩3天", 3), ("玩五日", 5), ("待十天", 10), ("没说天数", None)],
)
def test_extract_days(text, expected):
    assert extract_days(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("预算5000元", 5000),
        ("预算大概1.5万", 15000),
        ("预算两千", 2000),
        ("预算3千", 3000),
        ("预算1万", 10000),
        ("没有预算限制", None),
    ],
)
def test_extract_budget(text, expected):
    assert extract_budget(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("我们4个人", None), ("两人出行", 2), ("3位成人", 3), ("一家三口", 3), ("独自旅行", None)],
)
def test_extract_party_size(text, expected):
    assert extract_party_size(text) == expected


def test_extract_preferences_maps_synonyms_and_keeps_order():
    assert extract_preferences("带娃去看博物馆") == ["亲子", "文化"]


def test_extract_preferences_uses_known_spelling():
    prefs = extract_preferences("喜欢Hiking、拍照", known_preferences=["hiking"])
    assert prefs == ["hiking", "拍照"]


def test_parse_travel_input_full_sentence():
    result = parse_travel_input("我们一家三口想去杭州玩3天，预算5000，喜欢美食")

    assert isinstance(result, HeuristicParseResult)
    assert result.days == 3
    assert result.budget == 5000
    assert result.party_size == 3
    assert result.origin is None
    assert "美食" in result.preferences
    assert result.destination.startswith("杭州")


@pytest.mark.parametrize("text", ["", "   ", "你好"])
def test_parse_travel_input_returns_none_when_nothing_found(text):
    assert parse_travel_input(text) is None


@pytest.mark.parametrize("text", ["预算" + "9" * 400, "想去成都玩" + "9" * 400 + "天", "9" * 400 + "人出行"])
def test_overflowing_numbers_are_ignored(text):
    result = parse_travel_input(text)
    assert result is None or (result.days is None and result.budget is None and result.party_size is None)


def test_extract_budget_ignores_overflowing_number():
    assert extract_budget("预算" + "9" * 400) is None
    assert extract_days("9" * 400 + "天") is None
