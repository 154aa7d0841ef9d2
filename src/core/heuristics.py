"""Rule-based pre-parse of Chinese free-form travel requests.

The heuristic is fast and deterministic but crude: it only recognises a few
phrasings and never extracts the origin. Its output is sent to the model as
advisory context and merged with the model reply afterwards.
"""
from __future__ import annotations

import logging
import math
import re
from typing import Dict, List, Optional, Sequence

from src.core.schemas import HeuristicParseResult

logger = logging.getLogger(__name__)

DIGITS: Dict[str, int] = {
    "零": 0,
    "〇": 0,
    "一": 1,
    "二": 2,
    "两": 2,
    "三": 3,
    "四": 4,
    "五": 5,
    "六": 6,
    "七": 7,
    "八": 8,
    "九": 9,
}

UNITS: Dict[str, int] = {
    "十": 10,
    "百": 100,
    "千": 1000,
    "万": 10000,
}

PREFERENCE_SYNONYMS: Dict[str, str] = {
    "亲子": "亲子",
    "带孩子": "亲子",
    "带小孩": "亲子",
    "带娃": "亲子",
    "儿童": "亲子",
    "小朋友": "亲子",
    "美食": "美食",
    "吃": "美食",
    "美味": "美食",
    "餐厅": "美食",
    "文化": "文化",
    "历史": "文化",
    "博物馆": "文化",
    "艺术": "艺术",
    "展览": "艺术",
    "动漫": "艺术",
    "户外": "户外",
    "自然": "户外",
    "徒步": "户外",
    "夜生活": "夜生活",
    "酒吧": "夜生活",
    "音乐": "夜生活",
    "亲朋": "亲子",
}

_NUMBER_CHARS = r"\d一二三四五六七八九十两百千万"
_ARABIC_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")
_TOKEN_PATTERN = re.compile(r"\d+(?:\.\d+)?|.", re.DOTALL)
_DESTINATION_PATTERNS = (
    re.compile(r"(?:去|到|想去|想到|计划去)([\u4e00-\u9fa5A-Za-z]{2,20})"),
    re.compile(r"目的地(?:是|为)?([\u4e00-\u9fa5A-Za-z]{2,20})"),
)
_DAYS_PATTERN = re.compile(rf"([{_NUMBER_CHARS}]+)\s*(?:天|日)")
_BUDGET_PATTERN = re.compile(
    rf"预算[^{_NUMBER_CHARS}]*([{_NUMBER_CHARS}]+(?:\.\d+)?)\s*(万|千|百)?"
)
_PARTY_PATTERN = re.compile(rf"([{_NUMBER_CHARS}]+)\s*(?:人|位|口)")
_LIKE_PATTERN = re.compile(r"(?:喜欢|偏好|喜好|想体验)([^。！？\n]+)")
_SEGMENT_SPLIT = re.compile(r"[、，,/\s和及]")
_SEGMENT_SUFFIX = re.compile(r"(喜欢|想去|体验|等)$")
_BUDGET_UNITS = {"万": 10000, "千": 1000, "百": 100}
_FAMILY_SIZES = {"一家三口": 3, "一家四口": 4}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def chinese_to_number(text: str) -> Optional[float]:
    """Convert Arabic or Chinese numerals (``三千``, ``1.5万``, ``十二``) to a number.

    Returns ``None`` when the text contains anything that is not a numeral.
    """
    if not text:
        return None

    if _ARABIC_PATTERN.match(text):
        return float(text)

    total = 0.0
    current = 0.0
    last_unit = 1

    for token in _TOKEN_PATTERN.findall(text):
        if token in DIGITS:
            current = DIGITS[token]
        elif _ARABIC_PATTERN.match(token):
            current = float(token)
        elif token in UNITS:
            unit = UNITS[token]
            if unit == 10000:
                total = (total + current) * unit
                current = 0
            else:
                current = (current or 1) * unit
                total += current
                current = 0
            last_unit = unit
        elif token == "点":
            integer_part = total + current
            decimal_text = text.split("点", 1)[1]
            decimals = 0.0
            multiplier = 0.1
            for char in decimal_text:
                if char not in DIGITS:
                    break
                decimals += DIGITS[char] * multiplier
                multiplier /= 10
            return integer_part + decimals
        else:
            return None

    total += current
    if total:
        return total
    return 10 if last_unit == 10 else None


def normalize_number(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    cleaned = re.sub(r"[\s,，]", "", raw)
    value = chinese_to_number(cleaned)
    if value is None or not math.isfinite(value):
        return None
    return value


def extract_destination(text: str) -> Optional[str]:
    cleaned = re.sub(r"\s+", "", text)
    for pattern in _DESTINATION_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            return match.group(1)
    return None


def extract_days(text: str) -> Optional[int]:
    match = _DAYS_PATTERN.search(text)
    value = normalize_number(match.group(1) if match else None)
    return max(1, _round_half_up(value)) if value else None


def extract_budget(text: str) -> Optional[int]:
    match = _BUDGET_PATTERN.search(text)
    if not match:
        return None

    base = normalize_number(match.group(1))
    if base is None:
        return None

    multiplier = _BUDGET_UNITS.get(match.group(2) or "", 1)
    return _round_half_up(base * multiplier)


def extract_party_size(text: str) -> Optional[int]:
    match = _PARTY_PATTERN.search(text)
    value = normalize_number(match.group(1) if match else None)
    if not value:
        for phrase, size in _FAMILY_SIZES.items():
            if phrase in text:
                return size
        return None
    return max(1, _round_half_up(value))


def extract_preferences(text: str, known_preferences: Sequence[str] = ()) -> List[str]:
    """Collect preference tags from synonym hits and "喜欢…" style segments.

    Custom segments are matched case-insensitively against the caller's known
    tags and returned in the caller's spelling; unmatched segments are kept
    verbatim. First-discovery order is preserved.
    """
    results: Dict[str, None] = {}
    lower_known = [preference.lower() for preference in known_preferences]

    for keyword, tag in PREFERENCE_SYNONYMS.items():
        if keyword in text:
            results.setdefault(tag, None)

    like_match = _LIKE_PATTERN.search(text)
    segments: List[str] = []
    if like_match:
        segments = [item.strip() for item in _SEGMENT_SPLIT.split(like_match.group(1)) if item.strip()]

    for segment in segments:
        normalized = _SEGMENT_SUFFIX.sub("", segment).strip()
        if not normalized:
            continue
        if normalized in PREFERENCE_SYNONYMS:
            results.setdefault(PREFERENCE_SYNONYMS[normalized], None)
        elif normalized.lower() in lower_known:
            results.setdefault(known_preferences[lower_known.index(normalized.lower())], None)
        else:
            results.setdefault(normalized, None)

    return list(results)


def parse_travel_input(
    text: str,
    known_preferences: Sequence[str] = (),
) -> Optional[HeuristicParseResult]:
    """Best-effort structured guess at the trip intent described by ``text``.

    Returns ``None`` for blank text or when nothing could be extracted.
    """
    cleaned = text.strip() if text else ""
    if not cleaned:
        return None

    destination = extract_destination(cleaned)
    days = extract_days(cleaned)
    budget = extract_budget(cleaned)
    party_size = extract_party_size(cleaned)
    preferences = extract_preferences(cleaned, known_preferences)

    if not any((destination, days, budget, party_size, preferences)):
        logger.debug(f"Heuristic parse found nothing in {cleaned!r}")
        return None

    return HeuristicParseResult(
        destination=destination,
        days=days,
        budget=budget,
        party_size=party_size,
        preferences=preferences,
    )
