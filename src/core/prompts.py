"""Prompt templates and builders for the two structured-output model calls.

The system prompts are static and carry the reply schema plus behavioural
rules. The user prompt builders are pure functions of their structured input:
identical arguments always render byte-identical strings.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from operator import attrgetter
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from src.core.schemas import (
    HeuristicParseResult,
    LocationRefinementRequest,
    PreviousActivity,
    PromptPair,
    TravelInputRequest,
)

travel_input_schema = """{
  "destination": string | null,
  "origin": string | null,
  "days": integer | null,
  "budget": integer | null,
  "party_size": integer | null,
  "preferences": string[],
  "notes": string[]
}"""

travel_input_system_prompt = f"""You are an attentive travel assistant who extracts structured trip requirements from free-form Chinese text.
Return data as a single JSON object with lowercase snake_case keys that matches the following schema:
{travel_input_schema}

Guidelines:
- destination and origin are place names kept as written in the text.
- days, budget (total in CNY yuan) and party_size are integers; days and party_size are positive, budget is never negative.
- preferences are short tag strings; notes are free-text remarks. Use empty arrays when there are none.
- When a value is not provided, set it to null instead of guessing wildly. Never use an empty string or 0 to mean unknown.
- heuristic_parse is a rule-based best-effort guess. Confirm, refine or override it, but keep values it got right.
- Do not include explanatory text, markdown fences or keys outside the schema."""

travel_input_user_prompt = """请阅读以下旅行意图描述，并根据 JSON 模板抽取字段。
字段说明：
- destination: 旅行目的地，保留原文中的中文或地名。
- origin: 出发城市或地点，没有则为 null。
- days: 行程天数（正整数），未知则为 null。
- budget: 总预算（人民币，单位元，整数），未知则为 null。
- party_size: 总人数，未知则为 null。
- preferences: 旅行偏好标签数组，元素为字符串，可结合 known_preferences 与原文语义。
- notes: 补充说明数组，可为空数组。
请严格输出一个 JSON 对象，避免额外文本。

{payload}"""

location_refinement_schema = """{
  "refined_name": string | null,
  "address_hint": string | null,
  "search_queries": string[],
  "nearby_landmarks": string[],
  "latitude": number | null,
  "longitude": number | null,
  "confidence": number | null,
  "reason": string
}"""

location_refinement_system_prompt = f"""You are an assistant that specializes in locating travel activities in Chinese cities.
Always respond with a strict JSON object that matches the following schema:
{location_refinement_schema}

Guidelines:
- Only provide latitude and longitude when you are confident they are correct. Otherwise set both to null.
- Never return one coordinate without the other.
- confidence is a number between 0 and 1, or null when you cannot judge it.
- Suggest up to three high-quality search queries that will help map APIs find the place.
- Include any nearby landmarks, transit stations, or mall names that uniquely identify the location.
- reason is always a short justification of the answer.
- Keep the response concise and purely informational. No extra text outside the JSON."""

location_refinement_instruction = "请根据以上信息补充该活动的最准确信息。"

PREVIOUS_ACTIVITY_SEPARATOR = "；"
_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


def build_travel_input_prompt(
    original_text: str,
    known_preferences: Sequence[str] = (),
    heuristic_result: Optional[Union[HeuristicParseResult, Mapping[str, Any]]] = None,
) -> str:
    """Render the trip-intent user prompt.

    The structured payload (input text, known preferences and the heuristic
    parse, or ``null``) is embedded as indented JSON after the field guide.

    Raises:
        ValueError: if ``original_text`` is empty or the heuristic result
            does not match the trip-intent field set.
    """
    request = TravelInputRequest(
        original_text=original_text,
        known_preferences=tuple(known_preferences),
        heuristic_result=heuristic_result,
    )
    details = {
        "input_text": request.original_text,
        "known_preferences": list(request.known_preferences),
        "heuristic_parse": (
            request.heuristic_result.model_dump(mode="json")
            if request.heuristic_result is not None
            else None
        ),
    }
    payload = json.dumps(details, ensure_ascii=False, indent=2)
    return travel_input_user_prompt.format(payload=payload)


def format_previous_activities(activities: Sequence[PreviousActivity]) -> str:
    """Join resolved activities as ``title（address）`` entries in the given order."""
    parts = [
        f"{item.title}（{item.address}）" if item.address else item.title
        for item in activities
    ]
    return PREVIOUS_ACTIVITY_SEPARATOR.join(parts)


def _single_line(value: str) -> str:
    return _LINE_BREAKS.sub(" ", value).strip()


@dataclass(frozen=True, slots=True)
class PromptLine:
    """One labelled line of the location prompt, rendered only when present."""

    label: str
    value: Callable[[LocationRefinementRequest], Optional[str]]

    def is_present(self, request: LocationRefinementRequest) -> bool:
        return bool(self.value(request))

    def render(self, request: LocationRefinementRequest) -> Optional[str]:
        if not self.is_present(request):
            return None
        return f"{self.label}: {_single_line(self.value(request))}"


def _previous_activities_line(request: LocationRefinementRequest) -> Optional[str]:
    if not request.previous_activities:
        return None
    return format_previous_activities(request.previous_activities)


LOCATION_PROMPT_LINES: Tuple[PromptLine, ...] = (
    PromptLine("目的地", attrgetter("destination")),
    PromptLine("活动", attrgetter("activity_title")),
    PromptLine("类型", attrgetter("kind")),
    PromptLine("行程日", attrgetter("day_label")),
    PromptLine("时间段", attrgetter("time_slot")),
    PromptLine("现有地址", attrgetter("existing_address")),
    PromptLine("备注", attrgetter("existing_note")),
    PromptLine("已确认地点", _previous_activities_line),
)


def build_location_refinement_prompt(
    request: Union[LocationRefinementRequest, Mapping[str, Any]],
) -> str:
    """Render the location refinement user prompt.

    Emits one labelled line per available field in a fixed order, then the
    closing instruction. Absent fields produce no line at all.
    """
    if not isinstance(request, LocationRefinementRequest):
        request = LocationRefinementRequest.model_validate(request)

    lines = [line.render(request) for line in LOCATION_PROMPT_LINES]
    rendered = [line for line in lines if line is not None]
    rendered.append(location_refinement_instruction)
    return "\n".join(rendered)


def travel_input_prompts(
    original_text: str,
    known_preferences: Sequence[str] = (),
    heuristic_result: Optional[Union[HeuristicParseResult, Mapping[str, Any]]] = None,
) -> PromptPair:
    """Return the (system, user) prompt pair for trip-intent extraction."""
    return PromptPair(
        system=travel_input_system_prompt,
        user=build_travel_input_prompt(original_text, known_preferences, heuristic_result),
    )


def location_refinement_prompts(
    request: Union[LocationRefinementRequest, Mapping[str, Any]],
) -> PromptPair:
    """Return the (system, user) prompt pair for location refinement."""
    return PromptPair(
        system=location_refinement_system_prompt,
        user=build_location_refinement_prompt(request),
    )
