"""Tests for the model-backed services using a stub chat model."""
from __future__ import annotations

import json
from typing import Any, List, Sequence

import pytest
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from src.core.post_processing import ModelReplyError, create_reply_parser
from src.core.prompts import location_refinement_system_prompt, travel_input_system_prompt
from src.core.schemas import (
    ItineraryActivity,
    ItineraryDay,
    LocationRefinementRequest,
    PromptPair,
)
from src.services import structured_call
from src.services.location_refinement import LocationRefinementService
from src.services.structured_call import ModelCallError, invoke_structured, message_text
from src.services.travel_input import TravelInputParserService


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class StubLLM:
    """Records every conversation and replies with canned text in order."""

    def __init__(self, replies: Sequence[Any]) -> None:
        self.replies = list(replies)
        self.calls: List[List[BaseMessage]] = []

    async def ainvoke(self, messages: List[BaseMessage]) -> AIMessage:
        self.calls.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return AIMessage(content=reply)


def _location_reply(name: str, address: str, **overrides: Any) -> str:
    payload = {
        "refined_name": name,
        "address_hint": address,
        "search_queries": [name],
        "nearby_landmarks": [],
        "latitude": None,
        "longitude": None,
        "confidence": 0.6,
        "reason": "根据活动名称推断",
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


def _user_prompt(call: List[BaseMessage]) -> str:
    return call[1].content  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# structured_call
# ---------------------------------------------------------------------------


def test_message_text_flattens_chunks():
    message = AIMessage(content=[{"type": "text", "text": "{\"a\""}, {"type": "text", "text": ": 1}"}])
    assert message_text(message) == '{"a": 1}'
    assert message_text("plain") == "plain"


@pytest.mark.asyncio
async def test_invoke_structured_sends_system_and_user_messages():
    llm = StubLLM([json.dumps({"destination": "杭州"})])
    prompts = PromptPair(system="system", user="user")

    result = await invoke_structured(llm, prompts, create_reply_parser("travel_input"))

    assert result.destination == "杭州"
    assert isinstance(llm.calls[0][0], SystemMessage)
    assert isinstance(llm.calls[0][1], HumanMessage)


@pytest.mark.asyncio
async def test_invoke_structured_retries_with_restatement():
    llm = StubLLM(["not json", json.dumps({"days": 3})])

    result = await invoke_structured(
        llm, PromptPair(system="s", user="u"), create_reply_parser("travel_input"), max_attempts=2
    )

    assert result.days == 3
    assert len(llm.calls) == 2
    retry = llm.calls[1]
    assert retry[2].content == "not json"
    assert "did not match the required JSON schema" in retry[3].content


@pytest.mark.asyncio
async def test_invoke_structured_raises_after_exhausting_attempts():
    llm = StubLLM([json.dumps({"days": 0}), json.dumps({"days": -1})])

    with pytest.raises(ModelReplyError):
        await invoke_structured(
            llm, PromptPair(system="s", user="u"), create_reply_parser("travel_input"), max_attempts=2
        )
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_invoke_structured_wraps_call_failures():
    llm = StubLLM([TimeoutError("upstream timeout")])

    with pytest.raises(ModelCallError):
        await invoke_structured(llm, PromptPair(system="s", user="u"), create_reply_parser("travel_input"))


# ---------------------------------------------------------------------------
# TravelInputParserService
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_travel_input_merges_heuristic_with_model_reply():
    reply = {"destination": "杭州", "origin": "上海", "days": None, "budget": None, "party_size": 2,
             "preferences": ["文化"], "notes": []}
    llm = StubLLM([json.dumps(reply, ensure_ascii=False)])
    service = TravelInputParserService(llm)

    intent = await service.parse("从上海出发，想去杭州玩3天，预算5000，喜欢美食", ["美食", "文化"])

    assert intent.destination == "杭州"
    assert intent.origin == "上海"
    assert intent.days == 3
    assert intent.budget == 5000
    assert intent.party_size == 2
    assert intent.preferences == ["美食", "文化"]

    system, user = llm.calls[0][0].content, _user_prompt(llm.calls[0])
    assert system == travel_input_system_prompt
    payload = json.loads(user.split("\n\n", 1)[1])
    assert payload["known_preferences"] == ["美食", "文化"]
    assert payload["heuristic_parse"]["days"] == 3


@pytest.mark.asyncio
async def test_travel_input_falls_back_to_heuristic_on_bad_replies():
    llm = StubLLM(["oops", "still not json"])
    service = TravelInputParserService(llm, max_attempts=2)

    intent = await service.parse("想去厦门玩两天")

    assert intent.days == 2
    assert intent.budget is None
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_travel_input_propagates_call_failure():
    service = TravelInputParserService(StubLLM([ConnectionError("down")]))
    with pytest.raises(ModelCallError):
        await service.parse("想去厦门玩两天")


@pytest.mark.asyncio
async def test_travel_input_rejects_empty_text():
    llm = StubLLM([])
    with pytest.raises(ValueError):
        await TravelInputParserService(llm).parse("   ")
    assert llm.calls == []


@pytest.mark.asyncio
async def test_travel_input_skips_model_when_heuristic_complete(monkeypatch):
    from src.core.schemas import HeuristicParseResult
    from src.services import travel_input

    complete = HeuristicParseResult(
        destination="厦门", origin="上海", days=3, budget=3000, party_size=2, preferences=["海边"]
    )
    monkeypatch.setattr(travel_input, "parse_travel_input", lambda text, known: complete)
    llm = StubLLM([])

    intent = await TravelInputParserService(llm).parse("随便")

    assert intent.destination == "厦门"
    assert llm.calls == []


@pytest.mark.asyncio
async def test_travel_input_returns_none_when_nothing_known():
    llm = StubLLM([json.dumps({"destination": None})])
    assert await TravelInputParserService(llm).parse("你好") is None


# ---------------------------------------------------------------------------
# LocationRefinementService
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_refine_single_activity():
    llm = StubLLM([_location_reply("外滩", "中山东一路", latitude=31.24, longitude=121.49, confidence=0.9)])
    service = LocationRefinementService(llm)

    result = await service.refine({"destination": "上海", "activityTitle": "外滩夜游"})

    assert result.refined_name == "外滩"
    assert result.has_coordinates
    assert llm.calls[0][0].content == location_refinement_system_prompt
    assert _user_prompt(llm.calls[0]).startswith("目的地: 上海\n活动: 外滩夜游")


@pytest.mark.asyncio
async def test_refine_retries_lone_coordinate():
    llm = StubLLM([
        _location_reply("外滩", "中山东一路", latitude=31.24),
        _location_reply("外滩", "中山东一路"),
    ])
    result = await LocationRefinementService(llm).refine(
        LocationRefinementRequest(destination="上海", activity_title="外滩夜游")
    )
    assert result.latitude is None and result.longitude is None
    assert "latitude and longitude" in llm.calls[1][3].content


@pytest.mark.asyncio
async def test_refine_itinerary_accumulates_context_in_order():
    llm = StubLLM([
        _location_reply("上海博物馆", ""),
        _location_reply("人民公园", "人民路1号"),
        _location_reply("外滩", "中山东一路"),
    ])
    days = [
        ItineraryDay(label="第1天", activities=[ItineraryActivity(title="博物馆"), ItineraryActivity(title="公园")]),
        ItineraryDay(label="第2天", activities=[ItineraryActivity(title="外滩夜游", time_slot="晚上")]),
    ]

    outcomes = await LocationRefinementService(llm).refine_itinerary("上海", days)

    assert [item.resolved for item in outcomes] == [True, True, True]
    first, second, third = (_user_prompt(call) for call in llm.calls)
    assert "已确认地点" not in first
    assert "已确认地点: 博物馆" in second.split("\n")
    assert "已确认地点: 博物馆；公园（人民路1号）" in third.split("\n")
    assert "行程日: 第2天" in third.split("\n")
    assert outcomes[2].queries[0] == "外滩"


@pytest.mark.asyncio
async def test_refine_itinerary_isolates_failures():
    llm = StubLLM([
        RuntimeError("rate limited"),
        _location_reply("人民公园", "人民路1号"),
    ])
    days = [ItineraryDay(label="第1天", activities=[ItineraryActivity(title="博物馆", address="人民大道201号"), ItineraryActivity(title="公园")])]

    outcomes = await LocationRefinementService(llm, max_attempts=1).refine_itinerary("上海", days)

    assert outcomes[0].resolved is False
    assert "rate limited" in outcomes[0].error
    assert outcomes[1].resolved is True
    assert "已确认地点" not in _user_prompt(llm.calls[1])


@pytest.mark.asyncio
async def test_refine_many_returns_none_for_failures():
    llm = StubLLM([_location_reply("外滩", "中山东一路"), "garbage"])
    requests = [
        LocationRefinementRequest(destination="上海", activity_title="外滩夜游"),
        LocationRefinementRequest(destination="上海", activity_title="城隍庙"),
    ]

    results = await LocationRefinementService(llm, max_attempts=1).refine_many(requests, concurrency=1)

    assert results[0].refined_name == "外滩"
    assert results[1] is None


def test_structured_call_module_exposes_restatement_template():
    assert "{violations}" in structured_call.RESTATEMENT_TEMPLATE


@pytest.mark.asyncio
async def test_invoke_structured_reraises_last_reply_error():
    llm = StubLLM([json.dumps({"days": 0}), json.dumps({"days": "3"})])

    with pytest.raises(ModelReplyError) as excinfo:
        await invoke_structured(
            llm, PromptPair(system="s", user="u"), create_reply_parser("travel_input"), max_attempts=0
        )

    assert len(llm.calls) == 1
    assert excinfo.value.raw_output == json.dumps({"days": 0})


@pytest.mark.asyncio
async def test_travel_input_prompt_embeds_caller_text_verbatim():
    llm = StubLLM([json.dumps({"destination": "成都"}, ensure_ascii=False)])
    text = "  想去成都玩两天\n"

    await TravelInputParserService(llm).parse(text)

    payload = json.loads(_user_prompt(llm.calls[0]).split("\n\n", 1)[1])
    assert payload["input_text"] == text
