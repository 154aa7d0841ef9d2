"""Model invocation with retry on non-conformant replies."""
from __future__ import annotations

import json
import logging
from typing import Any, List

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from src.core.post_processing import ModelReplyError, ReplyParser
from src.core.schemas import PromptPair

logger = logging.getLogger(__name__)

RESTATEMENT_TEMPLATE = """The previous reply did not match the required JSON schema:
{violations}
Reply again with exactly one JSON object that follows the schema and rules from the system message. No other text."""


class ModelCallError(RuntimeError):
    """Raised when the chat model produced no reply at all."""


def message_text(response: Any) -> str:
    """Flatten a chat model response into plain text."""
    if isinstance(response, str):
        return response

    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        return json.dumps(content, ensure_ascii=False)
    if isinstance(content, list):
        text_chunks: List[str] = []
        for chunk in content:
            if isinstance(chunk, dict) and chunk.get("type") == "text":
                text_chunks.append(chunk.get("text", ""))
            elif isinstance(chunk, str):
                text_chunks.append(chunk)
        return "".join(text_chunks)
    return "" if content is None else str(content)


def build_messages(prompts: PromptPair) -> List[BaseMessage]:
    return [SystemMessage(content=prompts.system), HumanMessage(content=prompts.user)]


async def invoke_structured(
    llm: BaseChatModel,
    prompts: PromptPair,
    parser: ReplyParser,
    *,
    max_attempts: int = 2,
) -> Any:
    """Call the model and validate its reply, re-asking on schema violations.

    Each retry appends the rejected reply and a restatement of the violated
    rules to the conversation.

    Raises:
        ModelCallError: if the model call itself fails.
        ModelReplyError: if every attempt produced a non-conformant reply.
    """
    messages = build_messages(prompts)
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        logger.debug(f"{parser.output_type} attempt {attempt} prompt: {messages[-1].content}")
        try:
            response = await llm.ainvoke(messages)
        except Exception as exc:
            logger.error(f"Error invoking {parser.output_type} model: {exc}")
            raise ModelCallError(f"{parser.output_type} model call failed: {exc}") from exc

        raw_output = message_text(response)
        try:
            return parser.parse(raw_output)
        except ModelReplyError as exc:
            logger.warning(
                f"{parser.output_type} reply rejected on attempt {attempt}/{attempts}: {exc}"
            )
            if attempt == attempts:
                raise
            messages = [
                *messages,
                AIMessage(content=raw_output),
                HumanMessage(content=RESTATEMENT_TEMPLATE.format(violations=exc.restate())),
            ]
