"""Trip-intent extraction: heuristic pre-parse, model refinement and merge."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from langchain_core.language_models.chat_models import BaseChatModel

from src.core.config import ApiSettings
from src.core.heuristics import parse_travel_input
from src.core.llm import build_chat_model
from src.core.post_processing import ModelReplyError, create_reply_parser
from src.core.prompts import travel_input_prompts
from src.core.reducer import merge_trip_intent, missing_fields, needs_model_refinement
from src.core.schemas import TripIntent
from src.services.structured_call import invoke_structured

logger = logging.getLogger(__name__)


class TravelInputParserService:
    """Turn free-form travel requests into a :class:`TripIntent`.

    The heuristic parse runs first. When it already determines every field
    the model is skipped; otherwise the model is asked to confirm, refine or
    override it and the two results are merged (model non-null values win).
    A reply that stays non-conformant after all attempts is discarded and the
    heuristic result is returned alone. A failed model call propagates as
    :class:`~src.services.structured_call.ModelCallError`.
    """

    def __init__(self, llm: BaseChatModel, *, max_attempts: int = 2) -> None:
        self.llm = llm
        self.max_attempts = max_attempts
        self.parser = create_reply_parser("travel_input")

    @classmethod
    def from_settings(cls, settings: Optional[ApiSettings] = None) -> "TravelInputParserService":
        settings = settings or ApiSettings.from_env()
        return cls(build_chat_model(settings), max_attempts=settings.max_attempts)

    async def parse(
        self,
        text: str,
        known_preferences: Sequence[str] = (),
    ) -> Optional[TripIntent]:
        cleaned = text.strip() if isinstance(text, str) else ""
        if not cleaned:
            raise ValueError("text is required")

        known = [preference for preference in known_preferences if isinstance(preference, str)]
        heuristic = parse_travel_input(cleaned, known)

        if not needs_model_refinement(heuristic):
            logger.info("Heuristic parse is complete; skipping model call")
            return merge_trip_intent(heuristic, None)

        logger.info(f"Heuristic parse missing {missing_fields(heuristic)}; asking the model")
        prompts = travel_input_prompts(text, known, heuristic)

        reply: Optional[TripIntent]
        try:
            reply = await invoke_structured(
                self.llm, prompts, self.parser, max_attempts=self.max_attempts
            )
        except ModelReplyError as exc:
            logger.warning(f"Discarding non-conformant model reply, using heuristic only: {exc}")
            reply = None

        return merge_trip_intent(heuristic, reply)
