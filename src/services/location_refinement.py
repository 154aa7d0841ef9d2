"""Location refinement for itinerary activities."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from langchain_core.language_models.chat_models import BaseChatModel

from src.core.address_candidates import geocoding_queries
from src.core.config import ApiSettings
from src.core.llm import build_chat_model
from src.core.post_processing import ModelReplyError, create_reply_parser
from src.core.prompts import location_refinement_prompts
from src.core.schemas import (
    ItineraryActivity,
    ItineraryDay,
    LocationRefinementRequest,
    LocationRefinementResult,
    PreviousActivity,
    RefinedActivity,
)
from src.services.structured_call import ModelCallError, invoke_structured

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


class LocationRefinementService:
    """Ask the model for geocodable hints about itinerary activities.

    ``refine`` handles one activity. ``refine_itinerary`` walks an itinerary
    day by day, passing the activities resolved so far as context for the
    next one. ``refine_many`` runs independent requests concurrently.
    """

    def __init__(self, llm: BaseChatModel, *, max_attempts: int = 2) -> None:
        self.llm = llm
        self.max_attempts = max_attempts
        self.parser = create_reply_parser("location_refinement")

    @classmethod
    def from_settings(cls, settings: Optional[ApiSettings] = None) -> "LocationRefinementService":
        settings = settings or ApiSettings.from_env()
        return cls(build_chat_model(settings), max_attempts=settings.max_attempts)

    async def refine(
        self,
        request: Union[LocationRefinementRequest, Mapping[str, Any]],
    ) -> LocationRefinementResult:
        """Refine a single activity.

        Raises:
            ValueError: if the request lacks a destination or activity title.
            ModelReplyError: if no attempt produced a conformant reply.
            ModelCallError: if the model call failed.
        """
        if not isinstance(request, LocationRefinementRequest):
            request = LocationRefinementRequest.model_validate(request)

        prompts = location_refinement_prompts(request)
        result = await invoke_structured(
            self.llm, prompts, self.parser, max_attempts=self.max_attempts
        )
        logger.info(
            f"Refined '{request.activity_title}': {result.refined_name!r} "
            f"(confidence={result.confidence}, coordinates={result.has_coordinates})"
        )
        return result

    async def refine_many(
        self,
        requests: Sequence[LocationRefinementRequest],
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> List[Optional[LocationRefinementResult]]:
        """Refine independent requests concurrently; failed items become ``None``."""
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def run(request: LocationRefinementRequest) -> Optional[LocationRefinementResult]:
            async with semaphore:
                try:
                    return await self.refine(request)
                except (ModelReplyError, ModelCallError) as exc:
                    logger.warning(f"Could not refine '{request.activity_title}': {exc}")
                    return None

        return list(await asyncio.gather(*(run(request) for request in requests)))

    async def refine_itinerary(
        self,
        destination: str,
        days: Sequence[ItineraryDay],
    ) -> List[RefinedActivity]:
        """Refine every activity in chronological order with accumulating context.

        Each request receives a snapshot of the activities resolved before it.
        A failure affects only that activity: it is reported with ``error``
        set, left out of the context, and processing continues.
        """
        resolved: List[PreviousActivity] = []
        outcomes: List[RefinedActivity] = []

        for day in days:
            for activity in day.activities:
                request = _request_for(destination, day, activity, resolved)
                try:
                    result = await self.refine(request)
                except (ModelReplyError, ModelCallError) as exc:
                    logger.warning(f"Skipping '{activity.title}' ({day.label}): {exc}")
                    outcomes.append(
                        RefinedActivity(day_label=day.label, activity=activity, error=str(exc))
                    )
                    continue

                resolved.append(
                    PreviousActivity(
                        title=activity.title,
                        address=result.address_hint or activity.address,
                    )
                )
                outcomes.append(
                    RefinedActivity(
                        day_label=day.label,
                        activity=activity,
                        result=result,
                        queries=geocoding_queries(result, activity.address),
                    )
                )

        logger.info(
            f"Refined {sum(1 for item in outcomes if item.resolved)}/{len(outcomes)} activities"
        )
        return outcomes


def _request_for(
    destination: str,
    day: ItineraryDay,
    activity: ItineraryActivity,
    resolved: Sequence[PreviousActivity],
) -> LocationRefinementRequest:
    return LocationRefinementRequest(
        destination=destination,
        activity_title=activity.title,
        kind=activity.kind,
        time_slot=activity.time_slot,
        existing_address=activity.address,
        existing_note=activity.note,
        day_label=day.label,
        previous_activities=tuple(resolved),
    )
