"""Model-backed services built on the prompt and schema layer.

This package wires the pure prompt builders and reply contracts from
``src.core`` to a LangChain chat model:

- TravelInputParserService: heuristic pre-parse, model refinement, merge
- LocationRefinementService: per-activity and day-by-day location refinement
- invoke_structured: model call with retry on non-conformant replies

Example Usage:
    >>> from src.core.config import ApiSettings
    >>> from src.services import TravelInputParserService
    >>>
    >>> service = TravelInputParserService.from_settings(ApiSettings.from_env())
    >>> intent = await service.parse("五一想去杭州玩三天，预算5000，两个人")
"""

from src.services.location_refinement import LocationRefinementService
from src.services.structured_call import ModelCallError, invoke_structured
from src.services.travel_input import TravelInputParserService

__all__ = [
    "LocationRefinementService",
    "ModelCallError",
    "TravelInputParserService",
    "invoke_structured",
]
