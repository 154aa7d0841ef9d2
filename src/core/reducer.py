from typing import Dict, Iterable, List, Optional
import logging

from src.core.schemas import HeuristicParseResult, TripIntent

logger = logging.getLogger(__name__)

SCALAR_FIELDS = ("destination", "origin", "days", "budget", "party_size")
LIST_FIELDS = ("preferences", "notes")
UNKNOWN_LABEL = "unknown"


def _ordered_union(*groups: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for group in groups:
        for item in group:
            value = item.strip() if isinstance(item, str) else item
            if value:
                seen.setdefault(value, None)
    return list(seen)


def merge_trip_intent(
    heuristic: Optional[HeuristicParseResult],
    model_reply: Optional[TripIntent],
) -> Optional[TripIntent]:
    """Merge the heuristic pre-parse with the model reply.

    A model field overrides the heuristic field only when it is non-null;
    otherwise the heuristic value is kept, and when both are null the field
    stays null. Preferences and notes are the ordered union of both sides,
    heuristic items first.
    """

    # Handle None cases
    if heuristic is None and model_reply is None:
        return None

    merged: Dict[str, object] = {}
    for field in SCALAR_FIELDS:
        model_value = getattr(model_reply, field, None)
        heuristic_value = getattr(heuristic, field, None)
        if model_value is not None:
            if heuristic_value is not None and heuristic_value != model_value:
                logger.info(f"Merge: model overrides {field}: {heuristic_value!r} -> {model_value!r}")
            merged[field] = model_value
        else:
            merged[field] = heuristic_value

    for field in LIST_FIELDS:
        merged[field] = _ordered_union(
            getattr(heuristic, field, None) or [],
            getattr(model_reply, field, None) or [],
        )

    result = TripIntent(**merged)
    if is_empty(result):
        logger.info("Merge: neither heuristic nor model produced any field")
        return None

    logger.info(f"Merge: missing fields after merge: {missing_fields(result)}")
    return result


def is_empty(intent: TripIntent) -> bool:
    return all(getattr(intent, field) is None for field in SCALAR_FIELDS) and not (
        intent.preferences or intent.notes
    )


def missing_fields(intent: Optional[TripIntent]) -> List[str]:
    """Return the names of fields the intent leaves undetermined."""
    if intent is None:
        return [*SCALAR_FIELDS, "preferences"]
    missing = [field for field in SCALAR_FIELDS if getattr(intent, field) is None]
    if not intent.preferences:
        missing.append("preferences")
    return missing


def needs_model_refinement(heuristic: Optional[HeuristicParseResult]) -> bool:
    """Return whether the heuristic leaves anything for the model to fill in."""
    return bool(missing_fields(heuristic))


def describe_unknowns(intent: Optional[TripIntent]) -> Dict[str, str]:
    """Map each null scalar field to the user-facing ``"unknown"`` label."""
    if intent is None:
        return {field: UNKNOWN_LABEL for field in SCALAR_FIELDS}
    return {
        field: UNKNOWN_LABEL for field in SCALAR_FIELDS if getattr(intent, field) is None
    }
