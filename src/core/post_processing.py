"""Validation boundary between raw model text and the typed reply contracts."""
import json
import logging
import re
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.core.schemas import LocationRefinementResult, TripIntent

logger = logging.getLogger(__name__)

ReplyModelT = TypeVar("ReplyModelT", bound=BaseModel)
_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)

REPLY_MODELS: Dict[str, Type[BaseModel]] = {
    "travel_input": TripIntent,
    "location_refinement": LocationRefinementResult,
}


class ModelReplyError(ValueError):
    """Raised when a model reply does not conform to its reply contract."""

    def __init__(self, message: str, *, raw_output: Optional[str] = None, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.raw_output = raw_output
        self.violations = violations or [message]

    def restate(self) -> str:
        """Human-readable list of violated rules, used when re-asking the model."""
        return "\n".join(f"- {violation}" for violation in self.violations)


def _format_validation_errors(exc: ValidationError) -> List[str]:
    violations: List[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        violations.append(f"{location}: {error.get('msg')}")
    return violations


def extract_json(raw_output: Optional[str]) -> Any:
    """Extract JSON from raw model output with tolerant parsing of extra wrappers.

    Raises:
        ModelReplyError: if no JSON value can be recovered from the text.
    """
    if not raw_output or not raw_output.strip():
        raise ModelReplyError("model reply is empty", raw_output=raw_output)

    candidates: List[str] = []
    stripped = raw_output.strip()
    candidates.append(stripped)

    # Extract code-fenced JSON blocks if present (```json ... ```)
    for match in _CODE_BLOCK_PATTERN.finditer(raw_output):
        block = match.group(1).strip()
        if block:
            candidates.append(block)

    # Attempt to isolate the outermost JSON object within the text
    start_idx = stripped.find("{")
    end_idx = stripped.rfind("}")
    if start_idx != -1 and end_idx > start_idx:
        candidates.append(stripped[start_idx : end_idx + 1].strip())

    last_error: Optional[json.JSONDecodeError] = None
    for position, candidate in enumerate(dict.fromkeys(candidates)):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc
            continue
        if position > 0:
            logger.warning("Model reply contained text around the JSON object; extracted it")
        return value

    raise ModelReplyError(
        f"model reply is not valid JSON: {last_error}",
        raw_output=raw_output,
    )


class ReplyParser(Generic[ReplyModelT]):
    """Parse raw model text into one of the reply contracts."""

    def __init__(self, output_type: str):
        if output_type not in REPLY_MODELS:
            raise ValueError(f"Unsupported output_type '{output_type}' for ReplyParser")
        self.output_type = output_type
        self.model: Type[ReplyModelT] = REPLY_MODELS[output_type]  # type: ignore[assignment]

    def parse(self, raw_output: Optional[str]) -> ReplyModelT:
        """Validate ``raw_output`` against the reply contract.

        Raises:
            ModelReplyError: on missing/invalid JSON, a non-object payload,
                wrong field types, unknown keys or broken invariants.
        """
        logger.debug(f"Raw model output for {self.output_type}: {raw_output}")
        data = extract_json(raw_output)

        if not isinstance(data, dict):
            raise ModelReplyError(
                f"model reply must be a JSON object, got {type(data).__name__}",
                raw_output=raw_output,
            )

        try:
            return self.model.model_validate(data)
        except ValidationError as exc:
            violations = _format_validation_errors(exc)
            logger.warning(f"Model reply for {self.output_type} violates the schema: {'; '.join(violations)}")
            raise ModelReplyError(
                f"model reply violates the {self.output_type} schema",
                raw_output=raw_output,
                violations=violations,
            ) from exc

    def conforms(self, raw_output: Optional[str]) -> bool:
        try:
            self.parse(raw_output)
        except ModelReplyError:
            return False
        return True


# Factory function to create the appropriate parser
def create_reply_parser(output_type: str) -> ReplyParser:
    """Create a reply parser for the specified output type."""
    return ReplyParser(output_type)
