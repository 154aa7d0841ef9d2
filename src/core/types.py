"""Shared type aliases used across the prompt and schema modules."""
from __future__ import annotations

from typing import Annotated

from pydantic import Field, Strict, StringConstraints

# Numbers are strict: "3", true and "31.2" are type errors, not coerced values.
PositiveInt = Annotated[int, Strict(), Field(gt=0)]
NonNegInt = Annotated[int, Strict(), Field(ge=0)]
Lat = Annotated[float, Strict(), Field(ge=-90, le=90)]
Lon = Annotated[float, Strict(), Field(ge=-180, le=180)]
Confidence = Annotated[float, Strict(), Field(ge=0, le=1)]
NonEmptyStr = Annotated[
    str,
    StringConstraints(
        min_length=1,
        strip_whitespace=True,
    ),
]
