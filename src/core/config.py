"""Configuration helpers for model provider credentials and call settings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Optional

from dotenv import load_dotenv

Provider = Literal["qwen", "openai"]

QWEN_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"


def _provider_from(value: Optional[str]) -> Provider:
    return "openai" if (value or "").strip().lower() == "openai" else "qwen"


@dataclass(slots=True)
class ApiSettings:
    """Centralised container for the model provider credentials and defaults."""

    ai_provider: Provider = "qwen"
    openai_api_key: Optional[str] = None
    dashscope_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    qwen_model: str = "qwen3-max"
    temperature: float = 0.1
    max_attempts: int = 2
    timeout: float = 60.0

    @classmethod
    def from_env(cls, *, load_env_file: bool = True) -> "ApiSettings":
        """Load settings from environment variables (and a ``.env`` file)."""

        if load_env_file:
            load_dotenv()

        return cls(
            ai_provider=_provider_from(os.getenv("AI_PROVIDER")),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            dashscope_api_key=os.getenv("ALIYUN_DASHSCOPE_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            qwen_model=os.getenv("QWEN_MODEL", "qwen3-max"),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.1")),
            max_attempts=max(1, int(os.getenv("LLM_MAX_ATTEMPTS", "2"))),
            timeout=float(os.getenv("LLM_TIMEOUT", "60")),
        )

    def ensure(self, field: str) -> str:
        """Return the requested field and fail fast if it is missing."""

        value = getattr(self, field)
        if not value:
            raise RuntimeError(f"Missing configuration value: {field}")
        return value

    @property
    def api_key_field(self) -> str:
        return "openai_api_key" if self.ai_provider == "openai" else "dashscope_api_key"

    @property
    def model_name(self) -> str:
        return self.openai_model if self.ai_provider == "openai" else self.qwen_model

    @property
    def base_url(self) -> Optional[str]:
        return None if self.ai_provider == "openai" else QWEN_BASE_URL
