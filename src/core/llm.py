from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI

from src.core.config import ApiSettings


def build_chat_model(settings: ApiSettings) -> BaseChatModel:
    """Instantiate the chat model for the configured provider.

    Qwen is reached through DashScope's OpenAI-compatible endpoint, so both
    providers share the ``ChatOpenAI`` client.
    """

    return ChatOpenAI(
        model=settings.model_name,
        temperature=settings.temperature,
        api_key=settings.ensure(settings.api_key_field),
        base_url=settings.base_url,
        timeout=settings.timeout,
        max_retries=1,
    )
