"""Gemini provider with Google Maps grounding.

Uses the google-genai SDK async chat API: one ``AsyncChat`` per session so
that continuation turns see the businesses already returned.
"""

from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from loguru import logger

from leadscout.services.leadgen.exceptions import (
    ConfigurationError,
    ProviderError,
    RateLimitError,
)
from leadscout.services.leadgen.sources.base import ConversationSession, LeadProvider

DEFAULT_MODEL = "gemini-2.5-flash"

RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "rate limit", "quota")


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return True when a provider exception carries a rate-limit signal.

    An exception with an integer HTTP ``code`` is judged by its code and
    status alone; message markers only apply to exceptions without one.
    """
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None)
    if isinstance(status, str) and status.upper() == "RESOURCE_EXHAUSTED":
        return True
    if isinstance(code, int) and not isinstance(code, bool):
        return code == 429
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def maps_grounding_config() -> types.GenerateContentConfig:
    """Generation config with the Google Maps grounding tool enabled."""
    return types.GenerateContentConfig(
        tools=[types.Tool(google_maps=types.GoogleMaps())],
    )


class GeminiChatSession(ConversationSession):
    """A single Gemini chat, wrapping SDK errors in the leadgen taxonomy."""

    def __init__(self, chat, model: str):
        self._chat = chat
        self._model = model
        self._turns = 0

    @property
    def turns(self) -> int:
        return self._turns

    async def send_message(self, text: str) -> str:
        self._turns += 1
        try:
            response = await self._chat.send_message(text)
        except genai_errors.APIError as e:
            if is_rate_limit_error(e):
                raise RateLimitError(
                    "You are searching too fast. Please wait a moment."
                ) from e
            raise ProviderError(
                f"Gemini request failed (turn {self._turns}, model={self._model}): {e}"
            ) from e
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitError(
                    "You are searching too fast. Please wait a moment."
                ) from e
            raise ProviderError(f"Gemini transport error (turn {self._turns}): {e}") from e

        return response.text or ""


class GeminiMapsProvider(LeadProvider):
    """Lead provider backed by Gemini with Google Maps grounding."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        client: Optional[genai.Client] = None,
    ):
        if not api_key and client is None:
            raise ConfigurationError(
                "API key not found. Set GEMINI_API_KEY (or API_KEY) in the environment."
            )
        self.model = model
        self._client = client or genai.Client(api_key=api_key)

    def start_session(self) -> GeminiChatSession:
        chat = self._client.aio.chats.create(
            model=self.model,
            config=maps_grounding_config(),
        )
        logger.debug(f"Opened Gemini chat session (model={self.model}, tools=google_maps)")
        return GeminiChatSession(chat, model=self.model)
