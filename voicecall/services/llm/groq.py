"""Groq reply service."""

from __future__ import annotations

from typing import Any

import groq
from groq import AsyncGroq

from voicecall.config import Settings, get_settings
from voicecall.logging_config import get_logger
from voicecall.services.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from voicecall.services.llm.protocol import ConversationContext, Role

logger: Any = get_logger(__name__)

# Spoken replies should stay short
DEFAULT_MAX_TOKENS = 256


class GroqService:
    """Groq chat completion used as the call's reply engine."""

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = 0.7,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.groq_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Lazy initialization of AsyncGroq client."""
        if self._client is None:
            if self._settings.groq_api_key is None:
                raise LLMAuthenticationError("GROQ_API_KEY is not set")
            self._client = AsyncGroq(
                api_key=self._settings.groq_api_key.get_secret_value(),
                timeout=30.0,
                max_retries=2,
            )
        return self._client

    async def generate_reply(
        self,
        utterance: str,
        context: ConversationContext,
    ) -> str:
        """Generate a reply with the conversation history as context.

        Raises:
            LLMRateLimitError: When rate limit exceeded
            LLMConnectionError: When API unreachable
            LLMAuthenticationError: When API key invalid
            LLMServiceError: For other API errors
        """
        api_messages = self._format_messages(context, utterance)

        try:
            response = await self.client.chat.completions.create(
                messages=api_messages,  # type: ignore[arg-type]
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except groq.RateLimitError as e:
            logger.warning(f"Groq rate limit hit: {e}")
            raise LLMRateLimitError(
                "Rate limit exceeded",
                retry_after=self._extract_retry_after(e),
            ) from e

        except groq.APIConnectionError as e:
            logger.error(f"Groq connection error: {e.__cause__}")
            raise LLMConnectionError("Failed to connect to Groq API") from e

        except groq.AuthenticationError as e:
            logger.error("Groq authentication failed")
            raise LLMAuthenticationError("Invalid Groq API key") from e

        except groq.APIStatusError as e:
            logger.error(f"Groq API error: {e.status_code} - {e.message}")
            raise LLMServiceError(f"Groq API error: {e.status_code}") from e

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def _format_messages(self, context: ConversationContext, utterance: str) -> list[dict]:
        """Format system prompt, history and the new utterance for Groq."""
        api_messages = [{"role": Role.SYSTEM.value, "content": context.system_prompt}]

        for msg in context.history:
            api_messages.append({
                "role": msg.role.value,
                "content": msg.content,
            })

        api_messages.append({"role": Role.USER.value, "content": utterance})
        return api_messages

    def _extract_retry_after(self, error: groq.RateLimitError) -> float:
        """Extract retry-after from rate limit error."""
        if hasattr(error, "response") and error.response:
            retry_after = error.response.headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return 60.0

    async def health_check(self) -> bool:
        """Check that a Groq client can be created.

        Does not spend a request; a bad key surfaces on the first reply.
        """
        try:
            _ = self.client
            return True
        except Exception as e:
            logger.warning(f"Groq health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None

