"""Reply engine protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A single message in conversation history."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ConversationContext:
    """Context handed to the reply engine alongside the new utterance."""

    system_prompt: str
    history: list[Message] = field(default_factory=list)


class LLMService(Protocol):
    """Protocol for reply engine implementations."""

    async def generate_reply(
        self,
        utterance: str,
        context: ConversationContext,
    ) -> str:
        """Generate the assistant reply for one user utterance.

        Args:
            utterance: What the user just said (already stripped, non-empty)
            context: System prompt and prior turns

        Returns:
            Reply text (may be empty, the caller decides what that means)

        Raises:
            LLMServiceError: When the reply could not be produced
        """
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
