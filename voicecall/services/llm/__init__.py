"""Reply services (Groq)."""

from voicecall.services.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from voicecall.services.llm.groq import GroqService
from voicecall.services.llm.protocol import (
    ConversationContext,
    LLMService,
    Message,
    Role,
)

__all__ = [
    # Protocol and types
    "LLMService",
    "Message",
    "Role",
    "ConversationContext",
    # Implementation
    "GroqService",
    # Exceptions
    "LLMServiceError",
    "LLMRateLimitError",
    "LLMConnectionError",
    "LLMAuthenticationError",
]
