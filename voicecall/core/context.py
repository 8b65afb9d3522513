"""Conversation context management."""

from __future__ import annotations

from dataclasses import dataclass, field

from voicecall.services.llm.protocol import ConversationContext, Message, Role


@dataclass
class ConversationManager:
    """Keeps recent turns and builds the context for each reply."""

    system_prompt: str
    messages: list[Message] = field(default_factory=list)
    max_history: int = 10  # Keep last N messages for context window

    def add_user_message(self, content: str) -> Message:
        """Add a user message to history."""
        msg = Message(role=Role.USER, content=content)
        self.messages.append(msg)
        self._trim_history()
        return msg

    def add_assistant_message(self, content: str) -> Message:
        """Add an assistant message to history."""
        msg = Message(role=Role.ASSISTANT, content=content)
        self.messages.append(msg)
        self._trim_history()
        return msg

    def record_turn(self, utterance: str, reply: str) -> None:
        """Record a completed user/assistant exchange."""
        self.add_user_message(utterance)
        self.add_assistant_message(reply)

    def _trim_history(self) -> None:
        """Keep only the last max_history messages."""
        if len(self.messages) > self.max_history:
            self.messages = self.messages[-self.max_history :]

    def build_context(self) -> ConversationContext:
        """Snapshot of the prompt and history for the next reply."""
        return ConversationContext(
            system_prompt=self.system_prompt,
            history=list(self.messages),
        )

    def clear(self) -> None:
        self.messages = []
