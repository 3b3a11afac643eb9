"""
Prompt Manager

Keeps the running conversation and turns it into generation prompts.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from loguru import logger

from ..state import BehavioralMode

ROLE_LABELS = {
    'user': 'User',
    'assistant': 'Nexi',
}


@dataclass
class Message:
    """A message in the conversation."""
    role: str  # 'user' or 'assistant'
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    mode: Optional[BehavioralMode] = None


class PromptManager:
    """Manages conversation history and prompt assembly."""

    def __init__(self, max_history: int = 20):
        """Initialize the prompt manager.

        Args:
            max_history: Maximum number of messages kept and sent as context
        """
        self.max_history = max(1, max_history)
        self.messages: List[Message] = []

    def add_message(
        self,
        role: str,
        content: str,
        mode: Optional[BehavioralMode] = None,
        timestamp: Optional[datetime] = None,
    ) -> 'PromptManager':
        """Add a message to the conversation history.

        Args:
            role: 'user' or 'assistant'
            content: Message content
            mode: Behavioral mode the message was produced in
            timestamp: Optional timestamp (default: now)

        Returns:
            self for method chaining
        """
        if role not in ROLE_LABELS:
            raise ValueError(f"Invalid role: {role}. Must be 'user' or 'assistant'")

        self.messages.append(Message(
            role=role,
            content=content,
            timestamp=timestamp or datetime.now(),
            mode=mode,
        ))
        self._trim_history()
        return self

    def add_user_message(self, content: str, **kwargs) -> 'PromptManager':
        """Add a user message to the conversation."""
        return self.add_message('user', content, **kwargs)

    def add_assistant_message(self, content: str, **kwargs) -> 'PromptManager':
        """Add one of Nexi's replies to the conversation."""
        return self.add_message('assistant', content, **kwargs)

    def _trim_history(self):
        overflow = len(self.messages) - self.max_history
        if overflow > 0:
            del self.messages[:overflow]
            logger.debug(f"Trimmed {overflow} old messages from history")

    def recent(self, count: Optional[int] = None) -> List[Message]:
        """The last ``count`` messages (all kept messages by default)."""
        if count is None:
            return list(self.messages)
        if count <= 0:
            return []
        return self.messages[-count:]

    def get_conversation_text(self, count: Optional[int] = None) -> str:
        """Get the conversation as ``User:`` / ``Nexi:`` lines.

        Args:
            count: Only include the last ``count`` messages

        Returns:
            Formatted conversation text
        """
        return "\n\n".join(
            f"{ROLE_LABELS[msg.role]}: {msg.content}" for msg in self.recent(count)
        )

    def build_prompt(self, system_prompt: str) -> str:
        """Full generation prompt: system prompt, conversation, then Nexi's turn."""
        return f"{system_prompt}\n\n---\n\nConversation:\n{self.get_conversation_text()}\n\nNexi:"

    def clear_history(self) -> 'PromptManager':
        """Clear the conversation history.

        Returns:
            self for method chaining
        """
        self.messages = []
        return self

    def __len__(self) -> int:
        """Number of messages in the conversation."""
        return len(self.messages)

    def __bool__(self) -> bool:
        """Whether there are any messages in the conversation."""
        return bool(self.messages)
