"""
LLM provider interface.

Backends implement :class:`LLMProvider`; the rest of Nexi only talks to this
interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ..state import BehavioralMode

TokenCallback = Callable[[str], None]


class ProviderError(RuntimeError):
    """Raised when the language model backend fails or is unreachable."""


@dataclass
class GenerateOptions:
    """Generation parameters for a single request."""
    mode: BehavioralMode = BehavioralMode.CHAT
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stream: bool = False
    on_token: Optional[TokenCallback] = None


class LLMProvider(ABC):
    """A text generation backend."""

    @abstractmethod
    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> str:
        """Generate a completion for the prompt.

        Args:
            prompt: Full prompt, system context included
            options: Generation options

        Returns:
            The complete generated text

        Raises:
            ProviderError: If the backend fails
        """

    @abstractmethod
    async def is_available(self) -> bool:
        """Whether the backend can be reached."""

    @abstractmethod
    def get_model_for_mode(self, mode: BehavioralMode) -> str:
        """Name of the model used for the given mode."""

    async def aclose(self) -> None:
        """Release any resources held by the provider."""
