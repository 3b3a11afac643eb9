"""
LLM Module

Provider interface, the Ollama backend and prompt construction.
"""

from .provider import GenerateOptions, LLMProvider, ProviderError
from .ollama import OllamaProvider
from .prompt_manager import Message, PromptManager
from .prompts import build_memory_extraction_prompt, build_system_prompt

__all__ = [
    'GenerateOptions',
    'LLMProvider',
    'ProviderError',
    'OllamaProvider',
    'Message',
    'PromptManager',
    'build_memory_extraction_prompt',
    'build_system_prompt',
]
