"""
Ollama provider.

Talks to a local Ollama server over its HTTP API using httpx.
"""
import json
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..state import BehavioralMode
from .provider import GenerateOptions, LLMProvider, ProviderError, TokenCallback

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_MODEL = "llama3.1:8b"
DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
DEFAULT_TIMEOUT = 120.0


class OllamaProvider(LLMProvider):
    """Language model backend backed by Ollama."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        default_model: str = DEFAULT_MODEL,
        model_overrides: Optional[Dict[str, str]] = None,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the provider.

        Args:
            host: Base URL of the Ollama server
            default_model: Model used when a mode has no override
            model_overrides: Mode name -> model name
            embedding_model: Model used by :meth:`embed`
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (mainly for tests)
        """
        self.host = host.rstrip("/")
        self.default_model = default_model
        self.model_overrides = {
            BehavioralMode(mode).value: model
            for mode, model in (model_overrides or {}).items()
            if model
        }
        self.embedding_model = embedding_model
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config, client: Optional[httpx.AsyncClient] = None) -> "OllamaProvider":
        """Create a provider from the ``llm`` section of a :class:`~nexi.config.Config`."""
        return cls(
            host=config.get("llm.host", DEFAULT_HOST),
            default_model=config.get("llm.default_model", DEFAULT_MODEL),
            model_overrides=config.get("llm.models", {}),
            embedding_model=config.get("llm.embedding_model", DEFAULT_EMBEDDING_MODEL),
            timeout=config.get("llm.timeout", DEFAULT_TIMEOUT),
            client=client,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def get_model_for_mode(self, mode: BehavioralMode) -> str:
        return self.model_overrides.get(BehavioralMode(mode).value, self.default_model)

    async def is_available(self) -> bool:
        try:
            response = await self._get_client().get(f"{self.host}/api/tags")
        except httpx.HTTPError as e:
            logger.debug(f"Ollama not reachable at {self.host}: {e}")
            return False
        return response.is_success

    async def embed(self, text: str) -> List[float]:
        """Embed text with the configured embedding model.

        Raises:
            ProviderError: If the request fails or returns no vector
        """
        body = {"model": self.embedding_model, "input": text}
        try:
            response = await self._get_client().post(f"{self.host}/api/embed", json=body)
            response.raise_for_status()
            embeddings = response.json().get("embeddings") or []
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Ollama embed error: {e}") from e

        if not embeddings:
            raise ProviderError("Ollama embed error: empty response")
        return embeddings[0]

    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> str:
        options = options or GenerateOptions()
        body: Dict[str, Any] = {
            "model": self.get_model_for_mode(options.mode),
            "prompt": prompt,
            "stream": options.stream,
        }
        model_options = {}
        if options.max_tokens is not None:
            model_options["num_predict"] = options.max_tokens
        if options.temperature is not None:
            model_options["temperature"] = options.temperature
        if model_options:
            body["options"] = model_options

        logger.debug(f"Generating with {body['model']} (stream={options.stream})")
        url = f"{self.host}/api/generate"
        try:
            if options.stream:
                return await self._stream(url, body, options.on_token)

            response = await self._get_client().post(url, json=body)
            response.raise_for_status()
            return response.json().get("response", "")
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama error: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Ollama returned invalid JSON: {e}") from e

    async def _stream(self, url: str, body: Dict[str, Any], on_token: Optional[TokenCallback]) -> str:
        chunks = []
        async with self._get_client().stream("POST", url, json=body) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed stream line: {line[:80]}")
                    continue

                token = data.get("response")
                if token:
                    chunks.append(token)
                    if on_token:
                        on_token(token)
                if data.get("done"):
                    break
        return "".join(chunks)

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
