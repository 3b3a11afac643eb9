"""Main application module: the Nexi assistant."""
import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from .config import Config, load_config
from .llm.ollama import OllamaProvider
from .llm.prompt_manager import Message, PromptManager
from .llm.prompts import build_memory_extraction_prompt, build_system_prompt
from .llm.provider import GenerateOptions, LLMProvider, ProviderError, TokenCallback
from .memory.embedding import SENTENCE_TRANSFORMERS_AVAILABLE, EmbeddingFn, EmbeddingModel
from .memory.maintenance import DuplicatePair
from .memory.manager import MemoryManager
from .memory.models import MemoryType
from .memory.records import MemoryRecord
from .modes import detect_mode, parse_mode_command
from .personality import PersonalityConfig, get_preset
from .sentiment import SentimentAnalyzer
from .state import BehavioralMode, Mood, NexiState, StateManager

STATE_KEY = "nexi_state"
EXTRACTION_WINDOW = 10
SEARCH_LIMIT = 10
# Long conversations wear Nexi out
TIRING_CONVERSATION_LENGTH = 15
STRONG_SENTIMENT_CONFIDENCE = 0.67


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int
    temperature: float


MODE_PARAMS: Dict[BehavioralMode, GenerationParams] = {
    BehavioralMode.REACT: GenerationParams(60, 0.9),
    BehavioralMode.CHAT: GenerationParams(220, 0.8),
    BehavioralMode.THINK: GenerationParams(700, 0.6),
    BehavioralMode.OFFLINE: GenerationParams(500, 0.5),
}

EXTRACTION_PREAMBLE = "You are a memory extraction system. Respond only with valid JSON.\n\n"
EXTRACTION_TEMPERATURE = 0.3

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


def setup_logging(config: Config) -> None:
    """Configure loguru sinks from the ``logging`` config section."""
    log_level = config["logging.level"]
    log_file = Path(config["logging.file"])

    # Ensure log directory exists
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()  # Remove default handler
    logger.add(
        log_file,
        level=log_level,
        rotation=config["logging.rotation"],
        retention=config["logging.retention"],
        enqueue=True,
        backtrace=True,
        diagnose=config["app.debug"],
    )

    # Also log to the console in debug mode
    if config["app.debug"]:
        logger.add(sys.stderr, level=log_level, colorize=True)


def parse_extracted_memories(text: str) -> List[Dict[str, Any]]:
    """Pull the ``memories`` list out of an extraction reply.

    Returns:
        The memory dictionaries, or an empty list if the reply is malformed
    """
    match = _JSON_BLOCK.search(text or "")
    if not match:
        logger.info("Memory extraction returned no JSON")
        return []

    try:
        extracted = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.info(f"Memory extraction returned malformed JSON: {e}")
        return []

    memories = extracted.get("memories") if isinstance(extracted, dict) else None
    if not isinstance(memories, list):
        logger.info("Memory extraction reply has no memories list")
        return []
    return [m for m in memories if isinstance(m, dict)]


class Nexi:
    """The assistant: ties state, memory, prompts and the language model together."""

    def __init__(
        self,
        memory: MemoryManager,
        provider: LLMProvider,
        config: Optional[Config] = None,
        personality: Optional[PersonalityConfig] = None,
    ):
        """Initialize Nexi.

        Args:
            memory: Memory system to read from and write to
            provider: Language model backend
            config: Configuration (defaults from the environment)
            personality: Personality, overrides ``personality.preset``
        """
        self.config = config or Config()
        self.memory = memory
        self.provider = provider
        self.personality = personality or self._load_personality()
        self.max_relevant_memories = self.config.get("memory.max_relevant", 5)
        self.prompts = PromptManager(max_history=self.config.get("conversation.max_context_messages", 20))

        use_llm_sentiment = self.config.get("conversation.llm_sentiment", False)
        self.sentiment = SentimentAnalyzer(provider if use_llm_sentiment else None)

        saved = self.memory.load_state(STATE_KEY)
        self.state = StateManager(
            saved if isinstance(saved, dict) else None,
            default_mood=self.personality.default_mood,
            default_energy=self.personality.default_energy,
        )
        self._closed = False
        self._save_state()

        logger.info(f"Nexi ready (personality: {self.personality.name})")

    def _load_personality(self) -> PersonalityConfig:
        name = self.config.get("personality.preset", "default")
        preset = get_preset(name)
        if preset is None:
            logger.warning(f"Unknown personality preset '{name}', using default")
            preset = get_preset("default")
        return preset

    def _save_state(self) -> None:
        self.memory.save_state(STATE_KEY, self.state.to_dict())

    async def is_provider_available(self) -> bool:
        return await self.provider.is_available()

    async def chat(
        self,
        user_input: str,
        stream: bool = False,
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        """Respond to the user.

        Args:
            user_input: What the user said, optionally prefixed with a mode command
            stream: Stream tokens from the backend
            on_token: Called with each streamed token

        Returns:
            Nexi's reply

        Raises:
            ProviderError: If the language model fails
        """
        requested_mode, cleaned = parse_mode_command(user_input)
        text = cleaned or user_input

        current = self.state.get_state()
        mode = requested_mode or detect_mode(text, current.mode)
        if mode != current.mode:
            self.state.set_mode(mode)

        self.state.record_interaction()
        self.prompts.add_user_message(text)

        memories = await self.memory.search_semantic(text, self.max_relevant_memories)
        state = self.state.get_state()
        system_prompt = build_system_prompt(state, memories, personality=self.personality)
        logger.debug(f"Chat turn in {state.mode.value} mode with {len(memories)} memories")

        params = MODE_PARAMS[state.mode]
        options = GenerateOptions(
            mode=state.mode,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            stream=stream,
            on_token=on_token,
        )
        try:
            response = await self.provider.generate(self.prompts.build_prompt(system_prompt), options)
        except ProviderError as e:
            logger.error(f"Generation failed: {e}")
            raise

        self.prompts.add_assistant_message(response, mode=state.mode)

        await self._analyze_mood(text)
        self._save_state()
        return response

    async def _analyze_mood(self, text: str) -> None:
        result = await self.sentiment.analyze(text)

        if result.mood != Mood.NEUTRAL:
            intensity = 2 if result.confidence >= STRONG_SENTIMENT_CONFIDENCE else 1
            self.state.shift_mood(result.mood, intensity)
        if result.energy in ("up", "down"):
            self.state.adjust_energy(result.energy)

        if len(self.prompts) > TIRING_CONVERSATION_LENGTH:
            self.state.adjust_energy("down")

    async def process_memories(self) -> List[MemoryRecord]:
        """Ask the model what is worth remembering from the recent conversation.

        Returns:
            The memories that were stored (possibly none)
        """
        if len(self.prompts) < 2:
            return []

        conversation = self.prompts.get_conversation_text(EXTRACTION_WINDOW)
        prompt = EXTRACTION_PREAMBLE + build_memory_extraction_prompt(conversation)
        options = GenerateOptions(
            mode=BehavioralMode.OFFLINE,
            max_tokens=MODE_PARAMS[BehavioralMode.OFFLINE].max_tokens,
            temperature=EXTRACTION_TEMPERATURE,
        )

        try:
            text = await self.provider.generate(prompt, options)
        except ProviderError as e:
            logger.warning(f"Memory extraction failed: {e}")
            return []

        stored = []
        for item in parse_extracted_memories(text):
            tags = item.get("tags")
            try:
                record = await self.memory.remember_with_embedding(
                    content=item.get("content"),
                    memory_type=item.get("type"),
                    importance=item.get("importance"),
                    emotional_weight=item.get("emotional_weight"),
                    tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
                )
            except ValueError as e:
                logger.info(f"Skipping extracted memory: {e}")
                continue
            stored.append(record)

        logger.info(f"Stored {len(stored)} memories from conversation")
        return stored

    async def remember(
        self,
        content: str,
        memory_type: MemoryType = MemoryType.REQUEST,
        importance: int = 7,
    ) -> MemoryRecord:
        """Store something the user explicitly asked Nexi to remember."""
        return await self.memory.remember_with_embedding(
            content=content,
            memory_type=memory_type,
            importance=importance,
            emotional_weight=0,
            tags=["explicit-request"],
        )

    async def search_memories(self, query: str) -> List[MemoryRecord]:
        return await self.memory.search_semantic(query, SEARCH_LIMIT)

    def get_state(self) -> NexiState:
        return self.state.get_state()

    def set_mode(self, mode: BehavioralMode) -> None:
        self.state.set_mode(mode)
        self._save_state()

    def get_memory_stats(self) -> Dict[str, Any]:
        return self.memory.get_stats()

    def clear_conversation(self) -> None:
        self.prompts.clear_history()

    def get_conversation_history(self) -> List[Message]:
        return self.prompts.recent()

    def run_memory_decay(self) -> int:
        return self.memory.run_decay(
            max_age_days=self.config.get("memory.decay_days", 30),
            max_importance=self.config.get("memory.decay_max_importance", 3),
        )

    def find_duplicate_memories(self) -> List[DuplicatePair]:
        return self.memory.find_duplicates()

    def deduplicate_memories(self) -> int:
        return self.memory.deduplicate()

    async def shutdown(self) -> None:
        """Persist state and release the store and the provider."""
        if self._closed:
            return
        self._save_state()
        self.memory.close()
        await self.provider.aclose()
        self._closed = True
        logger.info("Nexi shut down")


def _embedding_generator(config: Config, provider: LLMProvider) -> Optional[EmbeddingFn]:
    backend = config.get("memory.embeddings", "ollama")

    if backend == "none":
        return None

    if backend == "local":
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            logger.warning("sentence-transformers not installed, semantic search disabled")
            return None
        return EmbeddingModel(config.get("llm.local_embedding_model")).embed

    embed = getattr(provider, "embed", None)
    if embed is None:
        logger.info("Provider has no embedding endpoint, semantic search disabled")
    return embed


def create_nexi(config: Optional[Config] = None, provider: Optional[LLMProvider] = None) -> Nexi:
    """Build a fully wired Nexi from configuration.

    Args:
        config: Configuration (loaded from ``.env`` and the environment if omitted)
        provider: Language model backend (Ollama from config if omitted)

    Returns:
        A ready Nexi instance
    """
    config = config or load_config()

    db_path = config.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)

    memory = MemoryManager(
        db_url=f"sqlite:///{db_path}",
        semantic_threshold=config.get("memory.semantic_threshold", 0.3),
        duplicate_threshold=config.get("memory.duplicate_threshold", 0.8),
    )
    provider = provider or OllamaProvider.from_config(config)
    memory.set_embedding_generator(_embedding_generator(config, provider))

    return Nexi(memory, provider, config)
