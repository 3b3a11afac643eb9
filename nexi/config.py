"""Configuration settings for Nexi."""
from pathlib import Path
from typing import Dict, Any, Optional, Union
import copy
import os
import json

from dotenv import load_dotenv


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration manager for Nexi."""

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """Initialize configuration.

        Args:
            config_path: Path to a JSON configuration file
            overrides: Nested values merged over everything else
        """
        data_dir = os.getenv("NEXI_DATA_DIR", str(Path.home() / ".nexi"))

        # Default configuration
        self._config = {
            "app": {
                "name": "Nexi",
                "version": "0.1.0",
                "debug": _env_bool("DEBUG"),
            },
            "memory": {
                "data_dir": data_dir,
                "db_file": os.getenv("NEXI_DB_FILE", "nexi_memory.db"),
                "max_relevant": int(os.getenv("NEXI_MAX_MEMORIES", "5")),
                "semantic_threshold": float(os.getenv("NEXI_SEMANTIC_THRESHOLD", "0.3")),
                "duplicate_threshold": float(os.getenv("NEXI_DEDUP_THRESHOLD", "0.8")),
                "decay_days": int(os.getenv("NEXI_DECAY_DAYS", "30")),
                "decay_max_importance": int(os.getenv("NEXI_DECAY_MAX_IMPORTANCE", "3")),
                # none, ollama or local (sentence-transformers)
                "embeddings": os.getenv("NEXI_EMBEDDINGS", "ollama").lower(),
            },
            "llm": {
                "host": os.getenv("OLLAMA_HOST", "http://localhost:11434"),
                "default_model": os.getenv("NEXI_MODEL_DEFAULT", "llama3.1:8b"),
                "models": {
                    mode: os.getenv(f"NEXI_MODEL_{mode.upper()}")
                    for mode in ("react", "chat", "think", "offline")
                    if os.getenv(f"NEXI_MODEL_{mode.upper()}")
                },
                "embedding_model": os.getenv("NEXI_EMBEDDING_MODEL", "nomic-embed-text"),
                "local_embedding_model": os.getenv("NEXI_LOCAL_EMBEDDING_MODEL", "all-MiniLM-L6-v2"),
                "timeout": float(os.getenv("NEXI_LLM_TIMEOUT", "120")),
            },
            "conversation": {
                "max_context_messages": int(os.getenv("NEXI_MAX_CONTEXT", "20")),
                "llm_sentiment": _env_bool("NEXI_LLM_SENTIMENT"),
            },
            "personality": {
                "preset": os.getenv("NEXI_PERSONALITY", "default"),
            },
            "logging": {
                "level": os.getenv("LOG_LEVEL", "INFO"),
                "file": os.getenv("LOG_FILE", str(Path(data_dir) / "nexi.log")),
                "rotation": os.getenv("LOG_ROTATION", "10 MB"),
                "retention": os.getenv("LOG_RETENTION", "30 days"),
            },
        }

        # Load from config file if provided
        if config_path and Path(config_path).exists():
            self.load(config_path)

        if overrides:
            self._deep_update(self._config, copy.deepcopy(overrides))

    def load(self, config_path: Union[str, Path]) -> None:
        """Load configuration from a JSON file.

        Args:
            config_path: Path to the configuration file
        """
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
            self._deep_update(self._config, config_data)

    def _deep_update(self, original: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively update a dictionary."""
        for key, value in update.items():
            if isinstance(value, dict) and key in original and isinstance(original[key], dict):
                original[key] = self._deep_update(original[key], value)
            else:
                original[key] = value
        return original

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'memory.data_dir')
            default: Default value if key is not found

        Returns:
            The configuration value or default
        """
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def __getitem__(self, key: str) -> Any:
        """Get a configuration value using bracket notation."""
        return self.get(key)

    @property
    def db_path(self) -> Path:
        """Full path of the SQLite database file."""
        return Path(self.get("memory.data_dir")) / self.get("memory.db_file")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        return copy.deepcopy(self._config)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Config:
    """Load ``.env`` into the environment, then build a :class:`Config`.

    Variables already set in the environment win over ``.env``.
    """
    load_dotenv()
    return Config(config_path, overrides)
