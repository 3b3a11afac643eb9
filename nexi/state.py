"""Nexi's internal state: mood, energy and behavioral mode."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from loguru import logger

# Energy drops after this much inactivity
ENERGY_DECAY_MINUTES = 30
# Mood returns to neutral after this much inactivity
MOOD_STABILIZE_MINUTES = 60


class Mood(str, Enum):
    NEUTRAL = "neutral"
    CURIOUS = "curious"
    PLAYFUL = "playful"
    TIRED = "tired"
    FOCUSED = "focused"
    IRRITATED = "irritated"
    WARM = "warm"
    WITHDRAWN = "withdrawn"
    EXCITED = "excited"
    REFLECTIVE = "reflective"


class Energy(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BehavioralMode(str, Enum):
    REACT = "react"
    CHAT = "chat"
    THINK = "think"
    OFFLINE = "offline"


_ENERGY_LEVELS = [Energy.LOW, Energy.MEDIUM, Energy.HIGH]

_FEELINGS = {
    Mood.CURIOUS: "curious about things",
    Mood.PLAYFUL: "in a playful mood",
    Mood.TIRED: "mentally tired",
    Mood.FOCUSED: "focused and attentive",
    Mood.IRRITATED: "slightly irritated",
    Mood.WARM: "feeling warm and connected",
    Mood.WITHDRAWN: "feeling a bit withdrawn",
    Mood.EXCITED: "excited",
    Mood.REFLECTIVE: "in a reflective mood",
}


def _now() -> datetime:
    return datetime.now()


@dataclass
class NexiState:
    """Snapshot of how Nexi is doing right now."""
    mood: Mood = Mood.NEUTRAL
    energy: Energy = Energy.MEDIUM
    mode: BehavioralMode = BehavioralMode.CHAT
    last_interaction: Optional[datetime] = None
    session_start: datetime = field(default_factory=_now)
    interaction_count: int = 0


def _parse_enum(enum_cls, value, default):
    try:
        return enum_cls(value) if value is not None else default
    except ValueError:
        logger.warning(f"Ignoring unknown {enum_cls.__name__} '{value}' in saved state")
        return default


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


class StateManager:
    """Owns the mutable state and the rules for how it drifts."""

    def __init__(
        self,
        saved: Optional[Dict[str, Any]] = None,
        default_mood: Mood = Mood.NEUTRAL,
        default_energy: Energy = Energy.MEDIUM,
    ):
        """Initialize state, optionally restoring a previous session.

        Args:
            saved: Dictionary produced by :meth:`to_dict`
            default_mood: Mood for a fresh start
            default_energy: Energy for a fresh start
        """
        saved = saved or {}
        count = saved.get("interaction_count", 0)

        self._state = NexiState(
            mood=_parse_enum(Mood, saved.get("mood"), default_mood),
            energy=_parse_enum(Energy, saved.get("energy"), default_energy),
            mode=_parse_enum(BehavioralMode, saved.get("mode"), BehavioralMode.CHAT),
            last_interaction=_parse_datetime(saved.get("last_interaction")),
            interaction_count=count if isinstance(count, int) else 0,
        )

        # Time has passed since the saved session
        if self._state.last_interaction is not None:
            self._apply_time_effects()

    def _minutes_since_last_interaction(self) -> Optional[float]:
        if self._state.last_interaction is None:
            return None
        return (_now() - self._state.last_interaction).total_seconds() / 60

    def _apply_time_effects(self) -> None:
        minutes = self._minutes_since_last_interaction()
        if minutes is None:
            return

        if minutes > ENERGY_DECAY_MINUTES * 2:
            self._state.energy = Energy.LOW
        elif minutes > ENERGY_DECAY_MINUTES and self._state.energy == Energy.HIGH:
            self._state.energy = Energy.MEDIUM

        if minutes > MOOD_STABILIZE_MINUTES:
            self._state.mood = Mood.NEUTRAL

    def get_state(self) -> NexiState:
        """Return a copy of the current state."""
        return replace(self._state)

    def record_interaction(self) -> None:
        """Note that an interaction just happened."""
        self._state.last_interaction = _now()
        self._state.interaction_count += 1

        # Talking perks Nexi up a little
        if self._state.energy == Energy.LOW and self._state.interaction_count % 3 == 0:
            self._state.energy = Energy.MEDIUM

    def set_mode(self, mode: BehavioralMode) -> None:
        self._state.mode = BehavioralMode(mode)

    def shift_mood(self, toward: Mood, intensity: int = 1) -> None:
        """Move toward a mood.

        Args:
            toward: Target mood
            intensity: 1 = slight nudge (only moves a neutral mood), 2+ = strong
        """
        if intensity >= 2 or self._state.mood == Mood.NEUTRAL:
            self._state.mood = Mood(toward)

    def adjust_energy(self, direction: str) -> None:
        """Raise ('up') or lower ('down') energy by one level."""
        index = _ENERGY_LEVELS.index(self._state.energy)
        if direction == "up" and index < len(_ENERGY_LEVELS) - 1:
            self._state.energy = _ENERGY_LEVELS[index + 1]
        elif direction == "down" and index > 0:
            self._state.energy = _ENERGY_LEVELS[index - 1]

    def get_internal_feeling(self) -> str:
        """Describe how Nexi feels, for the prompt rather than for output."""
        feelings = []

        if self._state.energy == Energy.LOW:
            feelings.append("feeling a bit drained")
        elif self._state.energy == Energy.HIGH:
            feelings.append("feeling energetic")

        if self._state.mood in _FEELINGS:
            feelings.append(_FEELINGS[self._state.mood])

        minutes = self._minutes_since_last_interaction()
        if minutes is not None:
            if minutes > 60 * 24:
                feelings.append("it's been a while since we talked")
            elif minutes > 60 * 4:
                feelings.append("haven't talked in a few hours")

        if not feelings:
            return "feeling neutral, present"
        return ", ".join(feelings)

    def to_dict(self) -> Dict[str, Any]:
        """Export the persistent part of the state."""
        last = self._state.last_interaction
        return {
            "mood": self._state.mood.value,
            "energy": self._state.energy.value,
            "mode": self._state.mode.value,
            "last_interaction": last.isoformat() if last else None,
            "interaction_count": self._state.interaction_count,
        }
