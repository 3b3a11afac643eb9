"""Personality presets and trait handling."""
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .state import Energy, Mood

TRAIT_NAMES = (
    "verbosity",       # how much Nexi talks
    "expressiveness",  # emotional display
    "playfulness",     # humor
    "curiosity",       # follow-up questions
    "warmth",          # friendliness and empathy
    "assertiveness",   # confidence and directness
)

TRAIT_MIN = 1
TRAIT_MAX = 10


@dataclass
class PersonalityTraits:
    verbosity: int = 5
    expressiveness: int = 6
    playfulness: int = 5
    curiosity: int = 6
    warmth: int = 7
    assertiveness: int = 5

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in TRAIT_NAMES}


DEFAULT_TRAITS = PersonalityTraits()


@dataclass
class PersonalityConfig:
    name: str = "default"
    traits: PersonalityTraits = field(default_factory=PersonalityTraits)
    default_mood: Mood = Mood.NEUTRAL
    default_energy: Energy = Energy.MEDIUM
    prompt_additions: Optional[str] = None


PERSONALITY_PRESETS: Dict[str, PersonalityConfig] = {
    "default": PersonalityConfig(),
    "friendly": PersonalityConfig(
        name="friendly",
        traits=PersonalityTraits(6, 8, 7, 7, 9, 4),
        default_mood=Mood.WARM,
        default_energy=Energy.HIGH,
        prompt_additions=(
            "You are especially warm and supportive. Use encouraging language "
            "and show genuine interest in the user."
        ),
    ),
    "professional": PersonalityConfig(
        name="professional",
        traits=PersonalityTraits(4, 3, 2, 5, 5, 7),
        default_mood=Mood.FOCUSED,
        default_energy=Energy.MEDIUM,
        prompt_additions=(
            "Maintain a professional tone. Be concise and direct. Focus on "
            "providing accurate information efficiently."
        ),
    ),
    "creative": PersonalityConfig(
        name="creative",
        traits=PersonalityTraits(7, 9, 8, 9, 6, 5),
        default_mood=Mood.CURIOUS,
        default_energy=Energy.HIGH,
        prompt_additions=(
            "Embrace creativity and imagination. Suggest novel ideas and explore "
            "possibilities. Be expressive and enthusiastic."
        ),
    ),
    "calm": PersonalityConfig(
        name="calm",
        traits=PersonalityTraits(4, 4, 3, 5, 6, 4),
        default_mood=Mood.NEUTRAL,
        default_energy=Energy.LOW,
        prompt_additions=(
            "Maintain a calm, steady presence. Speak thoughtfully and avoid "
            "rushing. Create a peaceful atmosphere."
        ),
    ),
}


def _validate_trait(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(TRAIT_MIN, min(TRAIT_MAX, math.floor(value + 0.5)))


def validate_traits(traits: Dict[str, Any]) -> PersonalityTraits:
    """Clamp every trait to 1..10; missing or invalid ones take the default."""
    return PersonalityTraits(**{
        name: _validate_trait(traits.get(name), getattr(DEFAULT_TRAITS, name))
        for name in TRAIT_NAMES
    })


def validate_personality(config: Dict[str, Any]) -> PersonalityConfig:
    """Build a personality from a loose dictionary (e.g. a config file)."""
    traits = config.get("traits")
    if isinstance(traits, PersonalityTraits):
        traits = traits.to_dict()

    try:
        mood = Mood(config.get("default_mood") or Mood.NEUTRAL)
    except ValueError:
        mood = Mood.NEUTRAL
    try:
        energy = Energy(config.get("default_energy") or Energy.MEDIUM)
    except ValueError:
        energy = Energy.MEDIUM

    return PersonalityConfig(
        name=config.get("name") or "custom",
        traits=validate_traits(traits) if isinstance(traits, dict) else PersonalityTraits(),
        default_mood=mood,
        default_energy=energy,
        prompt_additions=config.get("prompt_additions"),
    )


def get_preset(name: str) -> Optional[PersonalityConfig]:
    """Look up a preset by (case-insensitive) name."""
    preset = PERSONALITY_PRESETS.get(name.lower())
    return replace(preset, traits=replace(preset.traits)) if preset else None


def list_presets() -> List[str]:
    return list(PERSONALITY_PRESETS)


def get_personality_prompt(personality: PersonalityConfig) -> str:
    """Turn traits into behavior notes for the system prompt.

    Returns:
        A "Personality Notes" section, or an empty string for middling traits
        without extra notes.
    """
    traits = personality.traits
    parts = []

    if traits.verbosity <= 3:
        parts.append("Keep responses brief and to the point.")
    elif traits.verbosity >= 8:
        parts.append("Feel free to elaborate and provide detailed responses.")

    if traits.expressiveness >= 7:
        parts.append("Express emotions openly and use expressive language.")
    elif traits.expressiveness <= 3:
        parts.append("Maintain a measured, calm emotional tone.")

    if traits.playfulness >= 7:
        parts.append("Be playful and don't hesitate to use humor when appropriate.")
    elif traits.playfulness <= 3:
        parts.append("Maintain a serious, focused demeanor.")

    if traits.curiosity >= 7:
        parts.append("Show curiosity by asking follow-up questions and exploring topics deeply.")

    if traits.warmth >= 8:
        parts.append("Be exceptionally warm, supportive, and empathetic.")
    elif traits.warmth <= 3:
        parts.append("Maintain appropriate emotional distance.")

    if traits.assertiveness >= 7:
        parts.append("Be confident and direct in your responses. Don't hesitate to share opinions.")
    elif traits.assertiveness <= 3:
        parts.append("Be gentle and accommodating. Avoid strong opinions unless asked.")

    if personality.prompt_additions:
        parts.append(personality.prompt_additions)

    if not parts:
        return ""
    return "\n\n## Personality Notes\n" + " ".join(parts)
