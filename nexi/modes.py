"""Behavioral modes: how long and how loose Nexi's replies are."""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .state import BehavioralMode


@dataclass(frozen=True)
class ModeConfig:
    name: str
    description: str
    max_tokens: int
    temperature: float
    suggested_length: str  # very_short, short, medium, long


MODE_CONFIGS: Dict[BehavioralMode, ModeConfig] = {
    BehavioralMode.REACT: ModeConfig(
        name="React Mode",
        description="Fast, emotional, 1-2 sentences",
        max_tokens=150,
        temperature=0.9,
        suggested_length="very_short",
    ),
    BehavioralMode.CHAT: ModeConfig(
        name="Chat Mode",
        description="Normal conversation, balanced",
        max_tokens=500,
        temperature=0.8,
        suggested_length="medium",
    ),
    BehavioralMode.THINK: ModeConfig(
        name="Think Mode",
        description="Reflective, strategic, detailed",
        max_tokens=1500,
        temperature=0.7,
        suggested_length="long",
    ),
    BehavioralMode.OFFLINE: ModeConfig(
        name="Offline Mode",
        description="Internal processing, no audience",
        max_tokens=1000,
        temperature=0.6,
        suggested_length="medium",
    ),
}

MODE_COMMANDS: Dict[str, BehavioralMode] = {
    "/react": BehavioralMode.REACT,
    "/quick": BehavioralMode.REACT,
    "/chat": BehavioralMode.CHAT,
    "/normal": BehavioralMode.CHAT,
    "/think": BehavioralMode.THINK,
    "/deep": BehavioralMode.THINK,
}

THINK_INDICATORS = (
    "explain",
    "how does",
    "why do",
    "what if",
    "help me understand",
    "walk me through",
    "think about",
    "analyze",
    "consider",
    "plan",
)


def detect_mode(text: str, current_mode: BehavioralMode) -> BehavioralMode:
    """Pick a mode for the input, defaulting to the current one."""
    lowered = text.lower().strip()

    # Explicit switches
    for command, mode in MODE_COMMANDS.items():
        if lowered.startswith(command):
            return mode

    # Short statements in a chat get a quick reaction
    if len(lowered) < 20 and "?" not in lowered and current_mode == BehavioralMode.CHAT:
        return BehavioralMode.REACT

    # Complex questions deserve some thought
    if any(indicator in lowered for indicator in THINK_INDICATORS):
        return BehavioralMode.THINK

    return current_mode


def parse_mode_command(text: str) -> Tuple[Optional[BehavioralMode], str]:
    """Split a leading mode command off the input.

    Returns:
        (mode or None, remaining input)
    """
    lowered = text.lower()
    for command, mode in MODE_COMMANDS.items():
        if lowered.startswith(command):
            return mode, text[len(command):].strip()
    return None, text


def get_mode_config(mode: BehavioralMode) -> ModeConfig:
    return MODE_CONFIGS[BehavioralMode(mode)]


def get_mode_name(mode: BehavioralMode) -> str:
    return get_mode_config(mode).name
