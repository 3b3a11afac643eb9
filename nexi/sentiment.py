"""Mood detection from user input."""
import json
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

from loguru import logger

from .llm.provider import GenerateOptions, ProviderError
from .state import BehavioralMode, Mood


@dataclass
class SentimentResult:
    mood: Mood
    energy: str  # up, down or neutral
    confidence: float


def _compile(*patterns: str) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# Insertion order breaks ties: the first mood to reach the top score wins
MOOD_PATTERNS: Dict[Mood, List[Pattern]] = {
    Mood.CURIOUS: _compile(r"\?{2,}", r"wonder", r"curious", r"how does", r"what if", r"why"),
    Mood.PLAYFUL: _compile(r"lol", r"haha", "\U0001F602", "\U0001F923", r"joke", r"funny", r"tease"),
    Mood.FOCUSED: _compile(r"serious", r"important", r"need to", r"must", r"critical"),
    Mood.WARM: _compile(r"thank", r"love", r"appreciate", "❤️", "\U0001F970", r"sweet", r"kind"),
    Mood.REFLECTIVE: _compile(r"think about", r"reflect", r"remember when", r"used to", r"past"),
    Mood.TIRED: _compile(r"tired", r"exhausted", r"sleepy", r"worn out", "\U0001F634"),
    Mood.EXCITED: _compile(r"excited", r"amazing", r"awesome", r"can't wait", "\U0001F389", r"!"),
}

NEGATIVE_PATTERNS = _compile(r"frustrated", r"annoying", r"stupid", r"angry", r"upset", r"hate")

ENERGY_UP_PATTERNS = _compile(r"!", r"excited", r"amazing", r"love", r"great", r"awesome")
ENERGY_DOWN_PATTERNS = _compile(r"tired", r"bored", r"meh", r"sigh", r"whatever", r"\.{3,}")

LLM_MOODS = (
    Mood.CURIOUS, Mood.PLAYFUL, Mood.FOCUSED, Mood.WARM,
    Mood.REFLECTIVE, Mood.TIRED, Mood.EXCITED, Mood.NEUTRAL,
)

SENTIMENT_PROMPT = """Analyze the emotional tone of this message and respond with ONLY a JSON object.

Message: "{message}"

Respond with this exact format:
{{"mood":"<one of: {moods}>","energy":"<one of: up, down, neutral>","confidence":<0.0 to 1.0>}}"""

_JSON_OBJECT = re.compile(r"\{.*?\}", re.DOTALL)


class SentimentAnalyzer:
    """Reads the emotional tone of a message.

    Rule-based by default; with a provider set, asks the model first and
    falls back to the rules when the answer is unusable.
    """

    def __init__(self, provider=None):
        self.provider = provider

    def set_provider(self, provider) -> None:
        self.provider = provider

    def analyze_rule_based(self, text: str) -> SentimentResult:
        best_mood = Mood.NEUTRAL
        best_score = 0

        for mood, patterns in MOOD_PATTERNS.items():
            score = sum(1 for pattern in patterns if pattern.search(text))
            if score > best_score:
                best_mood, best_score = mood, score

        # Negativity calls for focus, not mirroring
        if any(pattern.search(text) for pattern in NEGATIVE_PATTERNS):
            best_mood = Mood.FOCUSED
            best_score = max(best_score, 1)

        energy_up = sum(len(pattern.findall(text)) for pattern in ENERGY_UP_PATTERNS)
        energy_down = sum(1 for pattern in ENERGY_DOWN_PATTERNS if pattern.search(text))

        energy = "neutral"
        if energy_up > energy_down + 1:
            energy = "up"
        elif energy_down > energy_up:
            energy = "down"

        return SentimentResult(mood=best_mood, energy=energy, confidence=min(best_score / 3, 1.0))

    async def analyze(self, text: str) -> SentimentResult:
        """Analyze with the LLM when available, otherwise by rules."""
        if self.provider is None:
            return self.analyze_rule_based(text)

        prompt = SENTIMENT_PROMPT.format(
            message=text,
            moods=", ".join(mood.value for mood in LLM_MOODS),
        )
        options = GenerateOptions(mode=BehavioralMode.REACT, max_tokens=60, temperature=0.3)

        try:
            response = await self.provider.generate(prompt, options)
        except ProviderError as e:
            logger.warning(f"LLM sentiment analysis failed, using rules: {e}")
            return self.analyze_rule_based(text)

        result = self._parse(response)
        if result is None:
            logger.debug("Unusable sentiment reply, using rules")
            return self.analyze_rule_based(text)
        return result

    @staticmethod
    def _parse(response: str) -> Optional[SentimentResult]:
        match = _JSON_OBJECT.search(response or "")
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
        if not isinstance(parsed, dict):
            return None

        try:
            mood = Mood(parsed.get("mood"))
        except ValueError:
            mood = Mood.NEUTRAL
        if mood not in LLM_MOODS:
            mood = Mood.NEUTRAL

        energy = parsed.get("energy")
        if energy not in ("up", "down"):
            energy = "neutral"

        confidence = parsed.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not confidence:
            confidence = 0.5

        return SentimentResult(mood=mood, energy=energy, confidence=min(1.0, max(0.0, float(confidence))))
