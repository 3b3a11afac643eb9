"""
Tests for mood detection.
"""
import unittest

from nexi.llm.provider import ProviderError
from nexi.sentiment import SentimentAnalyzer
from nexi.state import BehavioralMode, Mood


class ScriptedProvider:
    """Replies with a fixed string (or raises)."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.options = []

    async def generate(self, prompt, options=None):
        self.options.append(options)
        if self.error:
            raise self.error
        return self.reply


class TestRuleBasedSentiment(unittest.TestCase):

    def setUp(self):
        self.analyzer = SentimentAnalyzer()

    def test_playful(self):
        result = self.analyzer.analyze_rule_based("haha that's so funny lol")

        self.assertEqual(result.mood, Mood.PLAYFUL)
        self.assertEqual(result.confidence, 1.0)
        self.assertEqual(result.energy, "neutral")

    def test_negative_input_calls_for_focus(self):
        result = self.analyzer.analyze_rule_based("I'm so frustrated with this")

        self.assertEqual(result.mood, Mood.FOCUSED)
        self.assertAlmostEqual(result.confidence, 1 / 3)

    def test_tired_lowers_energy(self):
        result = self.analyzer.analyze_rule_based("I'm exhausted and tired...")

        self.assertEqual(result.mood, Mood.TIRED)
        self.assertEqual(result.energy, "down")

    def test_excitement_raises_energy(self):
        result = self.analyzer.analyze_rule_based("This is amazing!!! I love it!")

        self.assertEqual(result.mood, Mood.EXCITED)
        self.assertEqual(result.energy, "up")

    def test_neutral(self):
        result = self.analyzer.analyze_rule_based("The meeting is at noon")

        self.assertEqual(result.mood, Mood.NEUTRAL)
        self.assertEqual(result.energy, "neutral")
        self.assertEqual(result.confidence, 0.0)


class TestLLMSentiment(unittest.IsolatedAsyncioTestCase):

    async def test_without_provider_uses_rules(self):
        result = await SentimentAnalyzer().analyze("haha lol")
        self.assertEqual(result.mood, Mood.PLAYFUL)

    async def test_parses_model_reply(self):
        provider = ScriptedProvider('Sure! {"mood": "warm", "energy": "up", "confidence": 0.9}')

        result = await SentimentAnalyzer(provider).analyze("thanks so much")

        self.assertEqual((result.mood, result.energy, result.confidence), (Mood.WARM, "up", 0.9))
        self.assertEqual(provider.options[0].mode, BehavioralMode.REACT)
        self.assertEqual(provider.options[0].max_tokens, 60)

    async def test_sanitizes_model_reply(self):
        provider = ScriptedProvider('{"mood": "grumpy", "energy": "sideways", "confidence": 7}')

        result = await SentimentAnalyzer(provider).analyze("whatever")

        self.assertEqual((result.mood, result.energy, result.confidence), (Mood.NEUTRAL, "neutral", 1.0))

    async def test_missing_confidence_defaults(self):
        provider = ScriptedProvider('{"mood": "curious", "energy": "neutral"}')
        result = await SentimentAnalyzer(provider).analyze("hmm")
        self.assertEqual(result.confidence, 0.5)

    async def test_unusable_reply_falls_back_to_rules(self):
        analyzer = SentimentAnalyzer()
        analyzer.set_provider(ScriptedProvider("I think they are happy"))

        result = await analyzer.analyze("haha lol")

        self.assertEqual(result.mood, Mood.PLAYFUL)

    async def test_provider_error_falls_back_to_rules(self):
        provider = ScriptedProvider(error=ProviderError("connection refused"))

        result = await SentimentAnalyzer(provider).analyze("I'm exhausted")

        self.assertEqual(result.mood, Mood.TIRED)


if __name__ == '__main__':
    unittest.main()
