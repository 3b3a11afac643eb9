"""
Tests for prompt construction and conversation history.
"""
import unittest
from datetime import datetime, timedelta

from nexi.llm.prompt_manager import PromptManager
from nexi.llm.prompts import (
    CORE_IDENTITY,
    build_memory_extraction_prompt,
    build_system_prompt,
    format_memory,
    format_time_since,
)
from nexi.memory.models import MemoryType
from nexi.memory.records import MemoryRecord
from nexi.personality import get_preset
from nexi.state import BehavioralMode, Energy, Mood, NexiState


def memory(content, memory_type=MemoryType.FACT, context=None):
    now = datetime.now()
    return MemoryRecord(id="m1", type=memory_type, content=content, importance=5,
                        emotional_weight=0, created_at=now, last_accessed=now, context=context)


class TestSystemPrompt(unittest.TestCase):

    def test_fresh_session(self):
        state = NexiState(mood=Mood.CURIOUS, energy=Energy.HIGH, mode=BehavioralMode.REACT)

        prompt = build_system_prompt(state, [])

        self.assertTrue(prompt.startswith(CORE_IDENTITY))
        self.assertIn("## Current Mode: REACT", prompt)
        self.assertIn("- Mood: curious", prompt)
        self.assertIn("- Energy: high", prompt)
        self.assertIn("- This is a fresh session", prompt)
        self.assertNotIn("## Relevant Memories", prompt)

    def test_memories_and_context(self):
        state = NexiState(last_interaction=datetime.now() - timedelta(minutes=5), interaction_count=3)
        memories = [
            memory("Loves hiking", MemoryType.PREFERENCE),
            memory("Call mom", MemoryType.REQUEST, context="asked on Monday"),
        ]

        prompt = build_system_prompt(state, memories, additional_context="It is raining.")

        self.assertIn("- Interactions this session: 3", prompt)
        self.assertIn("- Last interaction: 5 minutes ago", prompt)
        self.assertIn("- [💭 Preference] Loves hiking", prompt)
        self.assertIn("- [📝 Remembered] Call mom (Context: asked on Monday)", prompt)
        self.assertIn("## Additional Context\nIt is raining.", prompt)

    def test_personality_notes_are_appended(self):
        prompt = build_system_prompt(NexiState(), [], personality=get_preset("professional"))
        self.assertTrue(prompt.endswith("providing accurate information efficiently."))
        self.assertIn("## Personality Notes", prompt)

    def test_format_memory(self):
        self.assertEqual(format_memory(memory("First chat", MemoryType.MILESTONE)), "- [⭐ Milestone] First chat")

    def test_format_time_since(self):
        now = datetime(2024, 5, 1, 12, 0, 0)
        self.assertEqual(format_time_since(now - timedelta(seconds=20), now), "just now")
        self.assertEqual(format_time_since(now - timedelta(minutes=1), now), "1 minute ago")
        self.assertEqual(format_time_since(now - timedelta(minutes=59), now), "59 minutes ago")
        self.assertEqual(format_time_since(now - timedelta(hours=1), now), "1 hour ago")
        self.assertEqual(format_time_since(now - timedelta(hours=23, minutes=59), now), "23 hours ago")
        self.assertEqual(format_time_since(now - timedelta(days=3, hours=2), now), "3 days ago")

    def test_extraction_prompt(self):
        prompt = build_memory_extraction_prompt("User: I adopted a dog\n\nNexi: Congrats!")

        self.assertIn('"memories": []', prompt)
        self.assertTrue(prompt.endswith("Conversation:\nUser: I adopted a dog\n\nNexi: Congrats!"))


class TestPromptManager(unittest.TestCase):
    """Test cases for conversation history."""

    def test_conversation_text(self):
        manager = PromptManager()
        manager.add_user_message("Hi there").add_assistant_message("Hey!", mode=BehavioralMode.REACT)

        self.assertEqual(manager.get_conversation_text(), "User: Hi there\n\nNexi: Hey!")
        self.assertEqual(manager.messages[1].mode, BehavioralMode.REACT)
        self.assertEqual(len(manager), 2)

    def test_build_prompt(self):
        manager = PromptManager()
        manager.add_user_message("What's up?")

        prompt = manager.build_prompt("SYSTEM")

        self.assertEqual(prompt, "SYSTEM\n\n---\n\nConversation:\nUser: What's up?\n\nNexi:")

    def test_history_is_trimmed(self):
        manager = PromptManager(max_history=3)
        for i in range(5):
            manager.add_user_message(f"message {i}")

        self.assertEqual([m.content for m in manager.messages], ["message 2", "message 3", "message 4"])

    def test_recent(self):
        manager = PromptManager()
        for i in range(4):
            manager.add_user_message(f"message {i}")

        self.assertEqual(manager.get_conversation_text(2), "User: message 2\n\nUser: message 3")
        self.assertEqual(manager.recent(0), [])
        self.assertEqual(len(manager.recent()), 4)

    def test_invalid_role(self):
        with self.assertRaises(ValueError):
            PromptManager().add_message("system", "You are a pirate")

    def test_clear_history(self):
        manager = PromptManager().add_user_message("Hello")
        manager.clear_history()
        self.assertFalse(manager)


if __name__ == '__main__':
    unittest.main()
