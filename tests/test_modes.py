"""
Tests for behavioral mode detection.
"""
import unittest

from nexi.modes import MODE_CONFIGS, detect_mode, get_mode_config, get_mode_name, parse_mode_command
from nexi.state import BehavioralMode


class TestModes(unittest.TestCase):

    def test_every_mode_has_a_config(self):
        self.assertEqual(set(MODE_CONFIGS), set(BehavioralMode))
        self.assertEqual(get_mode_config(BehavioralMode.THINK).max_tokens, 1500)
        self.assertEqual(get_mode_name("react"), "React Mode")

    def test_slash_commands(self):
        self.assertEqual(detect_mode("/think about life", BehavioralMode.CHAT), BehavioralMode.THINK)
        self.assertEqual(detect_mode("/quick hi", BehavioralMode.THINK), BehavioralMode.REACT)
        self.assertEqual(detect_mode("/NORMAL please", BehavioralMode.REACT), BehavioralMode.CHAT)

    def test_short_statement_in_chat_becomes_react(self):
        self.assertEqual(detect_mode("haha nice", BehavioralMode.CHAT), BehavioralMode.REACT)
        self.assertEqual(detect_mode("you ok?", BehavioralMode.CHAT), BehavioralMode.CHAT)
        self.assertEqual(detect_mode("haha nice", BehavioralMode.THINK), BehavioralMode.THINK)

    def test_think_indicators(self):
        text = "Can you explain how compilers turn code into machine instructions?"
        self.assertEqual(detect_mode(text, BehavioralMode.CHAT), BehavioralMode.THINK)
        self.assertEqual(detect_mode("What if we moved to the coast next year?", BehavioralMode.REACT),
                         BehavioralMode.THINK)

    def test_keeps_current_mode(self):
        text = "I went to the market this morning and bought apples."
        self.assertEqual(detect_mode(text, BehavioralMode.CHAT), BehavioralMode.CHAT)
        self.assertEqual(detect_mode(text, BehavioralMode.REACT), BehavioralMode.REACT)

    def test_parse_mode_command(self):
        self.assertEqual(parse_mode_command("/deep why is the sky blue"),
                         (BehavioralMode.THINK, "why is the sky blue"))
        self.assertEqual(parse_mode_command("/react"), (BehavioralMode.REACT, ""))
        self.assertEqual(parse_mode_command("no command here"), (None, "no command here"))


if __name__ == '__main__':
    unittest.main()
