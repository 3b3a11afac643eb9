"""
Tests for the command-line interface (commands that don't need a model).
"""
import contextlib
import io
import json
import os
import shutil
import tempfile
import unittest
from unittest import mock

from nexi.cli import _handle_command, main
from nexi.state import BehavioralMode


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.data_dir = tempfile.mkdtemp()
        env = {"NEXI_DATA_DIR": self.data_dir, "NEXI_EMBEDDINGS": "none"}
        self.patches = [
            mock.patch.dict(os.environ, env),
            mock.patch("nexi.cli.setup_logging"),
            mock.patch("nexi.config.load_dotenv"),
        ]
        for patch in self.patches:
            patch.start()

    def tearDown(self):
        for patch in reversed(self.patches):
            patch.stop()
        shutil.rmtree(self.data_dir, ignore_errors=True)

    def run_cli(self, *args):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            main(list(args))
        return out.getvalue()

    def test_no_command_prints_help(self):
        self.assertIn("usage:", self.run_cli())

    def test_remember_then_stats(self):
        self.assertIn("Remembered", self.run_cli("remember", "Buy oat milk", "--importance", "9"))

        stats = json.loads(self.run_cli("stats", "--format", "json"))

        self.assertEqual(stats["total"], 1)
        self.assertEqual(stats["average_importance"], 9)
        self.assertEqual(stats["state"]["mode"], "chat")

    def test_search(self):
        self.run_cli("remember", "Dentist appointment on Friday")

        output = self.run_cli("search", "dentist")

        self.assertIn("[request] Dentist appointment on Friday", output)

    def test_dedup_dry_run(self):
        self.run_cli("remember", "Prefers tea over coffee")
        self.run_cli("remember", "prefers tea over coffee")

        self.assertIn("Duplicate pairs: 1", self.run_cli("dedup", "--dry-run"))
        self.assertIn("Duplicates removed: 1", self.run_cli("dedup"))

    def test_decay(self):
        self.assertIn("Memories deleted: 0", self.run_cli("decay"))


class RecordingNexi:
    """Stands in for Nexi inside the interactive command handler."""

    def __init__(self):
        self.modes = []
        self.messages = []

    def set_mode(self, mode):
        self.modes.append(mode)

    async def chat(self, user_input, **kwargs):
        self.messages.append(user_input)
        return "ok"


class TestChatCommands(unittest.IsolatedAsyncioTestCase):

    async def handle(self, nexi, command):
        with contextlib.redirect_stdout(io.StringIO()):
            return await _handle_command(nexi, command)

    async def test_bare_mode_aliases_switch_mode(self):
        nexi = RecordingNexi()

        for command in ("/quick", "/normal", "/deep", "/think"):
            self.assertTrue(await self.handle(nexi, command))

        self.assertEqual(nexi.modes, [BehavioralMode.REACT, BehavioralMode.CHAT,
                                      BehavioralMode.THINK, BehavioralMode.THINK])
        self.assertEqual(nexi.messages, [])

    async def test_mode_alias_with_message_is_a_one_off_turn(self):
        nexi = RecordingNexi()

        await self.handle(nexi, "/deep why is the sky blue")

        self.assertEqual(nexi.messages, ["/deep why is the sky blue"])
        self.assertEqual(nexi.modes, [])

    async def test_quit(self):
        self.assertFalse(await self.handle(RecordingNexi(), "/quit"))


if __name__ == '__main__':
    unittest.main()
