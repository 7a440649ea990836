"""
LanCards Test Suite — CLI
==========================
Commands run end to end against a temporary destinations file with the
offline provider as the whole chain.

Usage:
    python -m pytest tests/test_cli.py -v
"""
import sys
import os
import io
import json
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lancards.cli import main, print_card
from lancards.models import CardType, CulturalCard


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "destinations.json")

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _run(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            main(["--data", self.path, "--chain", "offline", *argv])
        return out.getvalue()

    def _cards(self, name):
        with open(self.path, encoding="utf-8") as f:
            return [d for d in json.load(f) if d["name"] == name][0]["culturalCards"]

    def test_destinations(self):
        output = self._run("destinations")
        self.assertIn("Destinations (2)", output)
        self.assertIn("Japan: 2 cards", output)

    def test_ask_saves_to_known_destination(self):
        output = self._run("ask", "japan", "How should I bow?")
        self.assertIn("Business Greeting Etiquette", output)
        self.assertIn("Respect / 尊敬", output)
        self.assertIn("🔊 尊敬 [ja-JP]", output)
        self.assertIn("✔ Generated by offline", output)
        self.assertIn("✔ Saved to Japan", output)
        self.assertEqual(len(self._cards("Japan")), 3)

    def test_ask_no_save(self):
        self._run("ask", "Japan", "Dinner tips?", "--no-save")
        self.assertEqual(len(self._cards("Japan")), 2)

    def test_ask_empty_question_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self._run("ask", "Japan", "   ")
        self.assertEqual(ctx.exception.code, 1)

    def test_validate_and_migrate(self):
        self.assertIn("✔ No problems found", self._run("validate"))
        self.assertIn("2 destinations, 4 cards", self._run("migrate"))

    def test_corrupt_file_exits(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("[{")
        with self.assertRaises(SystemExit):
            self._run("destinations")

    def test_manual_card_shows_type_description(self):
        out = io.StringIO()
        with redirect_stdout(out):
            print_card(CulturalCard.manual(CardType.DINING_CULTURE, "Tipping", "Round up the bill."))
        self.assertIn("[Dining Culture]", out.getvalue())
        self.assertIn("Table manners, tipping, dining customs", out.getvalue())
        self.assertIn("Round up the bill.", out.getvalue())
        self.assertNotIn("🔊", out.getvalue())

    def test_providers(self):
        output = self._run("providers")
        self.assertIn("• offline", output)
        self.assertIn("Chain: offline", output)


if __name__ == "__main__":
    unittest.main(verbosity=2)
