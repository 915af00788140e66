import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from tunescout.core.relay_router import RelayRouter
from tunescout.core.settings_manager import SettingsManager


class TestSettingsManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        env = patch.dict(os.environ, {"TUNESCOUT_DATA_DIR": self._tmp.name})
        env.start()
        self.addCleanup(env.stop)
        self.settings_file = Path(self._tmp.name) / "settings.json"

    def test_defaults_without_file(self):
        settings = SettingsManager()
        self.assertEqual(settings.settings_dir, Path(self._tmp.name))
        self.assertEqual(settings.get("search_max_tracks"), 50)
        self.assertEqual(settings.get("suggest_min_chars"), 2)
        self.assertEqual(
            [r["name"] for r in settings.get("relay_endpoints")],
            ["allorigins", "corsproxy", "codetabs"],
        )
        self.assertFalse(self.settings_file.exists())

    def test_set_persists_to_disk(self):
        settings = SettingsManager()
        settings.set("search_max_tracks", 7)
        with open(self.settings_file) as f:
            self.assertEqual(json.load(f)["search_max_tracks"], 7)
        self.assertEqual(SettingsManager().get("search_max_tracks"), 7)

    def test_user_relays_stay_in_front_of_required_ones(self):
        self.settings_file.write_text(json.dumps({
            "relay_endpoints": [
                {"name": "mine", "template": "https://mine.test/?u={url}"},
                {"name": "dup", "template": "https://corsproxy.io/?{url}"},
            ],
        }))
        settings = SettingsManager()
        templates = [r["template"] for r in settings.get("relay_endpoints")]
        self.assertEqual(templates[0], "https://mine.test/?u={url}")
        self.assertEqual(len(templates), 4)
        self.assertEqual(len(set(templates)), 4)

        router = RelayRouter(settings=settings)
        self.assertEqual(router.relays[0].name, "mine")

    def test_invalid_values_are_repaired(self):
        self.settings_file.write_text(json.dumps({"relay_timeout_seconds": -1, "suggest_min_chars": 0}))
        settings = SettingsManager()
        self.assertEqual(settings.get("relay_timeout_seconds"), 10.0)
        self.assertEqual(settings.get("suggest_min_chars"), 2)

    def test_corrupt_file_falls_back_to_defaults(self):
        self.settings_file.write_text("{ not json")
        settings = SettingsManager()
        self.assertEqual(settings.get("service_default_limit"), 10)

    def test_update_and_reset(self):
        settings = SettingsManager()
        settings.update({"search_cache_size": 5, "relay_user_agent": "tunescout-test"})
        self.assertEqual(settings.get_all()["search_cache_size"], 5)
        settings.reset()
        self.assertEqual(settings.get("search_cache_size"), 100)
        self.assertNotEqual(settings.get("relay_user_agent"), "tunescout-test")

    def test_unusable_numbers_in_file_fall_back_to_defaults(self):
        self.settings_file.write_text(json.dumps({
            "search_max_tracks": "lots",
            "relay_timeout_seconds": "slow",
            "search_cache_size": "12",
        }))
        settings = SettingsManager()
        self.assertEqual(settings.get("search_max_tracks"), 50)
        self.assertEqual(settings.get("relay_timeout_seconds"), 10.0)
        self.assertEqual(settings.get("search_cache_size"), 12)
        with open(self.settings_file) as f:
            self.assertEqual(json.load(f)["search_max_tracks"], 50)

        router = RelayRouter(settings=settings)
        self.assertEqual(router.timeout_seconds, 10.0)

    def test_validate_reports_unusable_values(self):
        settings = SettingsManager()
        errors = settings.validate({
            "search_max_tracks": "lots",
            "relay_timeout_seconds": 0,
            "service_default_limit": 500,
            "suggest_min_chars": True,
            "relay_endpoints": "https://one.test/?",
            "search_cache_size": "20",
            "relay_user_agent": "anything",
        })
        self.assertEqual(
            sorted(errors),
            ["relay_endpoints", "relay_timeout_seconds", "search_max_tracks", "service_default_limit", "suggest_min_chars"],
        )
        self.assertEqual(settings.validate({"search_max_tracks": 0, "relay_timeout_seconds": "2.5"}), {})

    def test_set_keeps_numbers_usable(self):
        settings = SettingsManager()
        settings.set("search_max_tracks", "7")
        self.assertEqual(settings.get("search_max_tracks"), 7)
        settings.set("suggest_min_chars", "none")
        self.assertEqual(settings.get("suggest_min_chars"), 2)

    def test_get_all_is_a_copy(self):
        settings = SettingsManager()
        snapshot = settings.get_all()
        snapshot["search_max_tracks"] = 1
        self.assertEqual(settings.get("search_max_tracks"), 50)


if __name__ == "__main__":
    unittest.main()
