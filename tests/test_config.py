import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from formfilter.core import config as config_module
from formfilter.core.config import Config


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp_dir.cleanup)

    def test_defaults(self):
        config = Config()

        self.assertEqual(config.default_message("required"), "This field is required.")
        self.assertEqual(config.binding_option("highlight_class"), "is-invalid")
        self.assertEqual(config.get("engine"), "memory")
        self.assertEqual(config.get("missing.key", "fallback"), "fallback")

    def test_instances_do_not_share_nested_defaults(self):
        first = Config()
        first.set("messages.required", "Changed")

        self.assertEqual(Config().default_message("required"), "This field is required.")
        self.assertEqual(Config.DEFAULT_CONFIG["messages"]["required"], "This field is required.")

    def test_file_config_is_merged(self):
        path = Path(self.tmp_dir.name) / "custom.toml"
        path.write_text('strict_bounds = true\n[binding]\nerror_element = "span"\n', encoding="utf-8")

        config = Config(config_path=path)

        self.assertTrue(config.get("strict_bounds"))
        self.assertEqual(config.binding_option("error_element"), "span")
        self.assertEqual(config.binding_option("error_class"), "invalid-feedback small fw-normal fs-6")

    def test_unreadable_file_is_skipped(self):
        path = Path(self.tmp_dir.name) / "broken.toml"
        path.write_text("strict_bounds = ", encoding="utf-8")

        with self.assertLogs("formfilter.core.config", level="WARNING"):
            config = Config(config_path=path)

        self.assertFalse(config.get("strict_bounds"))

    def test_environment_overrides(self):
        env = {
            "FORMFILTER_STRICT_BOUNDS": "yes",
            "FORMFILTER_HIGHLIGHT_CLASS": "has-error",
        }
        path = Path(self.tmp_dir.name) / "empty.toml"
        path.write_text("", encoding="utf-8")

        with patch.dict(os.environ, env):
            config = Config(config_path=path)

        self.assertTrue(config.get("strict_bounds"))
        self.assertEqual(config.binding_option("highlight_class"), "has-error")

    def test_save_user_config_writes_changed_values(self):
        user_path = Path(self.tmp_dir.name) / "formfilter" / "config.toml"
        empty = Path(self.tmp_dir.name) / "empty.toml"
        empty.write_text("", encoding="utf-8")

        with patch.object(config_module, "USER_CONFIG_PATH", user_path):
            config = Config(config_path=empty)
            config.set("engine", "other")
            config.save_user_config()
            reloaded = Config(config_path=user_path)

        self.assertEqual(reloaded.get("engine"), "other")
        self.assertNotIn("verbose", user_path.read_text(encoding="utf-8"))


if __name__ == '__main__':
    unittest.main()
