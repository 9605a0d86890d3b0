"""Tests for configuration loading."""

import logging
import os
import shutil
import tempfile
import unittest

from d3k.config import Config, _parse_bool, load_config, load_yaml_config, logging_level


class TestParseBool(unittest.TestCase):
    def test_truthy(self):
        for value in ("true", "1", "yes", " TRUE "):
            self.assertTrue(_parse_bool(value))

    def test_falsy(self):
        for value in ("false", "0", "no", ""):
            self.assertFalse(_parse_bool(value))


class TestLoadConfig(unittest.TestCase):
    def setUp(self):
        self.home = tempfile.mkdtemp()
        self.env = {"D3K_HOME": self.home}

    def tearDown(self):
        shutil.rmtree(self.home)

    def test_defaults(self):
        config = load_config(self.env)
        self.assertEqual(config.home_dir, self.home)
        self.assertEqual(config.timestamp_format, "utc")
        self.assertEqual(config.max_log_size_bytes, 0)
        self.assertEqual(config.port, 3684)
        self.assertTrue(config.color)
        self.assertTrue(config.pointer_path.endswith("d3k.log"))
        self.assertIsNone(config.log_file_path)

    def test_env_overrides(self):
        self.env.update({
            "D3K_TIMESTAMP_FORMAT": "LOCAL",
            "D3K_LOG_LEVEL": "debug",
            "D3K_PORT": "4000",
            "LOG_FILE_PATH": "/tmp/x-d3k.log",
            "NO_COLOR": "1",
            "D3K_FRAMEWORK": "nextjs",
        })
        config = load_config(self.env)
        self.assertEqual(config.timestamp_format, "local")
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.port, 4000)
        self.assertEqual(config.log_file_path, "/tmp/x-d3k.log")
        self.assertFalse(config.color)
        self.assertEqual(config.framework, "nextjs")

    def test_size_in_mb_and_bytes(self):
        self.env["D3K_MAX_LOG_SIZE_MB"] = "1.5"
        self.assertEqual(load_config(self.env).max_log_size_bytes, int(1.5 * 1024 * 1024))
        self.env["D3K_MAX_LOG_SIZE_BYTES"] = "2048"
        self.assertEqual(load_config(self.env).max_log_size_bytes, 2048)

    def test_yaml_overlay(self):
        with open(os.path.join(self.home, "config.yml"), "w") as f:
            f.write("keep_archives: 3\nheartbeat_seconds: 5\nbogus_key: 1\n")
        config = load_config(self.env)
        self.assertEqual(config.keep_archives, 3)
        self.assertEqual(config.heartbeat_seconds, 5)

    def test_explicit_config_path(self):
        path = os.path.join(self.home, "custom.yml")
        with open(path, "w") as f:
            f.write("port: 5555\n")
        self.assertEqual(load_config(self.env, config_path=path).port, 5555)

    def test_invalid_timestamp_format(self):
        self.env["D3K_TIMESTAMP_FORMAT"] = "epoch"
        with self.assertRaises(ValueError) as ctx:
            load_config(self.env)
        self.assertIn("Invalid timestamp format", str(ctx.exception))

    def test_invalid_log_level(self):
        self.env["D3K_LOG_LEVEL"] = "LOUD"
        with self.assertRaises(ValueError):
            load_config(self.env)

    def test_warn_maps_to_warning(self):
        self.env["D3K_LOG_LEVEL"] = "warn"
        self.assertEqual(logging_level(load_config(self.env)), logging.WARNING)


class TestLoadYamlConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_missing_file(self):
        self.assertEqual(load_yaml_config(os.path.join(self.tmpdir, "nope.yml")), {})
        self.assertEqual(load_yaml_config(None), {})

    def test_invalid_yaml(self):
        path = os.path.join(self.tmpdir, "bad.yml")
        with open(path, "w") as f:
            f.write("key: [unclosed\n")
        self.assertEqual(load_yaml_config(path), {})

    def test_not_a_mapping(self):
        path = os.path.join(self.tmpdir, "list.yml")
        with open(path, "w") as f:
            f.write("- a\n- b\n")
        self.assertEqual(load_yaml_config(path), {})


class TestConfigDefaults(unittest.TestCase):
    def test_home_filled_in(self):
        self.assertTrue(Config().home_dir.endswith(".d3k"))


if __name__ == "__main__":
    unittest.main()
