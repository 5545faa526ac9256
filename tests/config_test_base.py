"""
Base class for configuration tests with complete isolation.

Isolates every test from MINCORE_* environment variables and from any
.mincore.json in the working directory.
"""

import argparse
import json
import os
import shutil
import tempfile
from pathlib import Path

from mincore.core.config.config import LOCAL_CONFIG_NAME, Config


class ConfigTestBase:
    """
    Base class for config-related tests.

    Usage:
        class TestMyConfig(ConfigTestBase):
            def test_something(self):
                config = self.create_isolated_config(lookup={"volume_cap": 10})
                assert config.lookup.volume_cap == 10
    """

    def setup_method(self):
        self.original_env = os.environ.copy()
        self._clear_mincore_env()

        self.temp_dir = Path(tempfile.mkdtemp())
        self.project_dir = self.temp_dir / "project"
        self.project_dir.mkdir()
        self.config_file = self.temp_dir / "config.json"
        self.local_config = self.project_dir / LOCAL_CONFIG_NAME

    def teardown_method(self):
        os.environ.clear()
        os.environ.update(self.original_env)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _clear_mincore_env(self):
        for key in [k for k in os.environ if k.startswith("MINCORE_")]:
            del os.environ[key]

    def create_isolated_config(self, args=None, **kwargs):
        """Create a config that only sees this test's files and variables."""
        if args is not None:
            return Config.from_cli_args(args, target_dir=self.project_dir)
        return Config(target_dir=self.project_dir, **kwargs)

    def create_mock_args(self, **kwargs):
        """argparse.Namespace with every CLI attribute set."""
        args = argparse.Namespace()

        defaults = {
            "config": None,
            "db": None,
            "lookup_provider": None,
            "url": None,
            "fixture": None,
            "volume_cap": None,
            "pause": None,
            "crawler": None,
            "buffer": None,
            "time_budget": None,
            "no_wait": False,
            "verbose": False,
        }

        for key, value in defaults.items():
            setattr(args, key, kwargs.get(key, value))

        for key, value in kwargs.items():
            setattr(args, key, value)

        return args

    def create_config_file(self, path=None, **config_data):
        if path is None:
            path = self.config_file

        with open(path, "w") as f:
            json.dump(config_data, f, indent=2)

        return path

    def create_local_config(self, **config_data):
        with open(self.local_config, "w") as f:
            json.dump(config_data, f, indent=2)

        return self.local_config

    def set_env_vars(self, **env_vars):
        """Set MINCORE_* variables; use double underscores for nesting."""
        for key, value in env_vars.items():
            os.environ[f"MINCORE_{key.upper()}"] = str(value)
