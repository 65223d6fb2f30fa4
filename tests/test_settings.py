"""Tests for environment settings and logging setup."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import orjson
import pytest
import structlog

from cadbridge.logging_setup import CONFIGS, build_processors, configure_logging_from_settings
from cadbridge.policy import TriangleExplosionThresholds
from cadbridge.settings import Settings, load_settings
from kernel.errors import ValidationError


class TestLoadSettings:
    """Test cases for load_settings."""

    def test_defaults(self):
        """Test defaults with an empty environment."""
        settings = load_settings({})

        assert settings == Settings()
        assert settings.environment == "production"
        assert settings.thresholds == TriangleExplosionThresholds()

    def test_reads_environment(self):
        """Test every supported variable."""
        settings = load_settings(
            {
                "CADBRIDGE_ENV": "Development",
                "CADBRIDGE_LOG_LEVEL": "debug",
                "CADBRIDGE_DEBUG_TRIANGULATION": "1",
                "CADBRIDGE_MAX_TRIANGLES": "1000",
                "CADBRIDGE_MAX_PRIMITIVES": "20",
                "CADBRIDGE_ATTEMPTS": "5",
            }
        )

        assert settings == Settings(
            environment="development",
            log_level="DEBUG",
            debug_triangulation=True,
            max_triangles=1000,
            max_primitives=20,
            attempts=5,
        )
        assert settings.thresholds == TriangleExplosionThresholds(max_triangles=1000, max_primitives=20)

    def test_debug_flag_requires_one(self):
        """Test that only "1" enables triangulation debugging."""
        assert load_settings({"CADBRIDGE_DEBUG_TRIANGULATION": "true"}).debug_triangulation is False

    def test_blank_numbers_use_defaults(self):
        """Test that empty numeric variables fall back to defaults."""
        assert load_settings({"CADBRIDGE_ATTEMPTS": " "}).attempts == 3

    @pytest.mark.parametrize(
        "env",
        [
            {"CADBRIDGE_MAX_TRIANGLES": "many"},
            {"CADBRIDGE_MAX_PRIMITIVES": "1.5"},
            {"CADBRIDGE_ATTEMPTS": "0"},
            {"CADBRIDGE_MAX_TRIANGLES": "-1"},
            {"CADBRIDGE_ENV": "staging"},
        ],
    )
    def test_invalid_values(self, env):
        """Test that invalid values raise ValidationError."""
        with pytest.raises(ValidationError):
            load_settings(env)

    def test_reads_os_environ(self, monkeypatch):
        """Test that os.environ is used by default."""
        monkeypatch.setenv("CADBRIDGE_ATTEMPTS", "7")
        assert load_settings().attempts == 7


class TestLoggingSetup:
    """Test cases for logging configuration helpers."""

    def test_profile_from_settings(self):
        """Test that the environment selects the logging profile."""
        with patch("cadbridge.logging_setup.configure_logging") as configure:
            configure_logging_from_settings(Settings(environment="testing"))

        configure.assert_called_once_with(**CONFIGS["testing"])

    def test_log_level_override(self):
        """Test that an explicit level replaces the profile level."""
        with patch("cadbridge.logging_setup.configure_logging") as configure:
            configure_logging_from_settings(Settings(environment="development", log_level="ERROR"))

        assert configure.call_args.kwargs["level"] == "ERROR"
        assert configure.call_args.kwargs["enable_colors"] is True
        assert CONFIGS["development"]["level"] == "DEBUG"

    def test_json_profile_renders_with_orjson(self):
        """Test that JSON output is one orjson-rendered object per event."""
        processors = build_processors(enable_colors=False, enable_json=True)
        renderer = processors[-1]

        line = renderer(None, "info", {"event": "GLB written", "size": 1024, "path": Path("out.glb")})

        assert orjson.loads(line) == {"event": "GLB written", "size": 1024, "path": "out.glb"}

    def test_console_profile(self):
        """Test that console output ends with the console renderer."""
        processors = build_processors(enable_colors=False, enable_json=False, extra_processors=[log_model])

        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert log_model in processors


def log_model(logger, method_name, event_dict):
    event_dict["model"] = "bracket"
    return event_dict
