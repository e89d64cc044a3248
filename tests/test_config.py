"""
Tests for process settings
"""

import os

import pytest
from pydantic import ValidationError

from config import Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    """Drop any IMAGIFY_* variables inherited from the shell"""
    for name in list(os.environ):
        if name.startswith("IMAGIFY_"):
            monkeypatch.delenv(name)
    return monkeypatch


class TestSettings:
    """Test environment-driven settings"""

    def test_defaults(self, clean_env):
        """Test defaults when nothing is set"""
        settings = Settings()

        assert settings.system.log_level == "INFO"
        assert settings.processing.tool_timeout_s == 60.0
        assert settings.processing.max_workers == 1
        assert settings.processing.fail_fast is False
        assert settings.tools.binary_dir is None

    def test_nested_env_variables(self, clean_env):
        """Test IMAGIFY_<SECTION>__<FIELD> variables populate each section"""
        clean_env.setenv("IMAGIFY_SYSTEM__LOG_LEVEL", "debug")
        clean_env.setenv("IMAGIFY_PROCESSING__TOOL_TIMEOUT_S", "2.5")
        clean_env.setenv("IMAGIFY_PROCESSING__MAX_WORKERS", "4")
        clean_env.setenv("IMAGIFY_PROCESSING__FAIL_FAST", "true")
        clean_env.setenv("IMAGIFY_TOOLS__BINARY_DIR", "/opt/bin")
        clean_env.setenv("IMAGIFY_TOOLS__PLATFORM", "linux")
        clean_env.setenv("UNRELATED", "x")

        settings = Settings()

        assert settings.system.log_level == "DEBUG"
        assert settings.processing.tool_timeout_s == 2.5
        assert settings.processing.max_workers == 4
        assert settings.processing.fail_fast is True
        assert settings.tools.binary_dir == "/opt/bin"
        assert settings.tools.platform == "linux"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("IMAGIFY_PROCESSING__MAX_WORKERS", "0"),
            ("IMAGIFY_SYSTEM__LOG_LEVEL", "chatty"),
            ("IMAGIFY_SYSTEM__DEBUG", "maybe"),
            ("IMAGIFY_PROCESSING__TOOL_TIMEOUT_S", "-1"),
        ],
    )
    def test_invalid_values(self, clean_env, name, value):
        """Test bad values are rejected instead of silently defaulted"""
        clean_env.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings()

    def test_to_dict(self, clean_env):
        """Test settings export as nested dicts"""
        data = Settings().to_dict()
        assert set(data) == {"system", "processing", "tools"}

    def test_get_settings_cached(self):
        """Test get_settings returns one instance per process"""
        assert get_settings() is get_settings()
