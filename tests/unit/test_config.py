"""Unit tests for configuration management."""

import pytest
import os
from unittest.mock import patch


class TestSettings:
    """Tests for Settings configuration."""

    def test_default_values(self):
        """Test that default values are set correctly."""
        from app.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.freepik_api_key is None
            assert settings.freepik_api_base == "https://api.freepik.com"
            assert settings.catbox_api_url == "https://catbox.moe/user/api.php"
            assert settings.max_upload_size_mb == 200
            assert settings.request_timeout is None
            assert settings.poll_interval == 5.0
            assert settings.max_poll_errors == 10
            assert settings.max_history == 50
            assert settings.log_level == "INFO"
            assert settings.server_port == 7860
            assert settings.enable_rate_limiting is True
            assert settings.run_integration_tests is False

    def test_custom_values(self):
        """Test that custom values can be set via environment variables."""
        from app.config import Settings

        env_vars = {
            "FREEPIK_API_KEY": "fpk_server",
            "FREEPIK_API_BASE": "https://freepik.example.com",
            "MAX_UPLOAD_SIZE_MB": "50",
            "REQUEST_TIMEOUT": "30",
            "POLL_INTERVAL": "2.5",
            "MAX_POLL_ERRORS": "3",
            "PROXY_BASE_URL": "http://proxy:7860/api",
            "LOG_LEVEL": "DEBUG",
            "RUN_INTEGRATION_TESTS": "true",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

            assert settings.freepik_api_key == "fpk_server"
            assert settings.freepik_api_base == "https://freepik.example.com"
            assert settings.max_upload_size_mb == 50
            assert settings.request_timeout == 30.0
            assert settings.poll_interval == 2.5
            assert settings.max_poll_errors == 3
            assert settings.proxy_base_url == "http://proxy:7860/api"
            assert settings.log_level == "DEBUG"
            assert settings.run_integration_tests is True

    def test_case_insensitive(self):
        from app.config import Settings

        with patch.dict(os.environ, {"freepik_api_key": "lower"}, clear=True):
            assert Settings(_env_file=None).freepik_api_key == "lower"

    def test_max_upload_bytes(self):
        from app.config import Settings

        with patch.dict(os.environ, {"MAX_UPLOAD_SIZE_MB": "2"}, clear=True):
            assert Settings(_env_file=None).max_upload_bytes == 2 * 1024 * 1024

    @pytest.mark.parametrize("key,expected", [
        (None, False),
        ("   ", False),
        ("fpk_key", True),
    ])
    def test_has_server_key(self, key, expected):
        from app.config import Settings

        env = {"FREEPIK_API_KEY": key} if key is not None else {}
        with patch.dict(os.environ, env, clear=True):
            assert Settings(_env_file=None).has_server_key() is expected

    def test_validate_settings_success(self):
        from app.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            Settings(_env_file=None).validate_settings()  # Should not raise

    @pytest.mark.parametrize("env,message", [
        ({"MAX_UPLOAD_SIZE_MB": "0"}, "MAX_UPLOAD_SIZE_MB"),
        ({"POLL_INTERVAL": "0"}, "POLL_INTERVAL"),
        ({"MAX_POLL_ERRORS": "0"}, "MAX_POLL_ERRORS"),
        ({"REQUEST_TIMEOUT": "-1"}, "REQUEST_TIMEOUT"),
    ])
    def test_validate_settings_failures(self, env, message):
        """Test that out-of-range values are reported by name."""
        from app.config import Settings

        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

            with pytest.raises(ValueError, match=message):
                settings.validate_settings()
