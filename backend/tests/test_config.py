"""Tests for bulkreplace/config.py: Settings validation."""
from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from bulkreplace.config import Settings


class TestDefaults:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        assert settings.table_prefix == "mdl_"
        assert settings.context_window == 1000
        assert settings.preview_window == 50
        assert settings.default_dry_run is True
        assert settings.include_optional_tables is True

    def test_env_overrides(self):
        env = {"TABLE_PREFIX": "lms_", "CONTEXT_WINDOW": "200", "DEFAULT_DRY_RUN": "false"}
        with patch.dict(os.environ, env, clear=False):
            settings = Settings(_env_file=None)
        assert settings.table_prefix == "lms_"
        assert settings.context_window == 200
        assert settings.default_dry_run is False

    def test_site_url_trailing_slash_stripped(self):
        assert Settings(_env_file=None, site_url="https://lms.example/").site_url == "https://lms.example"


class TestWindowValidation:
    def test_zero_context_window_rejected(self):
        with pytest.raises(ValueError, match="CONTEXT_WINDOW"):
            Settings(_env_file=None, context_window=0)

    def test_negative_preview_window_rejected(self):
        with pytest.raises(ValueError, match="PREVIEW_WINDOW"):
            Settings(_env_file=None, preview_window=-1)
