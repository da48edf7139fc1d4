"""
Unit tests for configuration loading.

Tests cover:
- pydantic-settings defaults and environment overrides
- Parameter Store lookups with environment fallback
- Required keys and caching
"""

import os
from unittest.mock import Mock, patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from app.config import (
    LAMBDA_MAX_RESPONSE_BYTES,
    AdapterSettings,
    Config,
    ConfigError,
    SiteSettings,
)


def parameter_not_found():
    return ClientError({"Error": {"Code": "ParameterNotFound", "Message": "not found"}}, "GetParameter")


class TestSettings:
    """Tests for AdapterSettings and SiteSettings."""

    def test_adapter_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = AdapterSettings(_env_file=None)

        assert settings.max_response_bytes == LAMBDA_MAX_RESPONSE_BYTES
        assert settings.response_streaming is False
        assert settings.base64_binary is True
        assert "text/" in settings.text_mime_types

    def test_adapter_env_overrides(self):
        with patch.dict(os.environ, {
            "ADAPTER_MAX_RESPONSE_BYTES": "1024",
            "ADAPTER_RESPONSE_STREAMING": "true",
            "ADAPTER_CANCEL_MARGIN_MS": "50",
        }):
            settings = AdapterSettings(_env_file=None)

        assert settings.max_response_bytes == 1024
        assert settings.response_streaming is True
        assert settings.cancel_margin_ms == 50

    def test_site_output_name_from_env(self):
        with patch.dict(os.environ, {"SITE_OUTPUT_NAME": "blog", "SITE_ROOT": "build/site"}):
            settings = SiteSettings(_env_file=None)

        assert settings.output_name == "blog"
        assert settings.root == "build/site"
        assert settings.pkg_dir == "pkg"


class TestConfig:
    """Tests for the Parameter Store backed Config."""

    def test_local_mode_reads_environment(self):
        with patch.dict(os.environ, {"ANALYTICS_ID": "UA-1"}):
            config = Config(use_local=True)
            assert config.get("ANALYTICS_ID") == "UA-1"
        assert config.ssm_client is None

    def test_default_and_required(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config(use_local=True)
            assert config.get("MISSING", default="fallback") == "fallback"
            with pytest.raises(ConfigError, match="MISSING"):
                config.get("MISSING", required=True)

    def test_default_is_not_cached(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config(use_local=True)
            assert config.get("LATE_KEY", default="fallback") == "fallback"

            os.environ["LATE_KEY"] = "from-env"
            assert config.get("LATE_KEY") == "from-env"
            assert "LATE_KEY" in config._cache

    def test_auto_detects_lambda(self):
        with patch.dict(os.environ, {"AWS_LAMBDA_FUNCTION_NAME": "site"}), \
                patch("app.config.boto3.client") as mock_client:
            config = Config(parameter_prefix="/site-lambda/")

        assert config.use_local is False
        assert config.parameter_prefix == "/site-lambda"
        mock_client.assert_called_once_with("ssm")

    def test_parameter_store_lookup(self):
        with patch("app.config.boto3.client") as mock_client:
            ssm = Mock()
            ssm.get_parameter.return_value = {"Parameter": {"Value": "from-ssm"}}
            mock_client.return_value = ssm

            config = Config(parameter_prefix="/site-lambda", use_local=False)
            assert config.get("CONTACT_EMAIL") == "from-ssm"
            assert config.get("CONTACT_EMAIL") == "from-ssm"

        ssm.get_parameter.assert_called_once_with(Name="/site-lambda/CONTACT_EMAIL", WithDecryption=True)

    def test_parameter_not_found_falls_back_to_env(self):
        with patch("app.config.boto3.client") as mock_client, \
                patch.dict(os.environ, {"CONTACT_EMAIL": "env@example.com"}):
            ssm = Mock()
            ssm.get_parameter.side_effect = parameter_not_found()
            mock_client.return_value = ssm

            config = Config(use_local=False)
            assert config.get("CONTACT_EMAIL") == "env@example.com"

    def test_site_metadata(self):
        with patch.dict(os.environ, {"ANALYTICS_ID": "UA-1"}, clear=True):
            metadata = Config(use_local=True).get_site_metadata()

        assert metadata == {"ANALYTICS_ID": "UA-1", "CONTACT_EMAIL": None}

    def test_clear_cache(self):
        config = Config(use_local=True)
        with patch.dict(os.environ, {"KEY": "one"}):
            assert config.get("KEY") == "one"
        with patch.dict(os.environ, {"KEY": "two"}):
            assert config.get("KEY") == "one"
            config.clear_cache()
            assert config.get("KEY") == "two"


@pytest.fixture
def ssm(monkeypatch):
    """Parameter Store mocked with moto."""
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    with mock_aws():
        yield boto3.client("ssm", region_name="us-east-1")


class TestConfigWithParameterStore:
    """Config against a moto-backed Parameter Store."""

    def test_reads_parameter(self, ssm):
        ssm.put_parameter(Name="/site-lambda/ANALYTICS_ID", Value="UA-9", Type="String")

        config = Config(parameter_prefix="/site-lambda", use_local=False)

        assert config.get("ANALYTICS_ID") == "UA-9"

    def test_missing_parameter_uses_env(self, ssm, monkeypatch):
        monkeypatch.setenv("CONTACT_EMAIL", "env@example.com")

        config = Config(parameter_prefix="/site-lambda", use_local=False)

        assert config.get("CONTACT_EMAIL") == "env@example.com"
