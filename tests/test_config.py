"""Tests for binder configuration from arguments and environment."""

import logging

import pytest

from restbind import BinderConfig, RequestBinder


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("RESTBIND_TRACER_NAME", "RESTBIND_SPAN_NAME", "RESTBIND_ERROR_STATUS"):
        monkeypatch.delenv(name, raising=False)


class TestBinderConfig:
    """Test precedence: explicit argument, environment, default."""

    def test_defaults(self):
        config = BinderConfig.from_env()
        assert config.tracer_name == "restbind"
        assert config.span_name == "wrap_request"
        assert config.error_status == 400

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("RESTBIND_TRACER_NAME", "shop")
        monkeypatch.setenv("RESTBIND_SPAN_NAME", "bind")
        monkeypatch.setenv("RESTBIND_ERROR_STATUS", "422")

        config = BinderConfig.from_env()
        assert config.tracer_name == "shop"
        assert config.span_name == "bind"
        assert config.error_status == 422

    def test_arguments_win(self, monkeypatch):
        monkeypatch.setenv("RESTBIND_SPAN_NAME", "from-env")
        monkeypatch.setenv("RESTBIND_ERROR_STATUS", "422")

        config = BinderConfig.from_env(span_name="from-arg", error_status=409)
        assert config.span_name == "from-arg"
        assert config.error_status == 409

    def test_invalid_status_in_environment(self, monkeypatch, caplog):
        monkeypatch.setenv("RESTBIND_ERROR_STATUS", "bad")

        with caplog.at_level(logging.WARNING, logger="restbind.config"):
            config = BinderConfig.from_env()

        assert config.error_status == 400
        assert "RESTBIND_ERROR_STATUS" in caplog.text

    def test_non_client_error_status(self, caplog):
        with caplog.at_level(logging.WARNING, logger="restbind.config"):
            config = BinderConfig.from_env(error_status=500)

        assert config.error_status == 400
        assert "not a client error" in caplog.text

    def test_binder_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RESTBIND_ERROR_STATUS", "418")
        assert RequestBinder().config.error_status == 418

    def test_config_is_frozen(self):
        config = BinderConfig()
        with pytest.raises(AttributeError):
            config.span_name = "other"
