from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from outbound import ConfigurationError, configure, get_settings, reset_settings
from outbound.config import Configuration, Settings, client_config_file, load_client_configuration


def test_settings_read_the_environment(monkeypatch) -> None:
    monkeypatch.setenv("OUTBOUND_CONFIG_PATH", "/etc/outbound")
    monkeypatch.setenv("OUTBOUND_ENV", "production")
    monkeypatch.setenv("OUTBOUND_TEMPLATE_PATH", os.pathsep.join(["a", "b"]))

    settings = Settings()

    assert settings.config_path == Path("/etc/outbound")
    assert settings.environment == "production"
    assert settings.template_paths == [Path("a"), Path("b")]


def test_settings_defaults(monkeypatch) -> None:
    for name in ("OUTBOUND_CONFIG_PATH", "OUTBOUND_ENV", "OUTBOUND_TEMPLATE_PATH"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.config_path == Path("config")
    assert settings.environment == "development"
    assert settings.template_paths == [Path("templates")]


def test_configure_overrides_and_validates(tmp_path) -> None:
    configure(environment="staging")

    assert get_settings().environment == "staging"
    assert get_settings().config_path == tmp_path / "config"

    with pytest.raises(ValidationError):
        configure(unknown_option=True)


def test_reset_settings_starts_over(monkeypatch) -> None:
    monkeypatch.setenv("OUTBOUND_ENV", "ci")
    reset_settings()

    assert get_settings().environment == "ci"


def test_missing_client_file_gives_empty_configuration(settings) -> None:
    configuration = load_client_configuration("nothing")

    assert len(configuration) == 0
    assert configuration.url is None
    assert client_config_file("nothing") == settings.config_path / "clients" / "nothing.yml"


def test_environment_section_is_selected(declare_config) -> None:
    declare_config("clients/billing.yml", "test:\n  url: https://test\nproduction:\n  url: https://prod\n")

    assert load_client_configuration("billing")["url"] == "https://test"
    assert load_client_configuration("billing", configure(environment="production")).url == "https://prod"


def test_non_mapping_documents_are_rejected(declare_config) -> None:
    declare_config("clients/list.yml", "- one\n- two\n")

    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_client_configuration("list")


def test_configuration_is_read_only() -> None:
    configuration = Configuration({"token": "abc"})

    assert configuration.token == "abc"
    assert configuration.get("missing", "fallback") == "fallback"
    assert dict(configuration) == {"token": "abc"}
    with pytest.raises(TypeError):
        configuration["token"] = "changed"
