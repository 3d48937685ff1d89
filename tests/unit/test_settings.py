import json

import pytest

from compliance_console.settings import (
    API_URL_ENV,
    DEFAULT_API_URL,
    USE_MOCKS_ENV,
    AppSettings,
    load_app_settings,
)

pytestmark = pytest.mark.unit


def test_defaults():
    settings = AppSettings()
    assert settings.api.base_url == DEFAULT_API_URL
    assert settings.api.use_mocks is False
    assert settings.requirements.page_size == 10
    assert settings.documents.page_size == 5
    assert settings.polling.interval_seconds == 5.0
    assert settings.polling.retry_interval_seconds == 8.0
    assert settings.ui.language == "en"
    assert settings.ui.login_path == "/login"


def test_load_toml(tmp_path):
    path = tmp_path / "console.toml"
    path.write_text(
        '[api]\nbase_url = "https://compliance.example.com/api/"\ntimeout_seconds = "30"\n'
        "[requirements]\npage_size = 25\n"
        '[ui]\nlanguage = "es-ES"\n',
        encoding="utf-8",
    )
    settings = load_app_settings(path)
    assert settings.api.base_url == "https://compliance.example.com/api"
    assert settings.api.timeout_seconds == 30.0
    assert settings.requirements.page_size == 25
    assert settings.ui.language == "es"


def test_load_json_and_fallbacks(tmp_path):
    path = tmp_path / "console.json"
    path.write_text(
        json.dumps({"api": {"use_mocks": "yes", "base_url": "  "}, "polling": {"interval_seconds": -1}}),
        encoding="utf-8",
    )
    settings = load_app_settings(path)
    assert settings.api.use_mocks is True
    assert settings.api.base_url == DEFAULT_API_URL
    assert settings.polling.interval_seconds == 5.0


def test_invalid_settings_raise_value_error(tmp_path):
    path = tmp_path / "console.json"
    path.write_text(json.dumps({"requirements": {"page_size": 0}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_app_settings(path)


def test_environment_overrides_do_not_mutate_original():
    base = AppSettings()
    updated = base.with_environment({API_URL_ENV: "https://staging.example.com", USE_MOCKS_ENV: "1"})
    assert updated.api.base_url == "https://staging.example.com"
    assert updated.api.use_mocks is True
    assert base.api.base_url == DEFAULT_API_URL
    assert AppSettings.from_environment({}).api.use_mocks is False


def test_to_dict_round_trip():
    settings = AppSettings()
    settings.ui.theme = "dark"
    assert AppSettings.model_validate(settings.to_dict()) == settings
