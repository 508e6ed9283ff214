"""Config file handling and settings parsing."""

import json

from screensense.config import (
    DEFAULT_CONFIG,
    build_settings,
    config_path,
    get_settings,
    load_config_data,
    update_config_file,
)


def test_first_load_writes_defaults(tmp_path):
    path = tmp_path / "config.json"
    data = load_config_data(path)
    assert data == DEFAULT_CONFIG
    assert json.loads(path.read_text(encoding="utf-8")) == DEFAULT_CONFIG


def test_file_values_merge_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"ai_model": "gpt-4o", "log_limit": 5}), encoding="utf-8")
    data = load_config_data(path)
    assert data["ai_model"] == "gpt-4o"
    assert data["log_limit"] == 5
    assert data["ai_enabled"] is True


def test_update_config_file_keeps_other_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"ai_model": "gpt-4o"}), encoding="utf-8")
    update_config_file({"ai_enabled": False}, path)
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["ai_enabled"] is False
    assert saved["ai_model"] == "gpt-4o"


def test_config_path_override(tmp_path, monkeypatch):
    monkeypatch.setenv("SCREENSENSE_CONFIG", str(tmp_path / "custom.json"))
    assert config_path() == (tmp_path / "custom.json").resolve()


def test_get_settings_reads_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"screenshot_folder": str(tmp_path / "shots")}), encoding="utf-8")
    settings = get_settings(path)
    assert settings.screenshot_folder == (tmp_path / "shots").resolve()
    assert settings.ai_model == "gpt-4o-mini"


def test_build_settings_defaults():
    settings = build_settings(dict(DEFAULT_CONFIG))
    assert settings.ai_enabled is True
    assert settings.ai_provider == "openai"
    assert settings.api_key_env == "OPENAI_API_KEY"
    assert settings.log_limit == 100
    assert settings.ai_max_output_tokens == 200
    assert settings.image_compression.enabled is True
    assert settings.image_compression.max_width == 1920
    assert settings.image_compression.quality == 80
    assert settings.capture_shortcut == ("Ctrl+Shift+S", "Ctrl+Alt+S")


def test_build_settings_tolerates_bad_values():
    data = dict(DEFAULT_CONFIG)
    data.update({
        "ai_enabled": "yes",
        "log_limit": "lots",
        "ai_max_output_tokens": -3,
        "image_compression": "off",
        "capture_shortcut": "Ctrl+Shift+X",
        "ai_base_url": "http://localhost:1234/v1/",
    })
    settings = build_settings(data)
    assert settings.ai_enabled is True
    assert settings.log_limit == 100
    assert settings.ai_max_output_tokens is None
    assert settings.image_compression.enabled is True
    assert settings.capture_shortcut == ("Ctrl+Shift+X",)
    assert settings.ai_base_url == "http://localhost:1234/v1"


def test_compression_disabled_only_when_false():
    data = dict(DEFAULT_CONFIG)
    data["image_compression"] = {"enabled": False, "max_width": 800}
    compression = build_settings(data).image_compression
    assert compression.enabled is False
    assert compression.max_width == 800
    assert compression.quality == 80


def test_gemini_provider_from_file_uses_gemini_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"ai_provider": "gemini"}), encoding="utf-8")

    settings = get_settings(path)

    assert settings.ai_provider == "gemini"
    assert settings.api_key_env == "GEMINI_API_KEY"
    assert settings.ai_model is None


def test_gemini_provider_keeps_explicit_choices():
    data = dict(DEFAULT_CONFIG)
    data.update({"ai_provider": "Gemini", "ai_model": "gemini-1.5-pro", "openai_api_key_env": "MY_GEMINI_KEY"})
    settings = build_settings(data)
    assert settings.ai_model == "gemini-1.5-pro"
    assert settings.api_key_env == "MY_GEMINI_KEY"


def test_openai_provider_keeps_openai_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{}", encoding="utf-8")
    settings = get_settings(path)
    assert settings.ai_model == "gpt-4o-mini"
    assert settings.api_key_env == "OPENAI_API_KEY"


def test_timeout_default_and_override():
    assert build_settings(dict(DEFAULT_CONFIG)).ai_timeout_seconds == 120
    data = dict(DEFAULT_CONFIG)
    data["ai_timeout_seconds"] = 30
    assert build_settings(data).ai_timeout_seconds == 30


def test_api_key_read_from_environment(monkeypatch):
    data = dict(DEFAULT_CONFIG)
    data["openai_api_key_env"] = "SCREENSENSE_CONFIG_TEST_KEY"
    settings = build_settings(data)
    monkeypatch.delenv("SCREENSENSE_CONFIG_TEST_KEY", raising=False)
    assert settings.api_key is None
    monkeypatch.setenv("SCREENSENSE_CONFIG_TEST_KEY", "sk-live")
    assert settings.api_key == "sk-live"
