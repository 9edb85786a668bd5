import pytest

from chatmap_core.config.endpoint import (
    CustomEndpoint,
    OpenAIEndpoint,
    SiliconFlowEndpoint,
    endpoint_from_settings,
    normalize_base_url,
    parse_endpoint_config,
)
from chatmap_core.config.settings import Settings
from chatmap_core.domain.exceptions import ConfigError
from chatmap_core.providers.registry import get_provider_config


def test_registry_defaults():
    assert get_provider_config("OpenAI").base_url == "https://api.openai.com/v1"
    assert get_provider_config("siliconflow").default_model == "Qwen/Qwen2.5-7B-Instruct"
    assert get_provider_config("custom").base_url is None
    with pytest.raises(KeyError):
        get_provider_config("glm")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://api.openai.com/v1", "https://api.openai.com/v1"),
        ("https://api.openai.com/v1/", "https://api.openai.com/v1"),
        ("https://api.openai.com/v1/chat/completions", "https://api.openai.com/v1"),
        ("  http://localhost:8000/v1/chat/completions/ ", "http://localhost:8000/v1"),
    ],
)
def test_normalize_base_url(raw, expected):
    assert normalize_base_url(raw) == expected


def test_openai_defaults_filled_from_registry():
    cfg = parse_endpoint_config({"provider": "openai", "api_key": "sk-123"})
    assert isinstance(cfg, OpenAIEndpoint)
    assert cfg.model == "gpt-4o"
    assert cfg.chat_completions_url == "https://api.openai.com/v1/chat/completions"
    assert cfg.temperature == 0.7


def test_provider_defaults_to_openai():
    cfg = parse_endpoint_config({"api_key": "sk-123"})
    assert cfg.provider == "openai"


def test_siliconflow_variant():
    cfg = parse_endpoint_config({"provider": "SiliconFlow", "api_key": "sk-sf", "model": "deepseek-ai/DeepSeek-V3"})
    assert isinstance(cfg, SiliconFlowEndpoint)
    assert cfg.model == "deepseek-ai/DeepSeek-V3"


def test_custom_requires_base_url_and_model():
    with pytest.raises(ConfigError) as exc:
        parse_endpoint_config({"provider": "custom", "api_key": "k"})
    assert exc.value.code == "INVALID_MODEL_CONFIG"

    cfg = parse_endpoint_config(
        {"provider": "custom", "api_key": "k", "base_url": "http://localhost:11434/v1/", "model": "qwen2.5"}
    )
    assert isinstance(cfg, CustomEndpoint)
    assert cfg.chat_completions_url == "http://localhost:11434/v1/chat/completions"


@pytest.mark.parametrize("api_key", [None, "", "   "])
def test_missing_api_key_is_config_error(api_key):
    with pytest.raises(ConfigError) as exc:
        parse_endpoint_config({"provider": "openai", "api_key": api_key})
    assert exc.value.code == "INVALID_MODEL_CONFIG"


def test_unknown_provider():
    with pytest.raises(ConfigError) as exc:
        parse_endpoint_config({"provider": "glm", "api_key": "k"})
    assert exc.value.code == "UNKNOWN_PROVIDER"


def test_invalid_url_and_temperature():
    with pytest.raises(ConfigError):
        parse_endpoint_config({"provider": "openai", "api_key": "k", "base_url": "ftp://example.com"})
    with pytest.raises(ConfigError):
        parse_endpoint_config({"provider": "openai", "api_key": "k", "temperature": 1.5})


def test_api_key_not_in_repr():
    cfg = parse_endpoint_config({"provider": "openai", "api_key": "sk-secret-value"})
    assert "sk-secret-value" not in repr(cfg)


def test_endpoint_from_settings(monkeypatch):
    monkeypatch.delenv("CHATMAP_CONFIG_FILE", raising=False)
    cfg = Settings(
        _env_file=None,
        default_provider="SiliconFlow",
        siliconflow_api_key="sk-sf",
        temperature=0.2,
    )

    endpoint = endpoint_from_settings(cfg)

    assert isinstance(endpoint, SiliconFlowEndpoint)
    assert endpoint.api_key == "sk-sf"
    assert endpoint.temperature == 0.2
    assert endpoint.base_url == "https://api.siliconflow.cn/v1"


def test_endpoint_from_settings_missing_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    cfg = Settings(_env_file=None, default_provider="openai", openai_api_key=None)

    with pytest.raises(ConfigError):
        endpoint_from_settings(cfg)


def test_settings_reads_yaml_file(tmp_path, monkeypatch):
    path = tmp_path / "chatmap.yaml"
    path.write_text("default_provider: custom\ncustom_model: llama3\nmax_history_messages: 6\n", encoding="utf-8")
    monkeypatch.setenv("CHATMAP_CONFIG_FILE", str(path))
    monkeypatch.delenv("DEFAULT_PROVIDER", raising=False)
    monkeypatch.delenv("MAX_HISTORY_MESSAGES", raising=False)

    cfg = Settings(_env_file=None)

    assert cfg.default_provider == "custom"
    assert cfg.custom_model == "llama3"
    assert cfg.max_history_messages == 6
