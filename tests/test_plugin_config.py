"""Tests for config loading, presets, validation and error rendering."""

from __future__ import annotations

import pytest

from epa.api_types import (
    HttpError,
    InvalidConfigError,
    InvalidResponseError,
    NetworkError,
    ProviderConfig,
    ProviderPreset,
    RequestCancelledError,
    RequestTimeoutError,
    SpeechProviderPreset,
)
from epa.plugin_config import (
    ConfigLoader,
    PluginConfig,
    format_request_error,
    is_cancelled_error,
    validate_language_config,
)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("glmDirect", ProviderPreset.GLM_DIRECT),
        ("GLM_DIRECT", ProviderPreset.GLM_DIRECT),
        ("zhipu", ProviderPreset.GLM_DIRECT),
        ("gemini-direct", ProviderPreset.GEMINI_DIRECT),
        ("google", ProviderPreset.GEMINI_DIRECT),
        ("custom", ProviderPreset.CUSTOM),
        ("something else", ProviderPreset.CUSTOM),
        (None, ProviderPreset.CUSTOM),
    ],
)
def test_provider_preset_parse(raw, expected):
    assert ProviderPreset.parse(raw) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("doubaoArk", SpeechProviderPreset.DOUBAO_ARK),
        ("ark", SpeechProviderPreset.DOUBAO_ARK),
        ("doubaoOpenSpeech", SpeechProviderPreset.DOUBAO_OPENSPEECH),
        ("openspeech", SpeechProviderPreset.DOUBAO_OPENSPEECH),
        ("", SpeechProviderPreset.CUSTOM),
    ],
)
def test_speech_preset_parse(raw, expected):
    assert SpeechProviderPreset.parse(raw) is expected


# ---------------------------------------------------------------------------
# ConfigLoader
# ---------------------------------------------------------------------------


def test_loader_defaults():
    config = ConfigLoader({}).load()

    assert config == PluginConfig()
    assert config.language_preset is ProviderPreset.CUSTOM
    assert config.target_language == "zh-CN"
    assert config.request_timeout == 20.0
    policy = config.retry_policy()
    assert policy.max_attempts == 2
    assert policy.delay == 0.6


def test_loader_reads_sections():
    raw = {
        "language_settings": {
            "provider_preset": "geminiDirect",
            "model": " gemini-2.5-flash ",
            "api_key": "g-key",
            "headers_json": '{"X-A": "1"}',
            "target_language": "ja",
        },
        "speech_settings": {
            "enable_tts": False,
            "provider_preset": "doubaoOpenSpeech",
            "base_url": "https://openspeech.bytedance.com/api/v3/tts/unidirectional",
            "voice": "en_female",
            "app_id": "app",
            "resource_id": "res",
            "api_key": "ak",
        },
        "retry_settings": {"max_attempts": "3", "retry_delay": 0, "request_timeout": 45},
        "service_settings": {"verbose_logging": True, "show_notes": False},
        "cache_settings": {"audio_ttl_minutes": 1, "cleanup_interval_minutes": 5},
    }

    config = ConfigLoader(raw).load()

    assert config.language_preset is ProviderPreset.GEMINI_DIRECT
    assert config.language_config == ProviderConfig(
        model="gemini-2.5-flash", api_key="g-key", headers_json='{"X-A": "1"}'
    )
    assert config.target_language == "ja"
    assert config.enable_tts is False
    assert config.speech_preset is SpeechProviderPreset.DOUBAO_OPENSPEECH
    assert config.speech_config.app_id == "app"
    assert config.speech_config.voice == "en_female"
    assert config.max_attempts == 3
    assert config.retry_delay == 0.0
    assert config.request_timeout == 45.0
    assert config.verbose_logging is True
    assert config.show_notes is False
    assert config.audio_ttl_minutes == 1
    assert config.cleanup_interval_minutes == 5


def test_loader_falls_back_on_bad_numbers():
    raw = {
        "retry_settings": {"max_attempts": "many", "retry_delay": "slow", "request_timeout": -1},
        "cache_settings": {"audio_ttl_minutes": "x", "cleanup_interval_minutes": None},
    }

    config = ConfigLoader(raw).load()

    assert config.max_attempts == 2
    assert config.retry_delay == 0.6
    assert config.request_timeout == 20.0
    assert config.audio_ttl_minutes == 10
    assert config.cleanup_interval_minutes == 30


def test_loader_clamps_attempts():
    config = ConfigLoader({"retry_settings": {"max_attempts": 0}}).load()
    assert config.max_attempts == 1


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "preset, config, expected",
    [
        (ProviderPreset.GLM_DIRECT, ProviderConfig(model="glm"), "缺少 GLM API Key"),
        (ProviderPreset.GLM_DIRECT, ProviderConfig(api_key="k"), "缺少 GLM 模型"),
        (ProviderPreset.GEMINI_DIRECT, ProviderConfig(model="g", api_key=" "), "缺少 Gemini API Key"),
        (ProviderPreset.GEMINI_DIRECT, ProviderConfig(api_key="k"), "缺少 Gemini 模型"),
        (ProviderPreset.CUSTOM, ProviderConfig(model="m", api_key="k"), "缺少自定义后端地址"),
        (
            ProviderPreset.CUSTOM,
            ProviderConfig(base_url="https://x.test", api_key="k"),
            "缺少自定义后端模型",
        ),
        (
            ProviderPreset.CUSTOM,
            ProviderConfig(base_url="https://x.test", model="m"),
            "缺少自定义后端 API Key",
        ),
    ],
)
def test_validate_language_config_messages(preset, config, expected):
    assert validate_language_config(preset, config) == expected


def test_validate_language_config_complete():
    assert validate_language_config(
        ProviderPreset.GLM_DIRECT, ProviderConfig(model="glm", api_key="k")
    ) is None
    assert validate_language_config(
        "custom", ProviderConfig(base_url="https://x.test", model="m", api_key="k")
    ) is None


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error, expected",
    [
        (InvalidConfigError("请求地址无效"), "供应商配置无效"),
        (InvalidResponseError(), "响应格式无效"),
        (HttpError(500, "boom"), "HTTP 500: boom"),
        (HttpError(502, "   "), "HTTP 502"),
        (HttpError(401, "bad key"), "HTTP 401: bad key（请检查 API Key 是否正确）"),
        (RequestTimeoutError(), "请求超时"),
        (RequestCancelledError(), "请求已取消"),
        (NetworkError("connection reset"), "网络错误: connection reset"),
        (NetworkError("  "), "网络错误"),
        (ValueError("odd"), "odd"),
        (ValueError(), "未知错误"),
    ],
)
def test_format_request_error(error, expected):
    assert format_request_error(error) == expected


def test_format_request_error_uses_configured_timeout():
    assert format_request_error(RequestTimeoutError(), timeout=7.5) == "请求超时（7.5 秒）"


def test_format_request_error_without_timeout_omits_seconds():
    # 语音合成没有配置的超时
    message = format_request_error(RequestTimeoutError())
    assert message == "请求超时"
    assert "20" not in message


def test_is_cancelled_error():
    assert is_cancelled_error(RequestCancelledError())
    assert not is_cancelled_error(RequestTimeoutError())
