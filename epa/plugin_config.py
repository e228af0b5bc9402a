"""插件配置加载和管理模块"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from astrbot.api import logger

from .api_types import (
    APIError,
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
from .retry import RetryPolicy

DEFAULT_TARGET_LANGUAGE = "zh-CN"


@dataclass
class PluginConfig:
    """插件配置数据类"""

    # 语言服务（语法改写/翻译）
    language_preset: ProviderPreset = ProviderPreset.CUSTOM
    language_config: ProviderConfig = field(default_factory=ProviderConfig)
    target_language: str = DEFAULT_TARGET_LANGUAGE

    # 语音合成
    enable_tts: bool = True
    speech_preset: SpeechProviderPreset = SpeechProviderPreset.CUSTOM
    speech_config: ProviderConfig = field(default_factory=ProviderConfig)

    # 重试设置
    max_attempts: int = 2
    retry_delay: float = 0.6
    request_timeout: float = 20.0

    # 服务设置
    verbose_logging: bool = False
    show_notes: bool = True

    # 缓存设置
    audio_ttl_minutes: int = 10
    cleanup_interval_minutes: int = 30

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, delay=self.retry_delay)

    def log_info(self, message: str):
        """根据配置输出 info 或 debug 级别日志"""
        if self.verbose_logging:
            logger.info(message)
        else:
            logger.debug(message)

    def log_debug(self, message: str):
        """输出 debug 级别日志"""
        logger.debug(message)


def _text(settings: dict[str, Any], key: str) -> str:
    return str(settings.get(key) or "").strip()


class ConfigLoader:
    """配置加载器"""

    def __init__(self, raw_config: dict[str, Any]):
        self.raw_config = raw_config or {}

    def load(self) -> PluginConfig:
        """加载配置并返回 PluginConfig 实例"""
        config = PluginConfig()

        # 语言服务
        language_settings = self.raw_config.get("language_settings") or {}
        config.language_preset = ProviderPreset.parse(
            language_settings.get("provider_preset")
        )
        config.language_config = ProviderConfig(
            base_url=_text(language_settings, "base_url"),
            model=_text(language_settings, "model"),
            api_key=_text(language_settings, "api_key"),
            headers_json=_text(language_settings, "headers_json"),
        )
        config.target_language = (
            _text(language_settings, "target_language") or DEFAULT_TARGET_LANGUAGE
        )

        # 语音合成
        speech_settings = self.raw_config.get("speech_settings") or {}
        config.enable_tts = bool(speech_settings.get("enable_tts", True))
        config.speech_preset = SpeechProviderPreset.parse(
            speech_settings.get("provider_preset")
        )
        config.speech_config = ProviderConfig(
            base_url=_text(speech_settings, "base_url"),
            model=_text(speech_settings, "model"),
            api_key=_text(speech_settings, "api_key"),
            headers_json=_text(speech_settings, "headers_json"),
            voice=_text(speech_settings, "voice"),
            app_id=_text(speech_settings, "app_id"),
            resource_id=_text(speech_settings, "resource_id"),
        )

        self._load_retry_settings(config)

        # 服务设置
        service_settings = self.raw_config.get("service_settings") or {}
        config.verbose_logging = bool(service_settings.get("verbose_logging") or False)
        config.show_notes = bool(service_settings.get("show_notes", True))

        self._load_cache_settings(config)

        config.log_debug(
            f"配置已加载 language={config.language_preset.value} "
            f"speech={config.speech_preset.value} target={config.target_language}"
        )
        return config

    def _load_retry_settings(self, config: PluginConfig):
        """加载重试设置"""
        retry_settings = self.raw_config.get("retry_settings") or {}

        max_attempts = retry_settings.get("max_attempts")
        if max_attempts is not None:
            try:
                config.max_attempts = max(int(max_attempts), 1)
            except (TypeError, ValueError):
                config.max_attempts = 2

        retry_delay = retry_settings.get("retry_delay")
        if retry_delay is not None:
            try:
                config.retry_delay = max(float(retry_delay), 0.0)
            except (TypeError, ValueError):
                config.retry_delay = 0.6

        request_timeout = retry_settings.get("request_timeout")
        if request_timeout is not None:
            try:
                config.request_timeout = float(request_timeout)
            except (TypeError, ValueError):
                config.request_timeout = 20.0
            if config.request_timeout <= 0:
                logger.warning("request_timeout 必须大于 0，已使用默认值 20 秒")
                config.request_timeout = 20.0

    def _load_cache_settings(self, config: PluginConfig):
        """加载缓存设置"""
        cache_settings = self.raw_config.get("cache_settings") or {}

        audio_ttl = cache_settings.get("audio_ttl_minutes")
        if audio_ttl is not None:
            try:
                config.audio_ttl_minutes = max(int(audio_ttl), 0)
            except (TypeError, ValueError):
                config.audio_ttl_minutes = 10

        cleanup_interval = cache_settings.get("cleanup_interval_minutes")
        if cleanup_interval is not None:
            try:
                config.cleanup_interval_minutes = max(int(cleanup_interval), 1)
            except (TypeError, ValueError):
                config.cleanup_interval_minutes = 30


def validate_language_config(
    preset: ProviderPreset | str, config: ProviderConfig
) -> str | None:
    """发起请求前检查必填项，返回给用户的提示；配置完整时返回 None"""
    key = config.api_key.strip()
    model = config.model.strip()

    normalized = ProviderPreset.parse(preset)
    if normalized == ProviderPreset.GLM_DIRECT:
        if not key:
            return "缺少 GLM API Key"
        if not model:
            return "缺少 GLM 模型"
    elif normalized == ProviderPreset.GEMINI_DIRECT:
        if not key:
            return "缺少 Gemini API Key"
        if not model:
            return "缺少 Gemini 模型"
    else:
        if not config.base_url.strip():
            return "缺少自定义后端地址"
        if not model:
            return "缺少自定义后端模型"
        if not key:
            return "缺少自定义后端 API Key"
    return None


def is_cancelled_error(error: BaseException) -> bool:
    return isinstance(error, RequestCancelledError)


def format_request_error(error: BaseException, timeout: float | None = None) -> str:
    """把请求异常渲染为面向用户的一行提示

    timeout 为 None 时不显示具体秒数（如语音合成使用 aiohttp 默认超时）
    """
    if isinstance(error, InvalidConfigError):
        return "供应商配置无效"
    if isinstance(error, InvalidResponseError):
        return "响应格式无效"
    if isinstance(error, HttpError):
        detail = (error.detail or "").strip()
        message = f"HTTP {error.code}: {detail}" if detail else f"HTTP {error.code}"
        if error.code in (401, 403):
            message += "（请检查 API Key 是否正确）"
        return message
    if isinstance(error, RequestTimeoutError):
        if timeout is None:
            return "请求超时"
        return f"请求超时（{timeout:g} 秒）"
    if isinstance(error, RequestCancelledError):
        return "请求已取消"
    if isinstance(error, NetworkError):
        detail = (error.message or "").strip()
        return f"网络错误: {detail}" if detail else "网络错误"
    if isinstance(error, APIError):
        return error.message or "未知错误"

    message = str(error).strip()
    return message or "未知错误"
