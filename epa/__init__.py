"""英语练习助手核心：语法改写、翻译与语音合成"""

from .api_types import (
    APIError,
    GrammarCheckResult,
    HttpError,
    InvalidConfigError,
    InvalidResponseError,
    NetworkError,
    ProviderConfig,
    ProviderPreset,
    RequestCancelledError,
    RequestTimeoutError,
    SpeechProviderPreset,
    TranslationResult,
)
from .client import AIClient, clear_api_client, get_api_client
from .plugin_config import (
    ConfigLoader,
    PluginConfig,
    format_request_error,
    validate_language_config,
)
from .retry import RetryPolicy
from .tl_utils import cleanup_old_audio, get_plugin_data_dir, save_audio_data

__all__ = [
    "AIClient",
    "APIError",
    "ConfigLoader",
    "GrammarCheckResult",
    "HttpError",
    "InvalidConfigError",
    "InvalidResponseError",
    "NetworkError",
    "PluginConfig",
    "ProviderConfig",
    "ProviderPreset",
    "RequestCancelledError",
    "RequestTimeoutError",
    "RetryPolicy",
    "SpeechProviderPreset",
    "TranslationResult",
    "cleanup_old_audio",
    "clear_api_client",
    "format_request_error",
    "get_api_client",
    "get_plugin_data_dir",
    "save_audio_data",
    "validate_language_config",
]
