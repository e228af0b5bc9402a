"""共享类型。

供 `epa/client.py` 与各供应商实现共用的配置/结果/异常类型。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderPreset(str, Enum):
    """语法检查/翻译供应商预设"""

    GLM_DIRECT = "glmDirect"
    GEMINI_DIRECT = "geminiDirect"
    CUSTOM = "custom"

    @property
    def title(self) -> str:
        return {
            ProviderPreset.GLM_DIRECT: "GLM Direct",
            ProviderPreset.GEMINI_DIRECT: "Gemini Direct",
            ProviderPreset.CUSTOM: "Custom Backend",
        }[self]

    @classmethod
    def parse(cls, raw: str | ProviderPreset | None) -> ProviderPreset:
        """兼容配置中的原始值、枚举名以及常见别名，未知值回退到自定义后端"""
        if isinstance(raw, ProviderPreset):
            return raw
        normalized = str(raw or "").strip().lower().replace("-", "_")
        for member in cls:
            if normalized in {member.value.lower(), member.name.lower()}:
                return member
        if normalized in {"glm", "zhipu", "zhipuai", "zai", "glm_direct"}:
            return cls.GLM_DIRECT
        if normalized in {"gemini", "google", "gemini_direct"}:
            return cls.GEMINI_DIRECT
        return cls.CUSTOM


class SpeechProviderPreset(str, Enum):
    """语音合成供应商预设"""

    DOUBAO_ARK = "doubaoArk"
    DOUBAO_OPENSPEECH = "doubaoOpenSpeech"
    CUSTOM = "custom"

    @property
    def title(self) -> str:
        return {
            SpeechProviderPreset.DOUBAO_ARK: "Doubao (Ark)",
            SpeechProviderPreset.DOUBAO_OPENSPEECH: "Doubao (OpenSpeech)",
            SpeechProviderPreset.CUSTOM: "Custom",
        }[self]

    @classmethod
    def parse(
        cls, raw: str | SpeechProviderPreset | None
    ) -> SpeechProviderPreset:
        if isinstance(raw, SpeechProviderPreset):
            return raw
        normalized = str(raw or "").strip().lower().replace("-", "_")
        for member in cls:
            if normalized in {member.value.lower(), member.name.lower()}:
                return member
        if normalized in {"ark", "doubao_ark"}:
            return cls.DOUBAO_ARK
        if normalized in {"openspeech", "doubao_openspeech"}:
            return cls.DOUBAO_OPENSPEECH
        return cls.CUSTOM


@dataclass(frozen=True)
class ProviderConfig:
    """供应商连接参数（每次调用按值传入，当前预设用不到的字段会被忽略）"""

    base_url: str = ""
    model: str = ""
    api_key: str = ""
    headers_json: str = ""
    voice: str = ""
    app_id: str = ""
    resource_id: str = ""


@dataclass(frozen=True)
class GrammarCheckResult:
    source_text: str
    clean_up: str
    better_flow: str
    concise: str
    notes: str = ""
    used_legacy_fallback: bool = False


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    translated_text: str
    detected_source_language: str
    target_language: str
    notes: str = ""
    used_legacy_fallback: bool = False


class APIError(Exception):
    """API 错误基类"""

    def __init__(self, message: str, status_code: int = None, error_type: str = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class InvalidConfigError(APIError):
    """发起网络请求前缺少必要配置"""

    def __init__(self, message: str = "供应商配置无效"):
        super().__init__(message, None, "invalid_config")


class InvalidResponseError(APIError):
    """HTTP 成功但响应无法解析为预期结构"""

    def __init__(self, message: str = "响应格式无效"):
        super().__init__(message, None, "invalid_response")


class HttpError(APIError):
    """非 2xx 响应"""

    def __init__(self, code: int, message: str | None = None):
        super().__init__(
            f"HTTP {code}: {message}" if message else f"HTTP {code}",
            code,
            "http",
        )
        self.code = code
        self.detail = message


class RequestTimeoutError(APIError):
    def __init__(self, message: str = "请求超时"):
        super().__init__(message, None, "timeout")


class RequestCancelledError(APIError):
    def __init__(self, message: str = "请求已取消"):
        super().__init__(message, None, "cancelled")


class NetworkError(APIError):
    """DNS/连接/传输层错误"""

    def __init__(self, message: str = "Unknown network error"):
        super().__init__(message, None, "network")
