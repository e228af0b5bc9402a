"""语音合成供应商实现。

三种请求形态：
- OpenSpeech（豆包语音）：专用 X-Api-* 请求头 + user/req_params 请求体
- Ark 兼容：Bearer 鉴权，地址改写为 `.../api/v3/audio/speech`
- 通用自定义后端：`{task: "tts", ...}` 直接发往配置的地址
"""

from __future__ import annotations

import urllib.parse
import uuid
from enum import Enum

from astrbot.api import logger

from ..api_types import ProviderConfig, SpeechProviderPreset
from ..transport import build_headers
from .base import ProviderRequest

OPENSPEECH_HOST = "openspeech.bytedance.com"
ARK_HOST = "volces.com"


class SpeechRoute(Enum):
    ARK_COMPATIBLE = "ark"
    OPENSPEECH = "openspeech"


def _host_of(url: str) -> str:
    return (urllib.parse.urlparse((url or "").strip()).hostname or "").lower()


def is_openspeech_url(base_url: str) -> bool:
    return OPENSPEECH_HOST in _host_of(base_url)


def resolve_speech_route(
    preset: SpeechProviderPreset, base_url: str
) -> SpeechRoute:
    """自定义预设根据地址的 host 猜测供应商"""
    if preset == SpeechProviderPreset.DOUBAO_OPENSPEECH:
        return SpeechRoute.OPENSPEECH
    if preset == SpeechProviderPreset.DOUBAO_ARK:
        return SpeechRoute.ARK_COMPATIBLE
    return SpeechRoute.OPENSPEECH if is_openspeech_url(base_url) else SpeechRoute.ARK_COMPATIBLE


def _api_v3_prefix(path: str) -> str | None:
    tokens = [t for t in path.split("/") if t]
    for index, token in enumerate(tokens):
        if token.lower() == "api":
            if index + 1 < len(tokens) and tokens[index + 1].lower() == "v3":
                return "/".join(tokens[: index + 2])
            return None
    return None


def ark_tts_url(base_url: str) -> str:
    """把 Ark 基础地址改写为语音合成地址，已指向 audio/speech 的保持不变"""
    parsed = urllib.parse.urlparse(base_url.strip())
    trimmed_path = parsed.path.strip("/")
    if "audio/speech" in trimmed_path:
        return base_url.strip()

    prefix = _api_v3_prefix(trimmed_path) if trimmed_path else None
    path = "/" + (prefix or "api/v3") + "/audio/speech"
    return urllib.parse.urlunparse(parsed._replace(path=path, query=""))


def build_openspeech_request(
    text: str, config: ProviderConfig
) -> ProviderRequest | None:
    """缺少任一必要字段时返回 None"""
    url = config.base_url.strip()
    app_id = config.app_id.strip()
    resource_id = config.resource_id.strip()
    access_key = config.api_key.strip()
    speaker = config.voice.strip()
    if not (url and app_id and resource_id and access_key and speaker):
        return None

    headers = build_headers(
        config.api_key,
        config.headers_json,
        include_bearer_auth=False,
        include_custom_headers=False,
        extra_headers={
            "X-Api-App-Id": app_id,
            "X-Api-Access-Key": access_key,
            "X-Api-Resource-Id": resource_id,
            "X-Api-Request-Id": str(uuid.uuid4()).lower(),
        },
    )
    payload = {
        "user": {"uid": app_id},
        "req_params": {
            "text": text,
            "speaker": speaker,
            "audio_params": {"format": "mp3", "sample_rate": 24000},
        },
    }
    return ProviderRequest(url=url, headers=headers, payload=payload)


def build_ark_request(text: str, config: ProviderConfig) -> ProviderRequest | None:
    """非火山引擎地址或未配置模型时返回 None，由调用方改走通用后端"""
    base_url = config.base_url.strip()
    if not base_url or ARK_HOST not in _host_of(base_url):
        return None
    if not config.model.strip():
        return None

    url = ark_tts_url(base_url)
    logger.debug(f"[speech] Ark 语音合成地址: {url}")
    return ProviderRequest(
        url=url,
        headers=build_headers(config.api_key, config.headers_json),
        payload={
            "model": config.model,
            "input": text,
            "voice": config.voice,
            "response_format": "mp3",
        },
    )


def build_generic_request(text: str, config: ProviderConfig) -> ProviderRequest:
    return ProviderRequest(
        url=config.base_url.strip(),
        headers=build_headers(config.api_key, config.headers_json),
        payload={
            "task": "tts",
            "text": text,
            "model": config.model,
            "voice": config.voice,
        },
    )
