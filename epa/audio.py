"""
语音合成响应解码模块
支持原始音频、JSON 内嵌 base64 以及逐行 JSON/SSE 分块三种返回形态
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from astrbot.api import logger

from .api_types import InvalidResponseError

AUDIO_BASE64_KEYS = ("audio", "data", "output_audio", "audio_base64", "b64_audio")


def decode_base64_audio(raw: str) -> bytes | None:
    """严格 base64 解码，失败时尝试 `<header>,<base64>` 形式逗号后的部分"""
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        pass

    if "," in raw:
        _, _, suffix = raw.partition(",")
        try:
            return base64.b64decode(suffix, validate=True)
        except (binascii.Error, ValueError):
            return None
    return None


def _extract_base64_string(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        for key in AUDIO_BASE64_KEYS:
            if key in value:
                text = _extract_base64_string(value[key])
                if text:
                    return text
    return None


def first_base64_audio_candidate(payload: dict[str, Any]) -> str | None:
    for key in AUDIO_BASE64_KEYS:
        if key in payload:
            text = _extract_base64_string(payload[key])
            if text:
                return text
    return None


def decode_audio_object(obj: Any) -> bytes | None:
    """从已解析的 JSON 中递归恢复音频字节"""
    if isinstance(obj, dict):
        candidate = first_base64_audio_candidate(obj)
        if candidate:
            decoded = decode_base64_audio(candidate)
            if decoded is not None:
                return decoded
        if "data" in obj:
            return decode_audio_object(obj["data"])
        if "result" in obj:
            return decode_audio_object(obj["result"])
        return None

    if isinstance(obj, list):
        merged = bytearray()
        for item in obj:
            decoded = decode_audio_object(item)
            if decoded:
                merged.extend(decoded)
        return bytes(merged) if merged else None

    return None


def _decode_line_stream(text: str) -> bytes | None:
    merged = bytearray()
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("data:"):
            line = line[len("data:") :].strip()
        if line == "[DONE]":
            continue
        try:
            chunk_obj = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"[audio] 跳过无法解析的分块: {line[:80]}")
            continue
        chunk = decode_audio_object(chunk_obj)
        if chunk:
            merged.extend(chunk)
    return bytes(merged) if merged else None


def decode_audio_payload(body: bytes) -> bytes | None:
    try:
        decoded = decode_audio_object(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError):
        decoded = None
    if decoded:
        return decoded

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return _decode_line_stream(text)


def decode_audio_response(body: bytes, content_type: str = "") -> bytes:
    """
    解码语音合成响应

    Args:
        body: 响应体
        content_type: 响应的 Content-Type

    Returns:
        音频字节

    Raises:
        InvalidResponseError: 任何路径都无法恢复出音频
    """
    lowered = (content_type or "").lower()
    if "audio/" in lowered or "octet-stream" in lowered:
        if not body:
            raise InvalidResponseError("语音合成返回了空音频")
        return body

    decoded = decode_audio_payload(body)
    if decoded:
        logger.debug(f"[audio] 从 JSON 响应中解码出 {len(decoded)} 字节音频")
        return decoded

    raise InvalidResponseError("语音合成响应中未找到音频数据")
