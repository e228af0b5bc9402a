"""
响应归一化模块
从各供应商响应信封中定位语法/翻译 payload，并转换为统一结果
"""

from __future__ import annotations

import json
from typing import Any, Callable

from .api_types import GrammarCheckResult, InvalidResponseError, TranslationResult

GRAMMAR_PAYLOAD_KEYS = ("clean_up", "better_flow", "concise", "corrected", "rephrased")
TRANSLATION_PAYLOAD_KEYS = (
    "translation",
    "translated_text",
    "translatedtext",
    "source_language",
)


def load_json(data: bytes | str) -> Any:
    """严格解析 JSON，失败返回 None"""
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        return None


def non_empty_string(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def first_non_empty_string(payload: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = non_empty_string(payload.get(key))
        if value:
            return value
    return ""


def find_payload(obj: Any, candidate_keys: tuple[str, ...]) -> dict[str, Any] | None:
    """深度优先查找第一个包含任一候选键（大小写不敏感）的对象"""
    if isinstance(obj, dict):
        keys = {str(k).lower() for k in obj}
        if any(candidate in keys for candidate in candidate_keys):
            return obj
        for value in obj.values():
            nested = find_payload(value, candidate_keys)
            if nested is not None:
                return nested
        return None

    if isinstance(obj, list):
        for item in obj:
            nested = find_payload(item, candidate_keys)
            if nested is not None:
                return nested
    return None


def find_grammar_payload(obj: Any) -> dict[str, Any] | None:
    return find_payload(obj, GRAMMAR_PAYLOAD_KEYS)


def find_translation_payload(obj: Any) -> dict[str, Any] | None:
    return find_payload(obj, TRANSLATION_PAYLOAD_KEYS)


def extract_openai_content_text(value: Any) -> str:
    """message.content 可能是字符串、parts 数组或单个 part 对象"""
    direct = non_empty_string(value)
    if direct:
        return direct

    if isinstance(value, list):
        pieces: list[str] = []
        for part in value:
            if not isinstance(part, dict):
                continue
            text = non_empty_string(part.get("text")) or non_empty_string(
                part.get("content")
            )
            if text:
                pieces.append(text)
        return "\n".join(pieces).strip()

    if isinstance(value, dict):
        return non_empty_string(value.get("text")) or non_empty_string(
            value.get("content")
        )

    return ""


def first_openai_choice_text(obj: Any) -> str | None:
    if not isinstance(obj, dict):
        return None
    choices = obj.get("choices")
    if not isinstance(choices, list):
        return None

    for choice in choices:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message")
        if isinstance(message, dict):
            text = extract_openai_content_text(message.get("content"))
            if text:
                return text
        text = non_empty_string(choice.get("text"))
        if text:
            return text
    return None


def first_gemini_candidate_text(obj: Any) -> str | None:
    if not isinstance(obj, dict):
        return None
    candidates = obj.get("candidates")
    if not isinstance(candidates, list):
        return None

    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        if not isinstance(content, dict):
            continue
        parts = content.get("parts")
        if not isinstance(parts, list):
            continue
        for part in parts:
            if not isinstance(part, dict):
                continue
            text = non_empty_string(part.get("text"))
            if text:
                return text
    return None


def strip_code_fence(text: str) -> str:
    """去掉 ```json ... ``` 包裹（首行必去，末行以 ``` 开头时才去）"""
    trimmed = text.strip()
    if not trimmed.startswith("```"):
        return trimmed

    lines = trimmed.splitlines()
    if not lines:
        return trimmed
    lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _parse_json_object(text: str) -> dict[str, Any] | None:
    parsed = load_json(text)
    return parsed if isinstance(parsed, dict) else None


def parse_json_string_object(raw: str) -> dict[str, Any] | None:
    """从模型返回的文本中挖出 JSON 对象"""
    trimmed = raw.strip()
    direct = _parse_json_object(trimmed)
    if direct is not None:
        return direct

    de_fenced = strip_code_fence(trimmed)
    parsed = _parse_json_object(de_fenced)
    if parsed is not None:
        return parsed

    start = de_fenced.find("{")
    end = de_fenced.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return _parse_json_object(de_fenced[start : end + 1])


def extract_direct_payload(
    data: bytes,
    finder: Callable[[Any], dict[str, Any] | None],
    text_extractor: Callable[[Any], str | None],
) -> dict[str, Any] | None:
    """
    统一的 payload 提取入口

    先严格解析响应，再递归查找结构化 payload，
    最后才把供应商的消息文本当作内嵌 JSON 解析。
    """
    decoded = load_json(data)
    if not isinstance(decoded, dict):
        return None

    payload = finder(decoded)
    if payload is not None:
        return payload

    candidate_text = text_extractor(decoded)
    if candidate_text:
        return parse_json_string_object(candidate_text)
    return None


def grammar_result_from(
    payload: dict[str, Any],
    source_text: str,
    forced_legacy_fallback: bool = False,
) -> GrammarCheckResult:
    """把 payload 归一化为三种改写，缺失的字段从已有改写中回填"""
    clean_up = non_empty_string(payload.get("clean_up"))
    better_flow = non_empty_string(payload.get("better_flow"))
    concise = non_empty_string(payload.get("concise"))
    legacy_corrected = non_empty_string(payload.get("corrected"))
    legacy_rephrased = non_empty_string(payload.get("rephrased"))
    notes = non_empty_string(payload.get("notes"))

    used_legacy_fallback = forced_legacy_fallback

    if not clean_up and legacy_corrected:
        clean_up = legacy_corrected
        used_legacy_fallback = True
    if not better_flow and legacy_rephrased:
        better_flow = legacy_rephrased
        used_legacy_fallback = True
    if not concise:
        if legacy_rephrased:
            concise = legacy_rephrased
            used_legacy_fallback = True
        elif legacy_corrected:
            concise = legacy_corrected
            used_legacy_fallback = True

    if not (clean_up or better_flow or concise):
        raise InvalidResponseError("语法检查响应中没有任何改写结果")

    if not clean_up:
        clean_up = better_flow or concise
    if not better_flow:
        better_flow = clean_up or concise
    if not concise:
        concise = better_flow or clean_up

    return GrammarCheckResult(
        source_text=source_text.strip(),
        clean_up=clean_up,
        better_flow=better_flow,
        concise=concise,
        notes=notes,
        used_legacy_fallback=used_legacy_fallback,
    )


def _nested_translation(payload: dict[str, Any]) -> str:
    nested = payload.get("data")
    if isinstance(nested, dict):
        return first_non_empty_string(
            nested, ("translation", "translated_text", "result")
        )
    nested = payload.get("result")
    if isinstance(nested, dict):
        return first_non_empty_string(
            nested, ("translation", "translated_text", "text")
        )
    nested = payload.get("output")
    if isinstance(nested, dict):
        return first_non_empty_string(
            nested, ("translation", "translated_text", "text")
        )
    return ""


def translation_result_from(
    payload: dict[str, Any],
    source_text: str,
    target_language: str,
    forced_legacy_fallback: bool = False,
) -> TranslationResult:
    translation = non_empty_string(payload.get("translation"))
    used_legacy_fallback = forced_legacy_fallback

    if not translation:
        translation = first_non_empty_string(
            payload, ("translated_text", "translatedText", "output", "result")
        )
        if translation:
            used_legacy_fallback = True
    if not translation:
        translation = _nested_translation(payload)
        if translation:
            used_legacy_fallback = True
    if not translation:
        raise InvalidResponseError("翻译响应中没有译文")

    source_language = first_non_empty_string(
        payload,
        ("detected_source_language", "source_language", "sourceLanguage", "from"),
    )
    notes = first_non_empty_string(payload, ("notes", "note", "explanation"))

    return TranslationResult(
        source_text=source_text.strip(),
        translated_text=translation,
        detected_source_language=source_language,
        target_language=target_language,
        notes=notes,
        used_legacy_fallback=used_legacy_fallback,
    )
