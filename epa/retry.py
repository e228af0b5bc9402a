"""
重试与回退模块
单次请求的重试、模型回退判定以及按顺序尝试的组合器
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from astrbot.api import logger

from .api_types import (
    APIError,
    HttpError,
    InvalidResponseError,
    NetworkError,
    RequestCancelledError,
    RequestTimeoutError,
)

T = TypeVar("T")

# 自定义后端返回这些状态码时改用旧版任务名/请求体重试一次
LEGACY_FALLBACK_STATUS_CODES = frozenset({400, 404, 422})

# 错误信息中出现这些词时视为“模型不存在/不可用”
MODEL_FALLBACK_KEYWORDS = (
    "model",
    "not found",
    "not available",
    "not supported",
    "unsupported",
    "unknown",
    "does not exist",
    "invalid model",
    "模型",
    "不存在",
    "不可用",
    "不支持",
    "无效",
)


@dataclass(frozen=True)
class RetryPolicy:
    """单次 HTTP 请求的重试策略"""

    max_attempts: int = 2
    delay: float = 0.6
    retryable_status_codes: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})
    sleep: Callable[[float], Awaitable[None]] = field(
        default=asyncio.sleep, repr=False, compare=False
    )

    def should_retry(self, error: Exception) -> bool:
        """仅超时、网络错误与指定的 HTTP 状态码可重试"""
        if isinstance(error, (RequestTimeoutError, NetworkError)):
            return True
        if isinstance(error, HttpError):
            return error.code in self.retryable_status_codes
        return False


def normalize_error(error: BaseException) -> APIError:
    """把任意异常统一为 APIError"""
    if isinstance(error, APIError):
        return error
    if isinstance(error, asyncio.CancelledError):
        return RequestCancelledError()
    if isinstance(error, asyncio.TimeoutError):
        return RequestTimeoutError()
    message = str(error).strip()
    return NetworkError(message or "Unknown network error")


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    *,
    policy: RetryPolicy,
    label: str = "",
) -> T:
    """执行 operation(attempt)，按策略重试，attempt 从 1 开始"""
    last_error: APIError | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation(attempt)
        except asyncio.CancelledError:
            raise RequestCancelledError() from None
        except Exception as e:
            normalized = normalize_error(e)
            last_error = normalized
            if isinstance(normalized, RequestCancelledError):
                raise normalized from None
            if attempt < policy.max_attempts and policy.should_retry(normalized):
                logger.info(f"请求重试 {label} next_attempt={attempt + 1}")
                try:
                    await policy.sleep(policy.delay)
                except asyncio.CancelledError:
                    raise RequestCancelledError() from None
                continue
            if normalized is e:
                raise
            raise normalized from e

    raise last_error or InvalidResponseError()


def should_fallback_model(error: Exception) -> bool:
    """仅 400/404 且错误信息为空或指向模型问题时才切换到下一个模型"""
    if not isinstance(error, HttpError):
        return False
    if error.code not in (400, 404):
        return False
    lowered = (error.detail or "").lower()
    if not lowered:
        return True
    return any(keyword in lowered for keyword in MODEL_FALLBACK_KEYWORDS)


def candidate_models(primary: str, fallbacks: tuple[str, ...]) -> list[str]:
    """配置的模型在前，固定回退模型在后，去重保序"""
    models: list[str] = []
    for model in (primary, *fallbacks):
        if model and model not in models:
            models.append(model)
    return models


async def try_models_in_order(
    models: list[str],
    attempt: Callable[[str], Awaitable[T]],
    *,
    provider: str = "",
) -> T:
    """按顺序尝试模型，遇到不可回退的错误立即抛出，全部失败时抛出最后一个错误"""
    last_error: Exception = InvalidResponseError()
    for index, model in enumerate(models):
        try:
            return await attempt(model)
        except APIError as e:
            last_error = e
            if should_fallback_model(e) and index + 1 < len(models):
                logger.info(
                    f"切换 {provider} 模型: {model} -> {models[index + 1]}"
                )
                continue
            raise

    raise last_error
