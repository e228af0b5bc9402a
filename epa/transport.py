"""
HTTP 传输模块
负责请求头拼装、JSON 请求发送与 HTTP 结果分类
"""

from __future__ import annotations

import asyncio
import json
import os
import urllib.parse
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp

from astrbot.api import logger

from .api_types import (
    APIError,
    HttpError,
    InvalidConfigError,
    NetworkError,
    RequestCancelledError,
    RequestTimeoutError,
)

if TYPE_CHECKING:
    from .api.base import ProviderRequest

# 错误体无法结构化解析时，最多截取的原文长度
ERROR_MESSAGE_MAX_CHARS = 240


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes
    content_type: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def parse_headers_json(raw: str | None) -> dict[str, str]:
    """解析用户填写的 JSON 请求头，非法 JSON 或非字符串值一律视为空"""
    if not raw or not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("自定义请求头不是合法 JSON，已忽略")
        return {}
    if not isinstance(decoded, dict):
        return {}
    if not all(isinstance(v, str) for v in decoded.values()):
        logger.warning("自定义请求头的值必须全部为字符串，已忽略")
        return {}
    return {str(k): v for k, v in decoded.items()}


def authorization_header_value(raw: str | None) -> str:
    """把用户保存的凭证规范化为 `Bearer <token>`"""
    token = (raw or "").strip()
    if not token:
        return ""

    if token.lower().startswith("authorization:"):
        token = token[len("authorization:") :].strip()

    if len(token) > 1 and token.startswith('"') and token.endswith('"'):
        token = token[1:-1].strip()

    if not token or token.lower() == "bearer":
        return ""
    if token.lower().startswith("bearer "):
        trimmed = token[len("bearer ") :].strip()
        return f"Bearer {trimmed}" if trimmed else ""

    return f"Bearer {token}"


def _find_header(headers: dict[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    # HTTP 头大小写不敏感，覆盖时先移除同名键
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]
    headers[name] = value


def build_headers(
    api_key: str,
    headers_json: str,
    *,
    include_bearer_auth: bool = True,
    include_custom_headers: bool = True,
    extra_headers: dict[str, str] | None = None,
) -> dict[str, str]:
    """
    构建请求头

    优先级：供应商专用头 > 用户自定义头 > 由凭证合成的 Bearer 头
    """
    headers: dict[str, str] = {"Content-Type": "application/json"}
    if include_custom_headers:
        for key, value in parse_headers_json(headers_json).items():
            _set_header(headers, key, value)
    for key, value in (extra_headers or {}).items():
        _set_header(headers, key, value)

    if not include_bearer_auth:
        return headers

    existing_auth = (_find_header(headers, "Authorization") or "").strip()
    if not existing_auth:
        auth = authorization_header_value(api_key)
        if auth:
            _set_header(headers, "Authorization", auth)
    return headers


def is_valid_url(url: str | None) -> bool:
    if not url or not url.strip():
        return False
    parsed = urllib.parse.urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_error_message(body: bytes) -> str | None:
    """从错误响应体中提取可读信息"""
    if not body:
        return None

    try:
        decoded = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        decoded = None

    if isinstance(decoded, dict):
        message = decoded.get("message")
        if isinstance(message, str) and message:
            return message
        error_obj = decoded.get("error")
        if isinstance(error_obj, dict):
            for key in ("message", "code"):
                value = error_obj.get(key)
                if isinstance(value, str) and value:
                    return value
        for key in ("code", "error_msg", "msg"):
            value = decoded.get(key)
            if isinstance(value, str) and value:
                return value

    text = body.decode("utf-8", errors="replace").strip()
    if text:
        return text[:ERROR_MESSAGE_MAX_CHARS]
    return None


def raise_for_status(response: HttpResponse) -> None:
    if not response.ok:
        raise HttpError(response.status, extract_error_message(response.body))


class HttpTransport:
    """无状态的 JSON POST 执行器，可被多个并发调用共享"""

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self.proxy = (
            os.environ.get("HTTPS_PROXY")
            or os.environ.get("https_proxy")
            or os.environ.get("HTTP_PROXY")
            or os.environ.get("http_proxy")
        )
        if self.proxy:
            logger.debug(f"检测到代理配置，使用代理: {self.proxy}")
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """获取或创建可复用的 aiohttp 会话"""
        if self._session and not self._session.closed:
            return self._session
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session
            self._session = aiohttp.ClientSession()
            self._owns_session = True
            return self._session

    async def close(self):
        """关闭内部复用的 aiohttp 会话"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def send(
        self, request: ProviderRequest, *, timeout: float | None = None
    ) -> HttpResponse:
        """发送请求并返回 (状态码, 响应体)，不对状态码做判断"""
        if not is_valid_url(request.url):
            raise InvalidConfigError(f"请求地址无效: {request.url!r}")

        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        try:
            session = await self._get_session()
            async with session.request(
                request.method,
                request.url,
                json=request.payload,
                headers=request.headers,
                proxy=self.proxy,
                **kwargs,
            ) as response:
                body = await response.read()
                return HttpResponse(
                    status=response.status,
                    body=body,
                    content_type=response.headers.get("Content-Type", "") or "",
                )
        except APIError:
            raise
        except asyncio.CancelledError:
            raise RequestCancelledError() from None
        except asyncio.TimeoutError:
            raise RequestTimeoutError() from None
        except (aiohttp.ClientError, OSError) as e:
            message = str(e).strip()
            raise NetworkError(message or "Unknown network error") from e
