"""
AI 客户端模块
按供应商预设编排语法改写、翻译与语音合成请求
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, TypeVar

from astrbot.api import logger

from .api import ApiProvider, ProviderRequest, TaskRequest, get_api_provider
from .api.base import GRAMMAR, TRANSLATE
from .api.speech import (
    SpeechRoute,
    build_ark_request,
    build_generic_request,
    build_openspeech_request,
    resolve_speech_route,
)
from .api_types import (
    APIError,
    GrammarCheckResult,
    HttpError,
    InvalidConfigError,
    InvalidResponseError,
    ProviderConfig,
    ProviderPreset,
    RequestCancelledError,
    SpeechProviderPreset,
    TranslationResult,
)
from .audio import decode_audio_response
from .payload import (
    find_grammar_payload,
    find_translation_payload,
    grammar_result_from,
    translation_result_from,
)
from .retry import (
    LEGACY_FALLBACK_STATUS_CODES,
    RetryPolicy,
    candidate_models,
    try_models_in_order,
    with_retry,
)
from .transport import HttpResponse, HttpTransport, raise_for_status

T = TypeVar("T")

# (payload, 是否强制标记旧版回退) -> 结果
ResultParser = Callable[[dict[str, Any], bool], T]

DEFAULT_REQUEST_TIMEOUT = 20.0


class AIClient:
    """语法改写、翻译、语音合成三种动作的统一入口"""

    def __init__(
        self,
        transport: HttpTransport | None = None,
        retry_policy: RetryPolicy | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        初始化 AI 客户端

        Args:
            transport: HTTP 传输层，缺省时内部创建
            retry_policy: 单次请求的重试策略
            request_timeout: 语法/翻译请求的超时秒数，语音合成不设置
        """
        self.transport = transport or HttpTransport()
        self.retry_policy = retry_policy or RetryPolicy()
        self.request_timeout = request_timeout
        logger.debug(
            f"AI 客户端已初始化 timeout={request_timeout}s "
            f"max_attempts={self.retry_policy.max_attempts}"
        )

    async def close(self):
        await self.transport.close()

    async def grammar_check(
        self,
        text: str,
        preset: ProviderPreset | str,
        config: ProviderConfig,
    ) -> GrammarCheckResult:
        """返回三种改写，空缺字段已回填"""
        task = TaskRequest(kind=GRAMMAR, text=text)

        def parse(payload: dict[str, Any], forced: bool) -> GrammarCheckResult:
            return grammar_result_from(payload, text, forced_legacy_fallback=forced)

        return await self._run_task(task, preset, config, parse)

    async def translate(
        self,
        text: str,
        preset: ProviderPreset | str,
        config: ProviderConfig,
        target_language: str,
    ) -> TranslationResult:
        task = TaskRequest(kind=TRANSLATE, text=text, target_language=target_language)

        def parse(payload: dict[str, Any], forced: bool) -> TranslationResult:
            return translation_result_from(
                payload, text, target_language, forced_legacy_fallback=forced
            )

        return await self._run_task(task, preset, config, parse)

    async def tts_audio(
        self,
        text: str,
        config: ProviderConfig,
        preset: SpeechProviderPreset | str = SpeechProviderPreset.CUSTOM,
    ) -> bytes:
        """
        合成语音并返回音频字节

        单次请求，不重试也不切换模型
        """
        speech_preset = SpeechProviderPreset.parse(preset)
        route = resolve_speech_route(speech_preset, config.base_url)

        request: ProviderRequest | None
        if route == SpeechRoute.OPENSPEECH:
            request = build_openspeech_request(text, config)
            if request is None:
                raise InvalidConfigError(
                    "豆包语音需要配置 请求地址、App ID、Resource ID、Access Key 和音色"
                )
            provider_name = "doubao_openspeech"
        else:
            request = build_ark_request(text, config)
            provider_name = "doubao_ark"
            if request is None:
                request = build_generic_request(text, config)
                provider_name = "custom_tts"

        response = await self._send_logged(
            request,
            provider=provider_name,
            task="tts",
            model=config.model,
            attempt=1,
            timeout=None,
        )
        return decode_audio_response(response.body, response.content_type)

    async def _run_task(
        self,
        task: TaskRequest,
        preset: ProviderPreset | str,
        config: ProviderConfig,
        parse: ResultParser[T],
    ) -> T:
        normalized = ProviderPreset.parse(preset)
        provider = get_api_provider(normalized)

        if normalized == ProviderPreset.CUSTOM:
            return await self._run_custom_task(provider, task, config, parse)

        model = config.model.strip()
        if not model:
            raise InvalidConfigError(f"{normalized.title} 需要配置模型")

        models = candidate_models(model, provider.fallback_models)

        async def attempt(candidate: str) -> T:
            return await self._attempt(provider, task, candidate, config, parse)

        return await try_models_in_order(models, attempt, provider=provider.name)

    async def _run_custom_task(
        self,
        provider: ApiProvider,
        task: TaskRequest,
        config: ProviderConfig,
        parse: ResultParser[T],
    ) -> T:
        try:
            return await self._attempt(provider, task, config.model, config, parse)
        except HttpError as e:
            if e.code not in LEGACY_FALLBACK_STATUS_CODES:
                raise
            logger.info(
                f"自定义后端返回 HTTP {e.code}，改用旧版接口重试 task={task.task_name}"
            )

        legacy_task = TaskRequest(
            kind=task.kind,
            text=task.text,
            target_language=task.target_language,
            legacy=True,
        )
        return await self._attempt(
            provider, legacy_task, config.model, config, parse, forced_legacy=True
        )

    async def _attempt(
        self,
        provider: ApiProvider,
        task: TaskRequest,
        model: str,
        config: ProviderConfig,
        parse: ResultParser[T],
        forced_legacy: bool = False,
    ) -> T:
        request = provider.build_request(task=task, model=model, config=config)
        response = await self._post_json(
            request, provider=provider.name, task=task.task_name, model=model
        )

        finder = find_grammar_payload if task.kind == GRAMMAR else find_translation_payload
        payload = provider.extract_payload(response.body, finder)
        if payload is None:
            logger.warning(
                f"无法从响应中解析结果 provider={provider.name} task={task.task_name} "
                f"model={model} body={response.body[:200]!r}"
            )
            raise InvalidResponseError()
        return parse(payload, forced_legacy)

    async def _post_json(
        self, request: ProviderRequest, *, provider: str, task: str, model: str
    ) -> HttpResponse:
        async def operation(attempt: int) -> HttpResponse:
            return await self._send_logged(
                request,
                provider=provider,
                task=task,
                model=model,
                attempt=attempt,
                timeout=self.request_timeout,
            )

        return await with_retry(
            operation,
            policy=self.retry_policy,
            label=f"provider={provider} task={task} model={model}",
        )

    async def _send_logged(
        self,
        request: ProviderRequest,
        *,
        provider: str,
        task: str,
        model: str,
        attempt: int,
        timeout: float | None,
    ) -> HttpResponse:
        started = time.monotonic()
        context = f"provider={provider} task={task} model={model} attempt={attempt}"
        try:
            response = await self.transport.send(request, timeout=timeout)
            raise_for_status(response)
        except (RequestCancelledError, asyncio.CancelledError):
            logger.debug(f"请求已取消 {context}")
            raise RequestCancelledError() from None
        except APIError as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.warning(
                f"请求失败 {context} duration_ms={duration_ms} "
                f"error={e.error_type}: {e}"
            )
            raise

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"请求成功 {context} status={response.status} duration_ms={duration_ms}"
        )
        return response


_api_client: AIClient | None = None


def get_api_client(
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    retry_policy: RetryPolicy | None = None,
) -> AIClient:
    """获取或创建 AI 客户端实例

    参数只在首次创建时生效；重载配置前需先调用 clear_api_client
    """
    global _api_client
    if _api_client is None:
        _api_client = AIClient(
            retry_policy=retry_policy, request_timeout=request_timeout
        )
    return _api_client


def clear_api_client():
    """清除全局 AI 客户端实例"""
    global _api_client
    _api_client = None
