"""GLM（智谱）直连供应商实现。

协议为 OpenAI 兼容的 chat/completions。
"""

from __future__ import annotations

from typing import Any

from astrbot.api import logger

from ..api_types import ProviderConfig
from ..payload import extract_direct_payload, first_openai_choice_text
from ..prompts import (
    GRAMMAR_SYSTEM_PROMPT,
    TRANSLATION_SYSTEM_PROMPT,
    get_grammar_prompt,
    get_translation_prompt,
)
from ..transport import build_headers
from .base import GRAMMAR, PayloadFinder, ProviderRequest, TaskRequest


class GLMProvider:
    name = "glm_direct"
    fallback_models = ("glm-4-flash-250414", "glm-4.5-flash", "glm-5-air")

    # GLM 官方 chat/completions 地址
    CHAT_COMPLETIONS_ENDPOINT = "https://open.bigmodel.cn/api/paas/v4/chat/completions"

    def build_request(
        self, *, task: TaskRequest, model: str, config: ProviderConfig
    ) -> ProviderRequest:
        payload = self._prepare_payload(task=task, model=model)
        # 直连模式只使用 Bearer 鉴权，忽略用户自定义请求头
        headers = build_headers(
            config.api_key,
            "",
            include_bearer_auth=True,
            include_custom_headers=False,
        )
        logger.debug(f"[glm] 构建请求: model={model} task={task.kind}")
        return ProviderRequest(
            url=self.CHAT_COMPLETIONS_ENDPOINT, headers=headers, payload=payload
        )

    def _prepare_payload(self, *, task: TaskRequest, model: str) -> dict[str, Any]:
        if task.kind == GRAMMAR:
            system_prompt = GRAMMAR_SYSTEM_PROMPT
            prompt = get_grammar_prompt(task.text)
        else:
            system_prompt = TRANSLATION_SYSTEM_PROMPT
            prompt = get_translation_prompt(task.text, task.target_language)

        return {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
        }

    def extract_payload(
        self, data: bytes, finder: PayloadFinder
    ) -> dict[str, Any] | None:
        return extract_direct_payload(data, finder, first_openai_choice_text)
