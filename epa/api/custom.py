"""自定义后端供应商实现。

后端直接返回结构化 JSON；请求体按任务名区分新旧两版契约。
"""

from __future__ import annotations

from typing import Any

from ..api_types import ProviderConfig
from ..payload import load_json
from ..transport import build_headers
from .base import GRAMMAR, PayloadFinder, ProviderRequest, TaskRequest


class CustomBackendProvider:
    name = "custom_backend"
    fallback_models: tuple[str, ...] = ()

    def build_request(
        self, *, task: TaskRequest, model: str, config: ProviderConfig
    ) -> ProviderRequest:
        headers = build_headers(config.api_key, config.headers_json)
        return ProviderRequest(
            url=config.base_url.strip(),
            headers=headers,
            payload=self._prepare_payload(task=task, model=model),
        )

    def _prepare_payload(self, *, task: TaskRequest, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "task": task.task_name,
            "text": task.text,
            "model": model,
        }
        if task.kind == GRAMMAR:
            if not task.legacy:
                payload["variants"] = ["clean_up", "better_flow", "concise"]
            return payload

        payload["source_language"] = "auto"
        payload["target_language"] = task.target_language
        return payload

    def extract_payload(
        self, data: bytes, finder: PayloadFinder
    ) -> dict[str, Any] | None:
        # 自定义后端的顶层对象即 payload，不做递归查找
        decoded = load_json(data)
        return decoded if isinstance(decoded, dict) else None
