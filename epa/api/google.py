"""Google/Gemini 官方接口供应商实现。"""

from __future__ import annotations

import urllib.parse
from typing import Any

from astrbot.api import logger

from ..api_types import ProviderConfig
from ..payload import extract_direct_payload, first_gemini_candidate_text
from ..prompts import get_grammar_prompt, get_translation_prompt
from ..transport import build_headers
from .base import GRAMMAR, PayloadFinder, ProviderRequest, TaskRequest


class GoogleProvider:
    name = "gemini_direct"
    fallback_models = ("gemini-3-flash-preview", "gemini-2.5-flash")

    # Google 官方 API 默认地址
    GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

    def build_request(
        self, *, task: TaskRequest, model: str, config: ProviderConfig
    ) -> ProviderRequest:
        encoded_model = urllib.parse.quote(model, safe="/")
        url = f"{self.GOOGLE_API_BASE}/models/{encoded_model}:generateContent"

        payload = self._prepare_payload(task=task)
        # Gemini 使用 x-goog-api-key，不走 Bearer
        headers = build_headers(
            config.api_key,
            "",
            include_bearer_auth=False,
            include_custom_headers=False,
            extra_headers={"x-goog-api-key": config.api_key},
        )
        logger.debug(f"智能构建API URL: {url}")
        return ProviderRequest(url=url, headers=headers, payload=payload)

    def _prepare_payload(self, *, task: TaskRequest) -> dict[str, Any]:
        if task.kind == GRAMMAR:
            prompt = get_grammar_prompt(task.text)
        else:
            prompt = get_translation_prompt(task.text, task.target_language)

        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.2,
                "responseMimeType": "application/json",
            },
        }

    def extract_payload(
        self, data: bytes, finder: PayloadFinder
    ) -> dict[str, Any] | None:
        return extract_direct_payload(data, finder, first_gemini_candidate_text)
