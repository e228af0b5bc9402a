"""供应商接口定义。

用于约束各供应商实现的输入/输出形态。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol

from ..api_types import ProviderConfig

GRAMMAR = "grammar"
TRANSLATE = "translate"


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    headers: dict[str, str]
    payload: dict[str, Any]
    method: str = "POST"


@dataclass(frozen=True)
class TaskRequest:
    """一次逻辑动作（语法改写或翻译）的输入"""

    kind: str
    text: str
    target_language: str = ""
    legacy: bool = False

    @property
    def task_name(self) -> str:
        """自定义后端使用的任务名，legacy 为旧版契约"""
        if self.kind == GRAMMAR:
            return "grammar_rephrase" if self.legacy else "grammar_check"
        return "translation" if self.legacy else "translate"


PayloadFinder = Callable[[Any], "dict[str, Any] | None"]


class ApiProvider(Protocol):
    """供应商策略接口。

    每个供应商负责：请求 URL/headers/payload 的构建，以及从响应信封中定位有效 payload。
    重试、模型回退、旧版契约回退等通用能力由 `AIClient` 提供。
    """

    name: str
    fallback_models: tuple[str, ...]

    def build_request(
        self, *, task: TaskRequest, model: str, config: ProviderConfig
    ) -> ProviderRequest: ...

    def extract_payload(
        self, data: bytes, finder: PayloadFinder
    ) -> dict[str, Any] | None: ...
