"""供应商注册表。

集中管理 `ProviderPreset` -> 供应商实现 的映射关系。
"""

from __future__ import annotations

from typing import Final

from ..api_types import ProviderPreset
from .base import ApiProvider
from .custom import CustomBackendProvider
from .glm import GLMProvider
from .google import GoogleProvider

_GLM: Final[GLMProvider] = GLMProvider()
_GOOGLE: Final[GoogleProvider] = GoogleProvider()
_CUSTOM: Final[CustomBackendProvider] = CustomBackendProvider()


def get_api_provider(preset: ProviderPreset | str | None) -> ApiProvider:
    """根据预设返回对应的供应商实现。

    当前映射：
    - `glmDirect` -> GLMProvider
    - `geminiDirect` -> GoogleProvider
    - 其他 -> CustomBackendProvider
    """
    normalized = ProviderPreset.parse(preset)
    if normalized == ProviderPreset.GLM_DIRECT:
        return _GLM
    if normalized == ProviderPreset.GEMINI_DIRECT:
        return _GOOGLE
    return _CUSTOM
