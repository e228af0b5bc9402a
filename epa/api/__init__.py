from .base import ApiProvider, ProviderRequest, TaskRequest
from .registry import get_api_provider

__all__ = ["ApiProvider", "ProviderRequest", "TaskRequest", "get_api_provider"]
