"""Request-scoped access to the services built at startup"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from services.config_manager import ConfigManager
from services.llm_service import ProviderClientRegistry
from services.provider_registry import ProviderRegistry


def get_config_manager(request: Request) -> ConfigManager:
    return request.app.state.config_manager


def get_config(request: Request) -> dict[str, Any]:
    return get_config_manager(request).get_config()


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_clients(request: Request) -> ProviderClientRegistry:
    return request.app.state.clients
