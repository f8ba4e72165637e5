"""Model catalog API endpoints"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from models.provider import ModelsResponse
from routers.deps import get_registry
from services.provider_registry import ProviderRegistry

router = APIRouter()


@router.get("/models", response_model=ModelsResponse)
async def list_models(registry: ProviderRegistry = Depends(get_registry)) -> ModelsResponse:
    """All known models with their current availability"""
    return ModelsResponse(models=registry.list_models())
