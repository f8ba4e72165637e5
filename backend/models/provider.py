"""Provider catalog data models"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ModelDescriptor(BaseModel):
    """A model offered by a provider"""

    model_config = ConfigDict(frozen=True)

    id: str  # Provider-native model identifier
    name: str
    context_window: int
    description: str
    category: str | None = None  # Selects extra request options


class ProviderDescriptor(BaseModel):
    """An LLM vendor exposing a chat-completion API"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    base_url: str
    env_key: str  # Environment variable holding the API key
    transport: str = "http"  # "sdk" or "http"
    models: dict[str, ModelDescriptor]


class ResolvedModel(BaseModel):
    """Result of resolving a "provider/model" key"""

    model_config = ConfigDict(frozen=True)

    key: str
    provider: ProviderDescriptor
    model: ModelDescriptor


class ModelInfo(BaseModel):
    """Model listing row sent to clients"""

    key: str
    provider: str
    providerName: str
    id: str
    name: str
    contextWindow: int
    description: str
    category: str | None = None
    available: bool


class ModelsResponse(BaseModel):
    ok: bool = True
    models: list[ModelInfo]


class HealthResponse(BaseModel):
    """Aggregate provider availability"""

    ok: bool = True
    status: str = "healthy"
    availableProviders: list[str]
    totalProviders: int
    totalModels: int
    availableModels: int
