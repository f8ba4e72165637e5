"""Models module - Pydantic data models"""

from .generation import (
    ChatMessage,
    GeneratedFile,
    GenerationMode,
    GenerationRequest,
    ParseFilesRequest,
    ParseFilesResponse,
    StreamEvent,
)
from .provider import (
    HealthResponse,
    ModelDescriptor,
    ModelInfo,
    ModelsResponse,
    ProviderDescriptor,
    ResolvedModel,
)
from .deploy import AutoDeployResponse, DeployRequest, PushResponse

__all__ = [
    # Generation models
    "ChatMessage",
    "GeneratedFile",
    "GenerationMode",
    "GenerationRequest",
    "ParseFilesRequest",
    "ParseFilesResponse",
    "StreamEvent",
    # Provider models
    "HealthResponse",
    "ModelDescriptor",
    "ModelInfo",
    "ModelsResponse",
    "ProviderDescriptor",
    "ResolvedModel",
    # Deploy models
    "AutoDeployResponse",
    "DeployRequest",
    "PushResponse",
]
