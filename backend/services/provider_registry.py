"""
Provider Registry - Static catalog of LLM providers and their models
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from models.provider import ModelDescriptor, ModelInfo, ProviderDescriptor, ResolvedModel


def _models(table: dict[str, dict]) -> dict[str, ModelDescriptor]:
    return {key: ModelDescriptor(**fields) for key, fields in table.items()}


GROQ_MODELS = _models({
    # Compound systems
    "compound-beta": {
        "id": "groq/compound",
        "name": "Groq Compound (Beta)",
        "context_window": 131072,
        "description": "AI system with web search and code execution",
        "category": "compound",
    },
    "compound-mini": {
        "id": "groq/compound-mini",
        "name": "Groq Compound Mini",
        "context_window": 131072,
        "description": "Lightweight compound system",
        "category": "compound",
    },
    # GPT-OSS
    "gpt-oss-120b": {
        "id": "openai/gpt-oss-120b",
        "name": "GPT-OSS 120B",
        "context_window": 131072,
        "description": "OpenAI's flagship open-weight model with 120B parameters",
        "category": "gpt-oss",
    },
    "gpt-oss-20b": {
        "id": "openai/gpt-oss-20b",
        "name": "GPT-OSS 20B",
        "context_window": 131072,
        "description": "Efficient GPT-OSS model",
        "category": "gpt-oss",
    },
    # Llama
    "llama-4-maverick": {
        "id": "meta-llama/llama-4-maverick-17b-128e-instruct",
        "name": "Llama 4 Maverick 17B",
        "context_window": 131072,
        "description": "Latest Llama 4 with 128 experts MoE",
        "category": "llama",
    },
    "llama-4-scout": {
        "id": "meta-llama/llama-4-scout-17b-16e-instruct",
        "name": "Llama 4 Scout 17B",
        "context_window": 131072,
        "description": "Llama 4 Scout with 16 experts MoE",
        "category": "llama",
    },
    "llama-3.3-70b": {
        "id": "llama-3.3-70b-versatile",
        "name": "Llama 3.3 70B Versatile",
        "context_window": 131072,
        "description": "Versatile Llama 3.3 model",
        "category": "llama",
    },
    "llama-3.1-8b": {
        "id": "llama-3.1-8b-instant",
        "name": "Llama 3.1 8B Instant",
        "context_window": 131072,
        "description": "Fast Llama 3.1 model",
        "category": "llama",
    },
    "kimi-k2": {
        "id": "moonshotai/kimi-k2-instruct-0905",
        "name": "Kimi K2 (via Groq)",
        "context_window": 262144,
        "description": "Moonshot AI's Kimi K2 with 1T parameters MoE",
        "category": "external",
    },
    "qwen3-32b": {
        "id": "qwen/qwen3-32b",
        "name": "Qwen3 32B",
        "context_window": 131072,
        "description": "Alibaba's Qwen3 model",
        "category": "qwen",
    },
})

OPENAI_MODELS = _models({
    "gpt-4.1": {
        "id": "gpt-4.1",
        "name": "GPT-4.1",
        "context_window": 128000,
        "description": "Latest GPT-4.1 flagship model",
    },
    "gpt-4.1-mini": {
        "id": "gpt-4.1-mini",
        "name": "GPT-4.1 Mini",
        "context_window": 128000,
        "description": "Fast and efficient GPT-4.1",
    },
    "gpt-4o": {
        "id": "gpt-4o",
        "name": "GPT-4o",
        "context_window": 128000,
        "description": "Multimodal GPT-4 Omni",
    },
    "gpt-5.1": {
        "id": "gpt-5.1",
        "name": "GPT-5.1",
        "context_window": 256000,
        "description": "Best model for coding and agentic tasks",
    },
})

DEEPSEEK_MODELS = _models({
    "deepseek-chat": {
        "id": "deepseek-chat",
        "name": "DeepSeek V3.2 Chat",
        "context_window": 64000,
        "description": "DeepSeek-V3.2 non-thinking mode",
    },
    "deepseek-reasoner": {
        "id": "deepseek-reasoner",
        "name": "DeepSeek V3.2 Reasoner",
        "context_window": 64000,
        "description": "DeepSeek-V3.2 thinking mode with reasoning",
    },
})

KIMI_MODELS = _models({
    "kimi-k2": {
        "id": "kimi-k2-0711",
        "name": "Kimi K2",
        "context_window": 262144,
        "description": "1T parameter MoE model, 32B activated",
    },
    "kimi-k2-thinking": {
        "id": "kimi-k2-thinking",
        "name": "Kimi K2 Thinking",
        "context_window": 262144,
        "description": "K2 with extended reasoning capabilities",
    },
    "kimi-latest": {
        "id": "kimi-latest",
        "name": "Kimi Latest",
        "context_window": 262144,
        "description": "Latest Kimi model with image understanding",
    },
})

PROVIDERS: dict[str, ProviderDescriptor] = {
    "groq": ProviderDescriptor(
        id="groq",
        name="Groq",
        base_url="https://api.groq.com/openai/v1",
        env_key="GROQ_API_KEY",
        transport="sdk",
        models=GROQ_MODELS,
    ),
    "openai": ProviderDescriptor(
        id="openai",
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        env_key="OPENAI_API_KEY",
        models=OPENAI_MODELS,
    ),
    "deepseek": ProviderDescriptor(
        id="deepseek",
        name="DeepSeek",
        base_url="https://api.deepseek.com",
        env_key="DEEPSEEK_API_KEY",
        models=DEEPSEEK_MODELS,
    ),
    "kimi": ProviderDescriptor(
        id="kimi",
        name="Kimi (Moonshot)",
        base_url="https://api.moonshot.cn/v1",
        env_key="KIMI_API_KEY",
        models=KIMI_MODELS,
    ),
}


class ProviderRegistry:
    """Read-only view over the provider catalog with live credential checks"""

    def __init__(
        self,
        providers: Mapping[str, ProviderDescriptor] | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.providers = dict(providers if providers is not None else PROVIDERS)
        self._environ = environ if environ is not None else os.environ

    # ========== Credentials ==========

    def credential(self, provider_id: str) -> str | None:
        """Read the provider's API key from the environment, None if unset or blank"""
        provider = self.providers.get(provider_id)
        if provider is None:
            return None
        value = self._environ.get(provider.env_key, "")
        return value.strip() or None

    def is_available(self, provider_id: str) -> bool:
        return self.credential(provider_id) is not None

    # ========== Lookup ==========

    def resolve(self, model_key: str | None) -> ResolvedModel | None:
        """Resolve a "provider/model" key; None when it does not parse or is unknown"""
        if not model_key:
            return None
        provider_id, sep, model_name = model_key.partition("/")
        if not sep or not provider_id or not model_name:
            return None

        provider = self.providers.get(provider_id)
        if provider is None:
            return None
        model = provider.models.get(model_name)
        if model is None:
            return None

        return ResolvedModel(key=model_key, provider=provider, model=model)

    def list_models(self) -> list[ModelInfo]:
        """All catalog models with availability evaluated now"""
        listing = []
        for provider_id, provider in self.providers.items():
            available = self.is_available(provider_id)
            for model_key, model in provider.models.items():
                listing.append(
                    ModelInfo(
                        key=f"{provider_id}/{model_key}",
                        provider=provider_id,
                        providerName=provider.name,
                        id=model.id,
                        name=model.name,
                        contextWindow=model.context_window,
                        description=model.description,
                        category=model.category,
                        available=available,
                    )
                )
        return listing

    def available_provider_names(self) -> list[str]:
        return [p.name for pid, p in self.providers.items() if self.is_available(pid)]

    def summary(self) -> dict:
        """Configured vs. available counts for the health check"""
        models = self.list_models()
        return {
            "availableProviders": self.available_provider_names(),
            "totalProviders": len(self.providers),
            "totalModels": len(models),
            "availableModels": sum(1 for m in models if m.available),
        }
