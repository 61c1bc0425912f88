"""Provider adapters. One module per backend, all implementing ProviderAdapter."""

from wizard_llm.llm.providers.anthropic import AnthropicAdapter
from wizard_llm.llm.providers.base import (
    InvocationRequest,
    InvocationResponse,
    ProviderAdapter,
    TaskCapabilities,
    UsageMetadata,
)
from wizard_llm.llm.providers.dalle import DalleImageAdapter
from wizard_llm.llm.providers.gemini import GeminiAdapter
from wizard_llm.llm.providers.imagen import ImagenImageAdapter
from wizard_llm.llm.providers.openai import OpenAIAdapter
from wizard_llm.llm.providers.stable_diffusion import StableDiffusionAdapter

__all__ = [
    "AnthropicAdapter",
    "DalleImageAdapter",
    "GeminiAdapter",
    "ImagenImageAdapter",
    "InvocationRequest",
    "InvocationResponse",
    "OpenAIAdapter",
    "ProviderAdapter",
    "StableDiffusionAdapter",
    "TaskCapabilities",
    "UsageMetadata",
]
