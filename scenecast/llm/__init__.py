"""Text generation gateways (OpenAI chat completions and Gemini)."""

from scenecast.llm.gateway import (
    ModelProvider,
    ProviderConfig,
    TextGateway,
    OpenAIChatGateway,
    GeminiTextGateway,
    create_text_gateway,
)

__all__ = [
    "ModelProvider",
    "ProviderConfig",
    "TextGateway",
    "OpenAIChatGateway",
    "GeminiTextGateway",
    "create_text_gateway",
]
