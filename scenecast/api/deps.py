"""
API Dependencies

Providers for settings, gateways, image clients and the blob store. Tests
replace these through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends

from scenecast.core.config import Settings, get_settings
from scenecast.core.exceptions import InvalidRequestError
from scenecast.core.logging_config import get_logger
from scenecast.images.providers import GeminiImageClient, ImageClient, TogetherImageClient
from scenecast.llm.gateway import ModelProvider, ProviderConfig, TextGateway, create_text_gateway
from scenecast.storage.blob_store import BlobStore, create_blob_store

logger = get_logger("api.deps")

TextGatewayFactory = Callable[..., TextGateway]
ImageClientFactory = Callable[..., ImageClient]


def get_app_settings() -> Settings:
    return get_settings()


def get_text_gateway_factory(settings: Settings = Depends(get_app_settings)) -> TextGatewayFactory:
    """Factory building a gateway per request from explicit provider config."""

    def factory(
        provider: ModelProvider,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> TextGateway:
        config = ProviderConfig.from_settings(settings, provider, api_key=api_key, model=model)
        return create_text_gateway(config)

    return factory


def get_image_client_factory(settings: Settings = Depends(get_app_settings)) -> ImageClientFactory:
    """Factory building an image client for "gemini" or "together"."""

    def factory(provider: str, api_key: Optional[str] = None) -> ImageClient:
        if provider == "gemini":
            return GeminiImageClient(
                api_key or settings.gemini_api_key,
                model=settings.gemini_image_model,
                base_url=settings.gemini_base_url,
                timeout=settings.request_timeout,
            )
        if provider == "together":
            return TogetherImageClient(
                api_key or settings.together_api_key,
                model=settings.together_image_model,
                base_url=settings.together_base_url,
                timeout=settings.request_timeout,
            )
        raise InvalidRequestError(f"Unknown image provider: {provider}")

    return factory


@lru_cache()
def _shared_blob_store() -> BlobStore:
    store = create_blob_store(get_settings())
    logger.info(f"Blob store ready: {type(store).__name__}")
    return store


def get_blob_store() -> BlobStore:
    return _shared_blob_store()
