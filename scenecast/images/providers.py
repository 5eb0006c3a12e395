"""
SceneCast Image Providers

HTTP clients for Gemini image generation and Together AI FLUX, plus the
shared prompt truncation and error mapping.
"""

import base64
import binascii
import io
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from scenecast.core.exceptions import ImageGenerationError, MissingConfigError
from scenecast.core.logging_config import get_logger
from scenecast.core.retry import IMAGE_GENERATION_RETRY_CONFIG, async_retry, is_transient_http_error

logger = get_logger("images.providers")

MAX_PROMPT_LENGTH = 4000

QUALITY_SUFFIX = (
    "high quality cinematic illustration, detailed artwork, professional illustration, crisp details"
)
DEFAULT_AVOID = "blurry, distorted, low resolution, poor quality, deformed, unnatural, pixelated"
EXTRA_AVOID = "blurry, distorted, low resolution, poor quality, deformed, pixelated"


def truncate_prompt(prompt: str, max_length: int = MAX_PROMPT_LENGTH) -> str:
    """Cut a prompt at the last sentence or line break before max_length."""
    if len(prompt) <= max_length:
        return prompt
    truncated = prompt[:max_length]
    break_point = max(truncated.rfind("."), truncated.rfind("\n"))
    return truncated[:break_point + 1] if break_point > 0 else truncated


def friendly_error_message(provider_label: str, status_code: Optional[int], detail: str) -> str:
    """Map a provider failure to a message safe to show users."""
    lowered = detail.lower()
    if "invalid_request" in lowered or status_code == 400:
        return "Invalid request: Please check your prompt and parameters."
    if "authentication" in lowered or status_code in (401, 403):
        return "Authentication failed: Please check your API key."
    if "quota" in lowered or status_code == 429:
        return "API quota exceeded: Please check your usage limits."
    return f"Error from {provider_label}: {detail}"


def normalize_png(image_bytes: bytes) -> Tuple[bytes, int, int]:
    """
    Re-encode provider output as PNG.

    Returns:
        (png_bytes, width, height)

    Raises:
        ImageGenerationError: If the bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if img.format == "PNG":
                return image_bytes, width, height
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
            return buffer.getvalue(), width, height
    except (UnidentifiedImageError, OSError) as e:
        raise ImageGenerationError("image", f"Provider returned an unreadable image: {e}") from e


def _decode_base64(data: str, provider: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageGenerationError(provider, "Provider returned invalid base64 image data") from e


@dataclass
class GeneratedImage:
    """One generated image and what produced it."""
    image_bytes: bytes
    mime_type: str
    prompt: str
    text: str
    seed: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ImageClient(ABC):
    """Abstract image generation client."""

    provider: str = "image"
    label: str = "Image API"

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 120.0):
        if not api_key:
            raise MissingConfigError(f"{self.provider.upper()}_API_KEY", "No API key available")
        self.api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @abstractmethod
    async def generate(self, prompt: str, negative_prompt: Optional[str] = None, **options: Any) -> GeneratedImage:
        """Generate one image."""

    @async_retry(IMAGE_GENERATION_RETRY_CONFIG, should_retry=is_transient_http_error)
    async def _post_json(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(url, headers=headers, json=body)
        response.raise_for_status()
        return response.json()

    async def _request(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await self._post_json(url, headers, body)
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            logger.error(f"{self.label} returned HTTP {e.response.status_code}: {detail[:300]}")
            raise ImageGenerationError(
                self.provider,
                friendly_error_message(self.label, e.response.status_code, detail),
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.label} request failed: {e}")
            raise ImageGenerationError(self.provider, f"Error from {self.label}: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# =============================================================================
# GEMINI
# =============================================================================

class GeminiImageClient(ImageClient):
    """Gemini image generation through generateContent with image output."""

    provider = "gemini"
    label = "Gemini API"

    TEMPERATURE = 0.6
    TOP_K = 40
    TOP_P = 0.85

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash-preview-image-generation",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, http_client=http_client, timeout=timeout)
        self.model = model
        self.base_url = base_url.rstrip("/")

    async def generate(
        self,
        prompt: str,
        negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        steps: Optional[int] = None,
        **options: Any,
    ) -> GeneratedImage:
        processed = truncate_prompt(prompt)
        processed_negative = truncate_prompt(negative_prompt) if negative_prompt else ""
        seed = seed if seed is not None else random.randint(0, 999_999)

        if processed_negative:
            avoid = f"Avoid: {processed_negative}, {EXTRA_AVOID}"
        else:
            avoid = f"Avoid: {DEFAULT_AVOID}"

        body = {
            "contents": [{"parts": [{"text": f"{processed}. {QUALITY_SUFFIX}\n\n{avoid}"}]}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "temperature": self.TEMPERATURE,
                "topK": self.TOP_K,
                "topP": self.TOP_P,
                "seed": seed,
            },
        }
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        url = f"{self.base_url}/models/{self.model}:generateContent"

        data = await self._request(url, headers, body)
        image_b64, mime_type, text = self._extract_parts(data)

        logger.info(f"Gemini image generated (seed={seed}, prompt {len(processed)} chars)")
        return GeneratedImage(
            image_bytes=_decode_base64(image_b64, self.provider),
            mime_type=mime_type,
            prompt=processed,
            text=text or "Image generated successfully",
            seed=seed,
            metadata={
                "seed": seed,
                "steps": steps,
                "promptLength": len(processed),
                "wasPromptTruncated": len(processed) < len(prompt),
                "temperature": self.TEMPERATURE,
                "topK": self.TOP_K,
                "topP": self.TOP_P,
                "model": self.model,
            },
        )

    def _extract_parts(self, data: Dict[str, Any]) -> Tuple[str, str, Optional[str]]:
        candidates: List[Dict[str, Any]] = data.get("candidates") or []
        parts = candidates[0].get("content", {}).get("parts") if candidates else None
        if not parts:
            raise ImageGenerationError(self.provider, "No valid response received from the AI model")

        image_b64 = None
        mime_type = "image/png"
        text = None
        for part in parts:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and image_b64 is None:
                image_b64 = inline.get("data")
                mime_type = inline.get("mimeType") or inline.get("mime_type") or mime_type
            elif part.get("text"):
                text = part["text"]

        if not image_b64:
            raise ImageGenerationError(self.provider, "No image was generated")
        return image_b64, mime_type, text


# =============================================================================
# TOGETHER AI
# =============================================================================

class TogetherImageClient(ImageClient):
    """Together AI images/generations (FLUX models)."""

    provider = "together"
    label = "Together AI"

    DEFAULT_WIDTH = 1280
    DEFAULT_HEIGHT = 720
    DEFAULT_STEPS = 4
    MAX_STEPS = 4

    def __init__(
        self,
        api_key: str,
        model: str = "black-forest-labs/FLUX.1-schnell-Free",
        base_url: str = "https://api.together.xyz/v1",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, http_client=http_client, timeout=timeout)
        self.model = model
        self.base_url = base_url.rstrip("/")

    @classmethod
    def clamp_steps(cls, steps: Optional[int]) -> int:
        """Together accepts 1..4 steps."""
        if not steps:
            return cls.DEFAULT_STEPS
        return min(max(1, int(steps)), cls.MAX_STEPS)

    async def generate(
        self,
        prompt: str,
        negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        steps: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        model: Optional[str] = None,
        **options: Any,
    ) -> GeneratedImage:
        processed = truncate_prompt(prompt)
        width = width or self.DEFAULT_WIDTH
        height = height or self.DEFAULT_HEIGHT
        steps = self.clamp_steps(steps)
        model = model or self.model

        body: Dict[str, Any] = {
            "model": model,
            "prompt": processed,
            "width": width,
            "height": height,
            "steps": steps,
            "n": 1,
            "response_format": "base64",
        }
        if negative_prompt:
            body["negative_prompt"] = truncate_prompt(negative_prompt)
        if seed is not None:
            body["seed"] = int(seed)

        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        data = await self._request(f"{self.base_url}/images/generations", headers, body)

        items = data.get("data") or []
        if not items or not items[0].get("b64_json"):
            raise ImageGenerationError(self.provider, "No valid response received from Together AI")

        logger.info(f"Together image generated ({model}, {width}x{height}, steps={steps})")
        return GeneratedImage(
            image_bytes=_decode_base64(items[0]["b64_json"], self.provider),
            mime_type="image/png",
            prompt=processed,
            text="Image generated successfully with Together AI",
            seed=seed,
            metadata={
                "width": width,
                "height": height,
                "steps": steps,
                "model": model,
                "promptLength": len(processed),
                "wasPromptTruncated": len(processed) < len(prompt),
            },
        )
