"""
Tests for ImageService: templating, normalization and blob naming.
"""

import base64
import io
from typing import Any, Optional

import pytest
from PIL import Image

from scenecast.core.exceptions import BlobExistsError, StorageError
from scenecast.images.providers import GeneratedImage, ImageClient
from scenecast.images.service import ImageService
from scenecast.storage.blob_store import LocalBlobStore


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (16, 9), (10, 10, 10)).save(buffer, format="PNG")
    return buffer.getvalue()


class StubImageClient(ImageClient):
    """Returns a fixed PNG and records its calls."""

    provider = "stub"
    label = "Stub"

    def __init__(self):
        super().__init__("stub-key")
        self.calls = []

    async def generate(self, prompt: str, negative_prompt: Optional[str] = None, **options: Any) -> GeneratedImage:
        self.calls.append((prompt, negative_prompt, options))
        return GeneratedImage(
            image_bytes=png_bytes(),
            mime_type="image/png",
            prompt=prompt,
            text="Image generated successfully",
            seed=options.get("seed"),
            metadata={"model": "stub"},
        )


class TestImageService:
    """Tests for ImageService.generate."""

    @pytest.mark.asyncio
    async def test_project_sequence(self, temp_dir):
        store = LocalBlobStore(temp_dir)
        service = ImageService(StubImageClient(), store)

        first = await service.generate("a cat", project_name="forest")
        second = await service.generate("a dog", project_name="forest")

        assert first.key == "forest-1.png"
        assert second.key == "forest-2.png"
        body = second.to_response()
        assert body["projectName"] == "forest"
        assert body["sequenceNumber"] == 2
        assert body["imageData"].startswith("data:image/png;base64,")
        assert body["blobUrl"] == "/api/blobs/forest-2.png"
        assert body["metadata"]["width"] == 16

    @pytest.mark.asyncio
    async def test_without_project(self, temp_dir):
        service = ImageService(StubImageClient(), LocalBlobStore(temp_dir))
        stored = await service.generate("a cat", seed=11)
        assert stored.key.startswith("generated_")
        assert stored.key.endswith("_11.png")
        body = stored.to_response()
        assert "projectName" not in body
        assert base64.b64decode(body["imageData"].split(",", 1)[1]) == png_bytes()

    @pytest.mark.asyncio
    async def test_template_applied(self, temp_dir):
        client = StubImageClient()
        service = ImageService(client, LocalBlobStore(temp_dir))
        await service.generate("a cat", template_id="anime-cinematic")
        prompt, negative, _ = client.calls[0]
        assert prompt.startswith("Scene: a cat")
        assert negative

    @pytest.mark.asyncio
    async def test_explicit_negative_wins(self, temp_dir):
        client = StubImageClient()
        service = ImageService(client, LocalBlobStore(temp_dir))
        await service.generate("a cat", negative_prompt="dogs", template_id="anime-cinematic")
        assert client.calls[0][1] == "dogs"

    @pytest.mark.asyncio
    async def test_sequence_collision_retried(self, temp_dir):
        store = LocalBlobStore(temp_dir)
        original_put = store.put
        collisions = []

        async def racing_put(key, data, content_type="image/png", overwrite=False):
            if not collisions:
                collisions.append(key)
                await original_put(key, b"someone else", overwrite=True)
                raise BlobExistsError(key)
            return await original_put(key, data, content_type=content_type, overwrite=overwrite)

        store.put = racing_put
        stored = await ImageService(StubImageClient(), store).generate("a cat", project_name="p")
        assert collisions == ["p-1.png"]
        assert stored.key == "p-2.png"

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_collisions(self, temp_dir):
        store = LocalBlobStore(temp_dir)

        async def always_taken(key, data, content_type="image/png", overwrite=False):
            raise BlobExistsError(key)

        store.put = always_taken
        with pytest.raises(StorageError):
            await ImageService(StubImageClient(), store).generate("a cat", project_name="p")
