"""
SceneCast Image Service

Generates an image with a provider client, normalizes it to PNG and stores
it under the blob naming convention.
"""

import base64
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from scenecast.core.exceptions import BlobExistsError, StorageError
from scenecast.core.logging_config import get_logger
from scenecast.images.providers import ImageClient, normalize_png
from scenecast.images.templates import NO_TEMPLATE, build_image_prompt
from scenecast.storage.blob_store import (
    BlobStore,
    next_sequence_number,
    project_blob_key,
    unprojected_blob_key,
)

logger = get_logger("images.service")

# Attempts at claiming a sequence number when concurrent writers collide
MAX_KEY_ATTEMPTS = 3


@dataclass
class StoredImage:
    """A generated image after it has been persisted."""
    image_data_url: str
    blob_url: str
    key: str
    text: str
    prompt: str
    timestamp: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    project_name: Optional[str] = None
    sequence_number: Optional[int] = None

    def to_response(self) -> Dict[str, Any]:
        body = {
            "imageData": self.image_data_url,
            "blobUrl": self.blob_url,
            "id": self.key,
            "text": self.text,
            "prompt": self.prompt,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }
        if self.project_name:
            body["projectName"] = self.project_name
            body["sequenceNumber"] = self.sequence_number
        return body


class ImageService:
    """Ties an image client to a blob store."""

    def __init__(self, client: ImageClient, store: BlobStore):
        self.client = client
        self.store = store

    async def generate(
        self,
        prompt: str,
        negative_prompt: Optional[str] = None,
        template_id: Optional[str] = None,
        project_name: Optional[str] = None,
        **options: Any,
    ) -> StoredImage:
        if template_id and template_id != NO_TEMPLATE:
            prompt, template_negative = build_image_prompt(prompt, template_id)
            negative_prompt = negative_prompt or template_negative

        image = await self.client.generate(prompt, negative_prompt=negative_prompt, **options)
        png_bytes, width, height = normalize_png(image.image_bytes)
        timestamp = int(time.time() * 1000)

        metadata = dict(image.metadata)
        metadata.setdefault("width", width)
        metadata.setdefault("height", height)

        if project_name:
            key, sequence_number, blob = await self._store_in_project(project_name, png_bytes)
        else:
            key = unprojected_blob_key(timestamp, image.seed if image.seed is not None else "random")
            sequence_number = None
            blob = await self.store.put(key, png_bytes, content_type="image/png", overwrite=True)

        logger.info(f"Stored generated image as {key}")
        return StoredImage(
            image_data_url=f"data:image/png;base64,{base64.b64encode(png_bytes).decode('ascii')}",
            blob_url=blob.url,
            key=key,
            text=image.text,
            prompt=image.prompt,
            timestamp=timestamp,
            metadata=metadata,
            project_name=project_name,
            sequence_number=sequence_number,
        )

    async def _store_in_project(self, project_name: str, data: bytes):
        for _ in range(MAX_KEY_ATTEMPTS):
            sequence_number = await next_sequence_number(self.store, project_name)
            key = project_blob_key(project_name, sequence_number)
            try:
                blob = await self.store.put(key, data, content_type="image/png", overwrite=False)
            except BlobExistsError:
                logger.warning(f"Sequence number {sequence_number} for '{project_name}' taken, retrying")
                continue
            return key, sequence_number, blob
        raise StorageError(
            f"Could not claim a sequence number for project '{project_name}'",
            {"project": project_name},
        )
