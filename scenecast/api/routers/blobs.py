"""Blob router: list, download, delete and clear stored images."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from scenecast.api.deps import get_blob_store
from scenecast.core.exceptions import BlobNotFoundError, InvalidBlobKeyError, StorageError
from scenecast.core.logging_config import get_logger
from scenecast.storage.blob_store import BlobStore, content_type_for, parse_blob_key

logger = get_logger("api.blobs")

router = APIRouter()


class DeleteBlobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_id: Optional[str] = Field(default=None, alias="imageId")


@router.get("/blob-list")
async def list_blobs(project: Optional[str] = None, store: BlobStore = Depends(get_blob_store)):
    """Stored images, newest first."""
    prefix = f"{project}-" if project else ""
    try:
        blobs = await store.list(prefix=prefix)
    except StorageError as e:
        logger.error(f"Error listing blobs: {e}")
        raise HTTPException(status_code=500, detail="Failed to list images")

    images = []
    for blob in blobs:
        project_name, sequence_number = parse_blob_key(blob.key)
        if project and project_name != project:
            continue
        images.append({
            "id": blob.key,
            "blobUrl": blob.url,
            "prompt": blob.key,
            "timestamp": blob.timestamp_ms,
            "projectName": project_name,
            "sequenceNumber": sequence_number,
        })
    images.sort(key=lambda image: image["timestamp"], reverse=True)
    return {"images": images}


@router.post("/blob-delete")
async def delete_blob(body: DeleteBlobRequest, store: BlobStore = Depends(get_blob_store)):
    """Delete one stored image."""
    if not body.image_id:
        raise HTTPException(status_code=400, detail="Image ID is required")

    try:
        await store.delete(body.image_id)
    except InvalidBlobKeyError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except BlobNotFoundError:
        raise HTTPException(status_code=404, detail="Image not found")
    except StorageError as e:
        logger.error(f"Error deleting blob: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete image")
    return {"success": True}


@router.post("/blob-clear")
async def clear_blobs(store: BlobStore = Depends(get_blob_store)):
    """Delete every stored image."""
    try:
        deleted = await store.clear()
    except StorageError as e:
        logger.error(f"Error clearing blobs: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear images")
    return {"success": True, "deleted": deleted}


@router.get("/blobs/{key}")
async def get_blob(key: str, store: BlobStore = Depends(get_blob_store)):
    """Download a stored image."""
    try:
        data = await store.get(key)
    except InvalidBlobKeyError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except BlobNotFoundError:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=data, media_type=content_type_for(key))
