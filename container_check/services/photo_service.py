# container_check/services/photo_service.py
import io
import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from PIL import Image, UnidentifiedImageError

from container_check import config
from container_check.errors import NotFound, PhotoCountOutOfRange, PhotoUploadFailed, ValidationFailed
from container_check.services.blob_store import BlobStoreError

logger = logging.getLogger(__name__)

SECURITY_PREFIX = "inspections"
CHECKER_PREFIX = "checker"


@dataclass
class PhotoFile:
    filename: str
    data: bytes
    content_type: Optional[str] = None


@dataclass
class StoredPhoto:
    url: str
    filename: str
    storage_path: str


def usable_photos(files: Iterable[PhotoFile]) -> List[PhotoFile]:
    """
    Drop empty uploads and make sure the rest are images.
    Content type is filled from the detected format when the client sent none.
    """
    result = []
    for f in files or []:
        if f is None or not f.data:
            continue
        try:
            with Image.open(io.BytesIO(f.data)) as img:
                fmt = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise ValidationFailed("photos", f"{f.filename} is not a valid image")
        if not f.content_type or not f.content_type.startswith("image/"):
            f.content_type = Image.MIME.get(fmt, "application/octet-stream")
        result.append(f)
    return result


def check_photo_count(actual: int) -> None:
    if actual < config.MIN_PHOTOS or actual > config.MAX_PHOTOS:
        raise PhotoCountOutOfRange(config.MIN_PHOTOS, config.MAX_PHOTOS, actual)


def _unique_path(prefix: str, filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower() or ".jpg"
    return f"{prefix}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"


def _put_with_retry(store, path: str, photo: PhotoFile) -> str:
    attempt = 0
    while True:
        try:
            return store.put(config.PHOTO_BUCKET, path, photo.data, photo.content_type)
        except BlobStoreError as e:
            if attempt >= config.UPLOAD_RETRIES:
                raise
            delay = config.UPLOAD_BACKOFF_SECONDS * (2 ** attempt)
            attempt += 1
            logger.warning("Upload of %s failed (%s); retry %d in %.2fs", photo.filename, e, attempt, delay)
            time.sleep(delay)


def upload_photos(store, prefix: str, files: List[PhotoFile]) -> List[StoredPhoto]:
    """
    Upload every file; if one fails, remove the blobs this call already
    stored and raise PhotoUploadFailed. Nothing touches the database here.
    """
    stored: List[StoredPhoto] = []
    for photo in files:
        path = _unique_path(prefix, photo.filename)
        try:
            url = _put_with_retry(store, path, photo)
        except BlobStoreError as e:
            logger.error("Giving up on upload of %s: %s", photo.filename, e)
            remove_blobs(store, [s.storage_path for s in stored])
            raise PhotoUploadFailed(photo.filename, str(e))
        stored.append(StoredPhoto(url=url, filename=photo.filename, storage_path=path))
    return stored


def remove_blobs(store, paths: List[str]) -> bool:
    """Best-effort cleanup. Returns False when the store reported a failure."""
    paths = [p for p in paths if p]
    if not paths:
        return True
    try:
        store.remove(config.PHOTO_BUCKET, paths)
    except BlobStoreError as e:
        logger.warning("Blob cleanup failed for %d object(s): %s", len(paths), e)
        return False
    return True


def select_deleted(photos, photo_ids) -> list:
    """
    Resolve ``photo_ids`` against the photos of one record.
    Ids that do not belong to it raise NotFound; repeated ids count once.
    """
    wanted = set(photo_ids or [])
    by_id = {p.id: p for p in photos}
    unknown = sorted(wanted - set(by_id))
    if unknown:
        raise NotFound("Photo", unknown[0], f"Photo {unknown[0]} does not belong to this record")
    return [by_id[i] for i in sorted(wanted)]
