# container_check/services/blob_store.py
import logging
import os
from typing import Iterable

import boto3

from container_check import config

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    pass


class LocalBlobStore:
    """
    Stores blobs on disk under:
      {root_dir}/{bucket}/{path}
    and returns URLs under {public_base_url}/uploads/{bucket}/{path}
    (main.py mounts root_dir at /uploads).
    """

    def __init__(self, root_dir: str, public_base_url: str):
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")

    def _fs_path(self, bucket: str, path: str) -> str:
        parts = [p for p in path.split("/") if p not in ("", ".", "..")]
        return os.path.join(self.root_dir, bucket, *parts)

    def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        dst = self._fs_path(bucket, path)
        if os.path.exists(dst):
            raise BlobStoreError(f"Object already exists: {bucket}/{path}")
        try:
            os.makedirs(os.path.dirname(dst), exist_ok=True)
            with open(dst, "wb") as buf:
                buf.write(data)
        except OSError as e:
            raise BlobStoreError(str(e)) from e
        return f"{self.public_base_url}/uploads/{bucket}/{path}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        failed = []
        for path in paths:
            full_path = self._fs_path(bucket, path)
            try:
                if os.path.exists(full_path):
                    os.remove(full_path)
            except OSError as e:
                failed.append(f"{path}: {e}")
        if failed:
            raise BlobStoreError("; ".join(failed))


class S3BlobStore:
    def __init__(self, client, region: str):
        self.client = client
        self.region = region

    def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=bucket, Key=path, Body=data, ContentType=content_type)
        except Exception as e:
            raise BlobStoreError(f"Failed to upload {path} to S3: {e}") from e
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{path}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        keys = [{"Key": p} for p in paths]
        if not keys:
            return
        try:
            resp = self.client.delete_objects(Bucket=bucket, Delete={"Objects": keys, "Quiet": True})
        except Exception as e:
            raise BlobStoreError(f"Failed to delete objects from S3: {e}") from e
        errors = resp.get("Errors") or []
        if errors:
            raise BlobStoreError(", ".join(f"{e.get('Key')}: {e.get('Message')}" for e in errors))


_store = None


def get_blob_store():
    """FastAPI dependency returning the configured blob backend."""
    global _store
    if _store is None:
        if config.USE_S3:
            client = boto3.client(
                "s3",
                aws_access_key_id=config.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
                region_name=config.AWS_REGION,
            )
            _store = S3BlobStore(client, config.AWS_REGION)
            logger.info("Using S3 blob store in region %s", config.AWS_REGION)
        else:
            _store = LocalBlobStore(config.UPLOAD_DIR, config.PUBLIC_BASE_URL)
            logger.info("Using local blob store at %s", config.UPLOAD_DIR)
    return _store
