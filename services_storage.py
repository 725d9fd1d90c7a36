# services_storage.py - S3-compatible blob store (AWS S3, MinIO, Supabase storage)
import logging
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from errors import StoreDeleteError, StoreError, StoreWriteError

log = logging.getLogger("portal.storage")

_MISSING = ("404", "NoSuchKey", "NotFound")


def _code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


class S3BlobStore:
    """
    Durable binary storage keyed by path. Every call goes straight to the
    bucket; there is no cache in front of it.
    """

    def __init__(self, bucket, client=None, public_base_url=None, max_bytes=None):
        self.bucket = bucket
        self.client = client
        self.public_base_url = (public_base_url or "").rstrip("/") or None
        self.max_bytes = max_bytes

    @classmethod
    def from_settings(cls, settings):
        client = boto3.client(
            "s3",
            endpoint_url=settings.storage_endpoint_url,
            aws_access_key_id=settings.storage_access_key,
            aws_secret_access_key=settings.storage_secret_key,
            region_name=settings.storage_region,
            config=Config(connect_timeout=5, read_timeout=30, retries={"max_attempts": 2}),
        )
        return cls(settings.storage_bucket, client=client,
                   public_base_url=settings.storage_public_base_url,
                   max_bytes=settings.max_binary_upload_bytes)

    def _exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _code(e) in _MISSING:
                return False
            raise

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Writes `data` under `key`. No-overwrite: an existing key is a StoreWriteError."""
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise StoreWriteError(f"payload of {len(data)} bytes exceeds the {self.max_bytes} byte ceiling")
        try:
            if self._exists(key):
                raise StoreWriteError(f"key already exists: {key}")
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data,
                                   ContentType=content_type or "application/octet-stream")
        except (ClientError, BotoCoreError) as e:
            log.warning("put failed key=%s: %s", key, e)
            raise StoreWriteError(f"upload to bucket {self.bucket} failed: {e}") from e
        return key

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(key)}"
        endpoint = self.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(key)}"

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object", Params={"Bucket": self.bucket, "Key": key}, ExpiresIn=int(ttl_seconds))
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"could not sign url for {key}: {e}") from e

    def remove(self, key: str) -> bool:
        """Idempotent delete. False when the object was already gone."""
        try:
            if not self._exists(key):
                return False
            self.client.delete_object(Bucket=self.bucket, Key=key)
            return True
        except (ClientError, BotoCoreError) as e:
            raise StoreDeleteError(f"delete of {key} failed: {e}") from e

    def list_keys(self, prefix: str = ""):
        try:
            pages = self.client.get_paginator("list_objects_v2").paginate(Bucket=self.bucket, Prefix=prefix)
            for page in pages:
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"listing bucket {self.bucket} failed: {e}") from e
