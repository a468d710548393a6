"""object_store.py — S3 gateway: list, delete, upload, presign.

All botocore failures surface as StorageError.
"""
from __future__ import annotations

from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from config import logger
from errors import StorageError, _describe_client_error
from models import FileDescriptor
from serialization import _parse_iso

__all__ = ["ObjectStore"]


class ObjectStore:
    def __init__(self, client_factory, bucket: str) -> None:
        self._client_factory = client_factory
        self._client = None
        self.bucket = bucket

    def _s3(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def _fail(self, op: str, exc: Exception) -> None:
        code, message = _describe_client_error(exc)
        logger.error("[ERROR] S3 %s failed on %s: %s %s", op, self.bucket, code, message)
        raise StorageError(message, code=code) from exc

    @staticmethod
    def _descriptor(obj: dict) -> FileDescriptor:
        return FileDescriptor(
            key=str(obj.get("Key") or ""),
            size_bytes=int(obj.get("Size") or 0),
            last_modified=_parse_iso(obj.get("LastModified")),
        )

    def list(self, prefix: str = "", max_keys: Optional[int] = None) -> List[FileDescriptor]:
        """List objects under ``prefix`` in listing order.

        With ``max_keys`` a single page of at most that many keys is returned;
        otherwise every page is walked.
        """
        try:
            s3 = self._s3()
            if max_keys is not None:
                resp = s3.list_objects_v2(Bucket=self.bucket, Prefix=prefix, MaxKeys=max_keys)
                return [self._descriptor(obj) for obj in resp.get("Contents", [])]

            out: List[FileDescriptor] = []
            paginator = s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                out.extend(self._descriptor(obj) for obj in page.get("Contents", []))
            return out
        except (BotoCoreError, ClientError) as exc:
            self._fail("list", exc)

    def delete(self, key: str) -> None:
        try:
            self._s3().delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            self._fail("delete", exc)
        logger.info("[INFO] Deleted s3://%s/%s", self.bucket, key)

    def upload(self, body: bytes, key: str, mime_type: str) -> str:
        try:
            self._s3().put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=mime_type)
        except (BotoCoreError, ClientError) as exc:
            self._fail("upload", exc)
        logger.info("[INFO] Uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(body))
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def presign(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self._s3().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            self._fail("presign", exc)
