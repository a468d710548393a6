"""context.py — Long-lived runtime context shared by every invocation of a warm Lambda.

Holds the Secrets Manager cache and the lazily built metadata/object-store
gateways. Reusing them across invocations is an optimization only: every
gateway re-establishes its connection on demand.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

import config
from config import logger
from aws_clients import _new_ddb, _new_s3, _new_secretsmanager
from metadata_store import MetadataStore
from object_store import ObjectStore

__all__ = ["RuntimeContext"]


class RuntimeContext:
    def __init__(
        self,
        *,
        ddb_factory: Callable[[], Any] = _new_ddb,
        s3_factory: Callable[[], Any] = _new_s3,
        secrets_factory: Callable[[], Any] = _new_secretsmanager,
        use_secrets: Optional[bool] = None,
        secret_name: Optional[str] = None,
        table_name: Optional[str] = None,
        bucket: Optional[str] = None,
    ) -> None:
        self._ddb_factory = ddb_factory
        self._s3_factory = s3_factory
        self._secrets_factory = secrets_factory
        self._secrets_client = None
        self._cached_secrets: Optional[Dict[str, Any]] = None
        self.use_secrets = config.USE_AWS_SECRETS if use_secrets is None else use_secrets
        self.secret_name = secret_name or config.AWS_SECRET_NAME
        self._table_name = table_name
        self._bucket = bucket
        self._metadata: Optional[MetadataStore] = None
        self._objects: Optional[ObjectStore] = None

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def get_secrets(self) -> Dict[str, Any]:
        if self._cached_secrets is not None:
            logger.info("[INFO] Using cached secrets")
            return self._cached_secrets
        if self._secrets_client is None:
            self._secrets_client = self._secrets_factory()
        resp = self._secrets_client.get_secret_value(SecretId=self.secret_name)
        self._cached_secrets = json.loads(resp.get("SecretString") or "{}")
        logger.info("[INFO] Secrets fetched from Secrets Manager: %s", self.secret_name)
        return self._cached_secrets

    def get_secret(self, key: str) -> Any:
        return self.get_secrets().get(key)

    def clear_secrets_cache(self) -> None:
        self._cached_secrets = None
        logger.info("[INFO] Secrets cache cleared")

    def _setting(self, secret_key: str, fallback: str) -> str:
        if not self.use_secrets:
            return fallback
        try:
            value = self.get_secret(secret_key)
        except (BotoCoreError, ClientError, ValueError) as exc:
            logger.warning(
                "[WARNING] Failed to read %s from Secrets Manager, falling back to env: %s",
                secret_key,
                exc,
            )
            return fallback
        return str(value) if value else fallback

    @property
    def table_name(self) -> str:
        if self._table_name is None:
            self._table_name = self._setting("ITEMS_TABLE", config.ITEMS_TABLE)
        return self._table_name

    @property
    def bucket(self) -> str:
        if self._bucket is None:
            self._bucket = self._setting("S3_BUCKET_NAME", config.S3_BUCKET)
        return self._bucket

    # ------------------------------------------------------------------
    # Gateways
    # ------------------------------------------------------------------

    @property
    def metadata(self) -> MetadataStore:
        if self._metadata is None:
            self._metadata = MetadataStore(self._ddb_factory, self.table_name)
        return self._metadata

    @property
    def objects(self) -> ObjectStore:
        if self._objects is None:
            self._objects = ObjectStore(self._s3_factory, self.bucket)
        return self._objects

    def ensure_metadata(self) -> MetadataStore:
        """Return the metadata gateway, reconnecting first if the connection was lost."""
        store = self.metadata
        if not store.is_connected():
            store.connect()
        return store
