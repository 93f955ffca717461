"""S3 object store backed by the run's refreshable credentials."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import IO, Any, Protocol, Union

import boto3
from botocore.config import Config

from riffraff_publish.aws_credentials import CredentialProvider, TemporaryCredentials
from riffraff_publish.config import ExecutionSettings

logger = logging.getLogger(__name__)

Body = Union[bytes, IO[bytes]]

# Old clients stay usable until their credentials expire; keep only a few.
_CLIENT_CACHE_MAX_SIZE = 4


class ObjectStore(Protocol):
    async def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        content_type: str | None = None,
    ) -> None: ...


def _credential_fingerprint(creds: TemporaryCredentials) -> str:
    material = "\x1f".join(
        (creds.access_key_id, creds.secret_access_key, creds.session_token)
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class S3ObjectStore:
    """Puts objects with a boto3 S3 client built from the current credentials.

    Clients are cached by credential fingerprint, so every upload in a run
    shares one client and its connection pool until a refresh hands out new
    credentials.
    """

    def __init__(
        self,
        region: str,
        credentials: CredentialProvider,
        execution: ExecutionSettings | None = None,
    ) -> None:
        self._region = region
        self._credentials = credentials
        self._execution = execution or ExecutionSettings()
        self._clients: OrderedDict[str, Any] = OrderedDict()
        self._clients_lock = threading.Lock()

    def _config(self) -> Config:
        return Config(
            connect_timeout=self._execution.sdk_connect_timeout_seconds,
            read_timeout=self._execution.sdk_read_timeout_seconds,
            max_pool_connections=self._execution.max_pool_connections,
            retries={"max_attempts": 1},
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        )

    def _create_client(self, creds: TemporaryCredentials) -> Any:
        session = boto3.Session(
            aws_access_key_id=creds.access_key_id,
            aws_secret_access_key=creds.secret_access_key,
            aws_session_token=creds.session_token,
            region_name=self._region,
        )
        return session.client("s3", config=self._config())

    def _get_cached_client(self, key: str, build_client: Callable[[], Any]) -> Any:
        with self._clients_lock:
            client = self._clients.get(key)
            if client is not None:
                self._clients.move_to_end(key)
                return client
            client = build_client()
            self._clients[key] = client
            while len(self._clients) > _CLIENT_CACHE_MAX_SIZE:
                self._clients.popitem(last=False)
            logger.debug("S3 client created (region=%s)", self._region)
            return client

    async def _client(self) -> Any:
        creds = await self._credentials.get_credentials()
        # Client construction loads botocore service models from disk.
        return await asyncio.to_thread(
            self._get_cached_client,
            _credential_fingerprint(creds),
            lambda: self._create_client(creds),
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        content_type: str | None = None,
    ) -> None:
        client = await self._client()
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        await asyncio.to_thread(client.put_object, **params)
        logger.debug("Uploaded s3://%s/%s", bucket, key)
