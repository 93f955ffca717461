"""Upload the build manifest and artifacts.

The manifest is the record that a build exists, so it is written (and
confirmed) before any artifact upload starts. Artifact uploads then run as a
single concurrent group; the first failure observed fails the phase.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError

from riffraff_publish.artifacts import ArtifactFileSet
from riffraff_publish.errors import PublishFailed
from riffraff_publish.manifest import BuildManifest, upload_key
from riffraff_publish.storage import Body, ObjectStore

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (ClientError, BotoCoreError, OSError)


def _describe(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "Unknown")
        message = error.get("Message", "")
        return f"{code}: {message}" if message else code
    return str(exc) or type(exc).__name__


class Publisher:
    def __init__(self, store: ObjectStore, artifact_bucket: str, build_bucket: str) -> None:
        self._store = store
        self._artifact_bucket = artifact_bucket
        self._build_bucket = build_bucket

    async def _put(
        self,
        bucket: str,
        key: str,
        body: Body,
        content_type: str | None,
    ) -> None:
        try:
            await self._store.put_object(bucket, key, body, content_type=content_type)
        except _STORAGE_ERRORS as exc:
            logger.warning("Upload failed: s3://%s/%s: %s", bucket, key, _describe(exc))
            raise PublishFailed(key, _describe(exc)) from exc

    async def publish_manifest(self, manifest: BuildManifest) -> str:
        key = manifest.key
        await self._put(
            self._build_bucket,
            key,
            manifest.to_json().encode("utf-8"),
            content_type="application/json",
        )
        logger.info("Uploaded build manifest to s3://%s/%s", self._build_bucket, key)
        return key

    async def _upload_file(self, key: str, path: Path) -> str:
        content_type, _ = mimetypes.guess_type(path.name)
        try:
            handle = await asyncio.to_thread(path.open, "rb")
        except OSError as exc:
            raise PublishFailed(key, _describe(exc)) from exc
        with handle:
            await self._put(self._artifact_bucket, key, handle, content_type)
        return key

    async def publish_artifacts(
        self,
        manifest: BuildManifest,
        files: ArtifactFileSet,
    ) -> list[str]:
        """Upload every file concurrently; fail if any single upload fails.

        The group always runs to completion: a failure is raised only after
        every other upload has finished, and it is the first failure observed.
        """
        finished: list[asyncio.Task[str]] = []
        tasks = []
        for path in files:
            key = upload_key(
                manifest.project_name,
                manifest.build_number,
                files.relative_path(path),
            )
            task = asyncio.create_task(self._upload_file(key, path))
            task.add_done_callback(finished.append)
            tasks.append(task)

        if tasks:
            await asyncio.wait(tasks)

        for task in finished:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

        keys = [task.result() for task in tasks]
        logger.info(
            "Uploaded %d artifacts to s3://%s/%s/%s/",
            len(keys),
            self._artifact_bucket,
            manifest.project_name,
            manifest.build_number,
        )
        return keys

    async def publish(self, manifest: BuildManifest, files: ArtifactFileSet) -> list[str]:
        await self.publish_manifest(manifest)
        return await self.publish_artifacts(manifest, files)
