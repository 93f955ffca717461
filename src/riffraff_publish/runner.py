"""Run orchestration: config -> token -> credentials -> manifest -> uploads."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from riffraff_publish.actions import (
    add_mask,
    export_web_identity_environment,
    persist_token,
)
from riffraff_publish.artifacts import ensure_descriptor, enumerate_artifacts
from riffraff_publish.aws_credentials import (
    CredentialProvider,
    STSWebIdentityExchanger,
    exchange_credentials,
)
from riffraff_publish.config import (
    BuildMetadata,
    RunConfig,
    Settings,
    WebIdentityConfig,
    load_settings,
)
from riffraff_publish.identity import HttpIdentityTokenFetcher, IdentityTokenFetcher
from riffraff_publish.manifest import BuildManifest, build_manifest
from riffraff_publish.publisher import Publisher
from riffraff_publish.storage import ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[RunConfig, CredentialProvider], ObjectStore]


@dataclass(frozen=True)
class PublishResult:
    manifest: BuildManifest
    manifest_key: str
    artifact_keys: list[str]


def _debug_block(title: str, payload: object) -> None:
    logger.debug("*** START %s ***", title)
    logger.debug("%s", json.dumps(payload, indent=2))
    logger.debug("*** END %s ***", title)


def _default_token_fetcher(
    config: RunConfig | WebIdentityConfig,
    settings: Settings,
) -> IdentityTokenFetcher:
    return HttpIdentityTokenFetcher(
        config.request_url,
        config.request_token,
        timeout=settings.execution.token_timeout_seconds,
    )


def _default_exchanger(config: RunConfig, settings: Settings) -> STSWebIdentityExchanger:
    return STSWebIdentityExchanger(
        region=settings.aws.sts_region or config.region,
        connect_timeout=settings.execution.sdk_connect_timeout_seconds,
        read_timeout=settings.execution.sdk_read_timeout_seconds,
    )


async def run(
    config: RunConfig,
    metadata: BuildMetadata,
    *,
    settings: Settings | None = None,
    token_fetcher: IdentityTokenFetcher | None = None,
    exchanger: STSWebIdentityExchanger | None = None,
    store_factory: StoreFactory | None = None,
) -> PublishResult:
    """Publish ``build.json`` and every artifact for one build."""
    settings = settings or load_settings()
    _debug_block("config", config.redacted())

    manifest = build_manifest(metadata)
    _debug_block("build.json", manifest.to_dict())

    # Checked before any network call so a misconfigured job fails fast.
    ensure_descriptor(config.artifact_directory)

    fetcher = token_fetcher or _default_token_fetcher(config, settings)
    token = await fetcher.fetch()
    add_mask(token)

    provider = await exchange_credentials(
        exchanger or _default_exchanger(config, settings),
        role_arn=config.role_arn,
        web_identity_token=token,
        session_name=settings.aws.role_session_name,
        duration_seconds=settings.aws.session_duration_seconds,
        refresh_buffer_seconds=settings.aws.credential_refresh_buffer_seconds,
    )

    if store_factory is None:
        store: ObjectStore = S3ObjectStore(config.region, provider, settings.execution)
    else:
        store = store_factory(config, provider)
    publisher = Publisher(store, config.artifact_bucket, config.build_bucket)

    manifest_key = await publisher.publish_manifest(manifest)
    files = await enumerate_artifacts(config.artifact_directory)
    artifact_keys = await publisher.publish_artifacts(manifest, files)

    return PublishResult(
        manifest=manifest,
        manifest_key=manifest_key,
        artifact_keys=artifact_keys,
    )


async def configure_credentials(
    config: WebIdentityConfig,
    env_file: Path,
    *,
    settings: Settings | None = None,
    token_fetcher: IdentityTokenFetcher | None = None,
    token_directory: str | None = None,
) -> dict[str, str]:
    """Hand web identity settings to later steps instead of publishing here.

    The token is written to a new temporary file and ``AWS_WEB_IDENTITY_TOKEN_FILE``,
    ``AWS_ROLE_ARN`` and the region variables are appended to ``GITHUB_ENV``.
    """
    settings = settings or load_settings()
    fetcher = token_fetcher or _default_token_fetcher(config, settings)
    token = await fetcher.fetch()
    add_mask(token)

    token_file = persist_token(token, directory=token_directory)
    variables = export_web_identity_environment(
        env_file,
        token_file,
        role_arn=config.role_arn,
        region=config.region,
    )
    return variables
