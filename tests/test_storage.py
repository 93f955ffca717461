from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from riffraff_publish.config import ExecutionSettings
from riffraff_publish.storage import S3ObjectStore


class _StaticProvider:
    def __init__(self, creds) -> None:
        self.creds = creds
        self.calls = 0

    async def get_credentials(self):
        self.calls += 1
        return self.creds


@pytest.mark.asyncio
@patch("riffraff_publish.storage.boto3.Session")
async def test_put_object_reuses_client_for_same_credentials(
    mock_session_cls: MagicMock, credentials_factory
) -> None:
    mock_client = MagicMock()
    mock_session_cls.return_value.client.return_value = mock_client
    provider = _StaticProvider(credentials_factory())
    store = S3ObjectStore("eu-west-1", provider, ExecutionSettings(max_pool_connections=25))

    await store.put_object("bucket", "p/1/a.txt", b"a", content_type="text/plain")
    await store.put_object("bucket", "p/1/b.bin", b"b")

    assert provider.calls == 2
    mock_session_cls.assert_called_once_with(
        aws_access_key_id="ASIAXXXXXXXX",
        aws_secret_access_key="secret",
        aws_session_token="session-token",
        region_name="eu-west-1",
    )
    service, = mock_session_cls.return_value.client.call_args.args
    config = mock_session_cls.return_value.client.call_args.kwargs["config"]
    assert service == "s3"
    assert config.max_pool_connections == 25

    first, second = mock_client.put_object.call_args_list
    assert first.kwargs == {
        "Bucket": "bucket",
        "Key": "p/1/a.txt",
        "Body": b"a",
        "ContentType": "text/plain",
    }
    assert "ContentType" not in second.kwargs


@pytest.mark.asyncio
@patch("riffraff_publish.storage.boto3.Session")
async def test_refreshed_credentials_get_new_client(
    mock_session_cls: MagicMock, credentials_factory
) -> None:
    provider = _StaticProvider(credentials_factory(access_key_id="ASIAFIRST000"))
    store = S3ObjectStore("eu-west-1", provider)

    await store.put_object("bucket", "key", b"1")
    provider.creds = credentials_factory(access_key_id="ASIASECOND00")
    await store.put_object("bucket", "key", b"2")

    assert mock_session_cls.call_count == 2


@pytest.mark.asyncio
@patch("riffraff_publish.storage.boto3.Session")
async def test_put_object_propagates_client_errors(
    mock_session_cls: MagicMock, credentials_factory
) -> None:
    mock_session_cls.return_value.client.return_value.put_object.side_effect = OSError(
        "connection reset"
    )
    store = S3ObjectStore("eu-west-1", _StaticProvider(credentials_factory()))

    with pytest.raises(OSError, match="connection reset"):
        await store.put_object("bucket", "key", b"1")


@pytest.mark.asyncio
@patch("riffraff_publish.storage.boto3.Session")
async def test_client_is_built_off_the_event_loop(
    mock_session_cls: MagicMock, credentials_factory
) -> None:
    loop_thread = threading.get_ident()
    built_on: list[int] = []

    def _record_session(**kwargs):
        built_on.append(threading.get_ident())
        return MagicMock()

    mock_session_cls.side_effect = _record_session
    store = S3ObjectStore("eu-west-1", _StaticProvider(credentials_factory()))

    await store.put_object("bucket", "key", b"1")

    assert len(built_on) == 1
    assert built_on[0] != loop_thread
