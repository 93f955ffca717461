"""Refreshable credential provider shared by all uploads in a run."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from riffraff_publish.aws_credentials.sts_provider import (
    STSWebIdentityExchanger,
    TemporaryCredentials,
)

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    async def get_credentials(self) -> TemporaryCredentials: ...


def is_expiring_soon(creds: TemporaryCredentials, buffer_seconds: int) -> bool:
    exp = creds.expiration
    if exp.tzinfo is None:
        exp = exp.replace(tzinfo=timezone.utc)
    return exp <= datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds)


class WebIdentityCredentialProvider:
    """Holds the credentials from the initial exchange and refreshes them near expiry.

    Refresh is single-flight: concurrent callers that observe expiring
    credentials wait on one in-flight exchange instead of starting their own.
    """

    def __init__(
        self,
        exchanger: STSWebIdentityExchanger,
        role_arn: str,
        web_identity_token: str,
        session_name: str,
        initial: TemporaryCredentials,
        duration_seconds: int = 3600,
        refresh_buffer_seconds: int = 300,
    ) -> None:
        self._exchanger = exchanger
        self._role_arn = role_arn
        self._web_identity_token = web_identity_token
        self._session_name = session_name
        self._duration_seconds = duration_seconds
        self._refresh_buffer_seconds = refresh_buffer_seconds
        self._current = initial
        self._in_flight: asyncio.Future[TemporaryCredentials] | None = None
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"WebIdentityCredentialProvider(role_arn={self._role_arn!r})"

    async def get_credentials(self) -> TemporaryCredentials:
        async with self._lock:
            if not is_expiring_soon(self._current, self._refresh_buffer_seconds):
                return self._current

            in_flight = self._in_flight
            if in_flight is None:
                in_flight = asyncio.get_running_loop().create_future()
                self._in_flight = in_flight
                should_refresh = True
            else:
                should_refresh = False

        if not should_refresh:
            return await in_flight

        logger.debug("Credentials for %s expire soon, refreshing", self._role_arn)
        try:
            creds = await self._exchanger.assume_role_with_web_identity(
                role_arn=self._role_arn,
                web_identity_token=self._web_identity_token,
                session_name=self._session_name,
                duration_seconds=self._duration_seconds,
            )
        except BaseException as exc:
            async with self._lock:
                future, self._in_flight = self._in_flight, None
                if future and not future.done():
                    future.set_exception(exc)
                    # Mark retrieved so the loop does not warn when nobody else waited.
                    future.exception()
            raise

        async with self._lock:
            self._current = creds
            future, self._in_flight = self._in_flight, None
            if future and not future.done():
                future.set_result(creds)

        return creds


async def exchange_credentials(
    exchanger: STSWebIdentityExchanger,
    role_arn: str,
    web_identity_token: str,
    session_name: str,
    duration_seconds: int = 3600,
    refresh_buffer_seconds: int = 300,
) -> WebIdentityCredentialProvider:
    """Perform the run's single up-front exchange and wrap the result in a provider."""
    initial = await exchanger.assume_role_with_web_identity(
        role_arn=role_arn,
        web_identity_token=web_identity_token,
        session_name=session_name,
        duration_seconds=duration_seconds,
    )
    return WebIdentityCredentialProvider(
        exchanger,
        role_arn=role_arn,
        web_identity_token=web_identity_token,
        session_name=session_name,
        initial=initial,
        duration_seconds=duration_seconds,
        refresh_buffer_seconds=refresh_buffer_seconds,
    )
