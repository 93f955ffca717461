"""Identity token fetchers for GitHub Actions OIDC.

The token is a short-lived JWT whose ``aud`` claim is fixed to ``sigstore``;
the AWS IAM OIDC provider trusted by the deploy role is configured for that
audience.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, Union

import httpx

from riffraff_publish.errors import TokenFetchFailed

logger = logging.getLogger(__name__)

AUDIENCE = "sigstore"

TokenIssuer = Callable[[str], Union[str, Awaitable[str]]]


class IdentityTokenFetcher(Protocol):
    async def fetch(self) -> str: ...


class HttpIdentityTokenFetcher:
    """Fetch the token from the runner's token-issuance endpoint."""

    def __init__(
        self,
        request_url: str,
        request_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._request_url = request_url
        self._request_token = request_token
        self._timeout = timeout
        self._transport = transport

    def _url(self) -> httpx.URL:
        url = httpx.URL(self._request_url)
        return url.copy_merge_params({"audience": AUDIENCE})

    async def fetch(self) -> str:
        url = self._url()
        headers = {"Authorization": f"bearer {self._request_token}"}

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                resp = await client.get(url, headers=headers, timeout=self._timeout)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise TokenFetchFailed(
                    f"Identity token request failed with status {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise TokenFetchFailed(f"Identity token request failed: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise TokenFetchFailed("Identity token response is not valid JSON") from exc

        value = payload.get("value") if isinstance(payload, dict) else None
        if not isinstance(value, str) or not value:
            raise TokenFetchFailed("Identity token response has no 'value' field")

        logger.debug("Fetched identity token for audience %s from %s", AUDIENCE, url.host)
        return value


class DirectIdentityTokenFetcher:
    """Fetch the token from a locally available issuance callable.

    ``issue`` is called with the audience and may be sync or async.
    """

    def __init__(self, issue: TokenIssuer) -> None:
        self._issue = issue

    async def fetch(self) -> str:
        try:
            result = self._issue(AUDIENCE)
            if inspect.isawaitable(result):
                result = await result
        except TokenFetchFailed:
            raise
        except Exception as exc:
            raise TokenFetchFailed(f"Identity token issuance failed: {exc}") from exc

        if not isinstance(result, str) or not result:
            raise TokenFetchFailed("Identity token issuance returned an empty token")
        return result
