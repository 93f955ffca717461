"""STS AssumeRoleWithWebIdentity exchange.

The GitHub OIDC token is presented to STS, which checks it against the
deploy role's trust policy (issuer + ``sigstore`` audience) and returns
temporary credentials scoped to that role. The call itself is unsigned:
the web identity token is the only proof of identity.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import botocore.session
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from riffraff_publish.errors import CredentialExchangeFailed
from riffraff_publish.utils.masking import mask_value

logger = logging.getLogger(__name__)

_ERROR_REASONS = {
    "MalformedPolicyDocument": "policy_error",
    "PackedPolicyTooLarge": "policy_too_large",
    "IDPRejectedClaim": "idp_rejected",
    "IDPCommunicationError": "idp_error",
    "InvalidIdentityToken": "invalid_token",
    "ExpiredTokenException": "token_expired",
    "RegionDisabledException": "region_disabled",
    "AccessDenied": "access_denied",
}


@dataclass(frozen=True)
class TemporaryCredentials:
    """Immutable temporary AWS credentials from STS."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime
    assumed_role_arn: str
    assumed_role_id: str

    def __repr__(self) -> str:
        return (
            f"TemporaryCredentials(access_key_id={mask_value(self.access_key_id, 8)}, "
            f"expiration={self.expiration.isoformat()})"
        )


class STSWebIdentityExchanger:
    """Thread-safe wrapper around an unsigned STS client."""

    def __init__(
        self,
        region: str,
        connect_timeout: int = 5,
        read_timeout: int = 15,
    ) -> None:
        self._region = region
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._client: Any = None
        self._lock = threading.Lock()

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is not None:
                return self._client

            session = botocore.session.get_session()
            self._client = session.create_client(
                "sts",
                region_name=self._region,
                config=Config(
                    signature_version=UNSIGNED,
                    connect_timeout=self._connect_timeout,
                    read_timeout=self._read_timeout,
                    # A rejected exchange fails the run; never retry it.
                    retries={"max_attempts": 1},
                ),
            )
            logger.debug("STS client initialized (UNSIGNED, region=%s)", self._region)
            return self._client

    async def assume_role_with_web_identity(
        self,
        role_arn: str,
        web_identity_token: str,
        session_name: str,
        duration_seconds: int = 3600,
    ) -> TemporaryCredentials:
        """
        Exchange a web identity token for role credentials.

        Args:
            role_arn: The ARN of the role to assume
            web_identity_token: The OIDC token issued for the run
            session_name: Session name recorded in CloudTrail
            duration_seconds: Credential validity duration

        Returns:
            TemporaryCredentials with AWS access keys

        Raises:
            CredentialExchangeFailed: If STS rejects the exchange
        """
        return await asyncio.to_thread(
            self._assume_role_sync,
            role_arn,
            web_identity_token,
            session_name,
            duration_seconds,
        )

    def _assume_role_sync(
        self,
        role_arn: str,
        web_identity_token: str,
        session_name: str,
        duration_seconds: int,
    ) -> TemporaryCredentials:
        client = self._get_client()
        safe_session_name = sanitize_session_name(session_name)

        params: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": safe_session_name,
            "WebIdentityToken": web_identity_token,
            "DurationSeconds": duration_seconds,
        }

        try:
            response = client.assume_role_with_web_identity(**params)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code", "Unknown")
            error_message = exc.response.get("Error", {}).get("Message", str(exc))

            logger.warning(
                "STS failed: role=%s, session=%s, error=%s: %s",
                role_arn,
                safe_session_name,
                error_code,
                error_message,
            )
            raise CredentialExchangeFailed(
                f"Could not assume role {role_arn}: {error_message}",
                reason=_ERROR_REASONS.get(error_code, "sts_error"),
            ) from exc
        except BotoCoreError as exc:
            raise CredentialExchangeFailed(
                f"Could not assume role {role_arn}: {exc}",
                reason="sts_unreachable",
            ) from exc

        creds = response["Credentials"]
        assumed = response["AssumedRoleUser"]

        logger.info("Assumed role: %s, session=%s", role_arn, safe_session_name)

        return TemporaryCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds["SessionToken"],
            expiration=creds["Expiration"],
            assumed_role_arn=assumed["Arn"],
            assumed_role_id=assumed["AssumedRoleId"],
        )


def sanitize_session_name(name: str) -> str:
    """Sanitize for STS (2-64 chars, alphanumeric/=.@-)."""
    safe = re.sub(r"[^a-zA-Z0-9=.@-]", "-", name)
    safe = re.sub(r"-+", "-", safe).strip("-")
    if len(safe) > 64:
        suffix = hashlib.sha256(name.encode()).hexdigest()[:8]
        safe = safe[:55] + "-" + suffix
    return safe if len(safe) >= 2 else "gh-" + safe
