"""AWS credential exchange."""

from riffraff_publish.aws_credentials.provider import (
    CredentialProvider,
    WebIdentityCredentialProvider,
    exchange_credentials,
)
from riffraff_publish.aws_credentials.sts_provider import (
    STSWebIdentityExchanger,
    TemporaryCredentials,
)

__all__ = [
    "CredentialProvider",
    "STSWebIdentityExchanger",
    "TemporaryCredentials",
    "WebIdentityCredentialProvider",
    "exchange_credentials",
]
