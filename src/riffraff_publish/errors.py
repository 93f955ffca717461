"""Error taxonomy for a publish run.

Every error is terminal: nothing in the package retries or recovers locally.
The CLI catches whatever escapes exactly once and reports it through
``actions.set_failed``.
"""

from __future__ import annotations


class PublishError(Exception):
    """Base class for run failures."""

    code = "publish_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class MissingConfiguration(PublishError):
    code = "missing_configuration"

    def __init__(self, key: str) -> None:
        super().__init__(f"{key} not found")
        self.key = key


class TokenFetchFailed(PublishError):
    code = "token_fetch_failed"


class CredentialExchangeFailed(PublishError):
    code = "credential_exchange_failed"

    def __init__(self, message: str, reason: str = "sts_error") -> None:
        super().__init__(message)
        self.reason = reason


class InvalidRepositoryIdentifier(PublishError):
    code = "invalid_repository"

    def __init__(self, repository: str) -> None:
        super().__init__(
            f"Invalid repository identifier {repository!r}: expected 'owner/repo'"
        )
        self.repository = repository


class MissingManifestDescriptor(PublishError):
    code = "missing_descriptor"

    def __init__(self, path: str) -> None:
        super().__init__(f"Cannot find the file {path}")
        self.path = path


class DirectoryReadFailed(PublishError):
    code = "directory_read_failed"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read directory {path}: {reason}")
        self.path = path


class PublishFailed(PublishError):
    code = "publish_failed"

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Failed to upload {key}: {reason}")
        self.key = key


def error_message(error: object) -> str:
    """Render anything raised during a run as a single failure message."""
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return "Internal Error"
