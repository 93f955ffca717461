"""GitHub Actions runner protocol: workflow commands and env-file propagation."""

from __future__ import annotations

import os
import sys
import tempfile
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO


def escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def issue_command(command: str, message: str, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    out.write(f"::{command}::{escape_data(message)}{os.linesep}")
    out.flush()


def set_failed(message: str, stream: TextIO | None = None) -> None:
    """Report a terminal failure; the caller exits non-zero."""
    issue_command("error", message, stream)


def add_mask(value: str, stream: TextIO | None = None) -> None:
    """Ask the runner to redact ``value`` from all later log output."""
    if value:
        issue_command("add-mask", value, stream)


def _format_env_line(key: str, value: str) -> str:
    if "\n" not in value and "\r" not in value:
        return f"{key}={value}{os.linesep}"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    if delimiter in key or delimiter in value:
        raise ValueError(f"Unexpected delimiter collision for {key}")
    return f"{key}<<{delimiter}{os.linesep}{value}{os.linesep}{delimiter}{os.linesep}"


def export_variables(env_file: Path, variables: Mapping[str, str]) -> None:
    """Append variables to the ``GITHUB_ENV`` file for subsequent steps."""
    with env_file.open("a", encoding="utf-8") as handle:
        for key, value in variables.items():
            handle.write(_format_env_line(key, value))


def persist_token(token: str, directory: str | os.PathLike[str] | None = None) -> Path:
    """Write ``token`` to a fresh owner-only temporary file and return its path."""
    fd, name = tempfile.mkstemp(prefix="web-identity-token-", dir=directory)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(token)
    return Path(name)


def export_web_identity_environment(
    env_file: Path,
    token_file: Path,
    role_arn: str,
    region: str,
) -> dict[str, str]:
    """Expose the web identity settings the AWS SDKs read to later steps."""
    variables = {
        "AWS_WEB_IDENTITY_TOKEN_FILE": str(token_file),
        "AWS_ROLE_ARN": role_arn,
        "AWS_DEFAULT_REGION": region,
        "AWS_REGION": region,
    }
    export_variables(env_file, variables)
    return variables
