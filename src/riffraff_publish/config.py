"""Configuration for a publish run.

Two layers live here:

* ``Settings`` - ambient knobs (logging, SDK timeouts, pool sizes) with
  defaults, read from the environment and an optional ``.env`` file.
* ``RunConfig`` / ``BuildMetadata`` - the required per-run values supplied by
  GitHub Actions. Any absent value fails the run with ``MissingConfiguration``.

Nothing outside this module reads the process environment.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from riffraff_publish.errors import MissingConfiguration
from riffraff_publish.utils.masking import redact_fields

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ExecutionSettings(BaseModel):
    sdk_connect_timeout_seconds: int = Field(default=10, ge=1, le=300)
    sdk_read_timeout_seconds: int = Field(default=60, ge=1, le=900)
    max_pool_connections: int = Field(
        default=10,
        ge=1,
        le=256,
        description="Upper bound on concurrent S3 connections.",
    )
    token_timeout_seconds: float = Field(default=10.0, ge=0.1, le=120.0)


class AWSSettings(BaseModel):
    sts_region: str | None = Field(
        default=None,
        description="Region for the STS endpoint; defaults to the run's region.",
    )
    role_session_name: str = Field(default="riffraff-publish")
    session_duration_seconds: int = Field(default=3600, ge=900, le=43200)
    credential_refresh_buffer_seconds: int = Field(default=300, ge=0, le=3600)


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)


class RunConfig(BaseModel):
    """Immutable per-run parameters."""

    model_config = ConfigDict(frozen=True)

    request_token: str = Field(repr=False)
    request_url: str
    role_arn: str
    region: str
    artifact_bucket: str
    build_bucket: str
    artifact_directory: str

    def redacted(self) -> dict[str, object]:
        return redact_fields(self.model_dump())


class WebIdentityConfig(BaseModel):
    """Subset of the run parameters needed to hand credentials to later steps."""

    model_config = ConfigDict(frozen=True)

    request_token: str = Field(repr=False)
    request_url: str
    role_arn: str
    region: str


class BuildMetadata(BaseModel):
    """GitHub run metadata the build manifest is derived from."""

    model_config = ConfigDict(frozen=True)

    repository: str
    run_number: str
    ref: str
    sha: str
    server_url: str
    project_name: str | None = None


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "runner_debug": "RUNNER_DEBUG",
    "sts_region": "AWS_STS_REGION",
    "role_session_name": "RIFFRAFF_ROLE_SESSION_NAME",
    "session_duration": "RIFFRAFF_SESSION_DURATION_SECONDS",
    "refresh_buffer": "RIFFRAFF_CREDENTIAL_REFRESH_BUFFER_SECONDS",
    "connect_timeout": "RIFFRAFF_SDK_CONNECT_TIMEOUT_SECONDS",
    "read_timeout": "RIFFRAFF_SDK_READ_TIMEOUT_SECONDS",
    "max_pool_connections": "RIFFRAFF_MAX_POOL_CONNECTIONS",
    "token_timeout": "RIFFRAFF_TOKEN_TIMEOUT_SECONDS",
}

REQUEST_TOKEN_ENV = "ACTIONS_ID_TOKEN_REQUEST_TOKEN"
REQUEST_URL_ENV = "ACTIONS_ID_TOKEN_REQUEST_URL"
GITHUB_ENV_FILE = "GITHUB_ENV"

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def _log_level() -> str:
    # RUNNER_DEBUG is set by GitHub when a run is re-run with debug logging.
    if _env_bool(ENV_KEYS["runner_debug"], False):
        return "DEBUG"
    return os.getenv(ENV_KEYS["log_level"], LoggingSettings().level)


def load_settings() -> Settings:
    """Load ambient settings and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": _log_level(),
            "file": str(Path(log_file_env).expanduser().resolve()) if log_file_env else None,
        },
        "execution": {
            "sdk_connect_timeout_seconds": _env_int(
                ENV_KEYS["connect_timeout"],
                ExecutionSettings().sdk_connect_timeout_seconds,
            ),
            "sdk_read_timeout_seconds": _env_int(
                ENV_KEYS["read_timeout"],
                ExecutionSettings().sdk_read_timeout_seconds,
            ),
            "max_pool_connections": _env_int(
                ENV_KEYS["max_pool_connections"],
                ExecutionSettings().max_pool_connections,
            ),
            "token_timeout_seconds": _env_float(
                ENV_KEYS["token_timeout"],
                ExecutionSettings().token_timeout_seconds,
            ),
        },
        "aws": {
            "sts_region": os.getenv(ENV_KEYS["sts_region"]) or None,
            "role_session_name": os.getenv(
                ENV_KEYS["role_session_name"], AWSSettings().role_session_name
            ),
            "session_duration_seconds": _env_int(
                ENV_KEYS["session_duration"],
                AWSSettings().session_duration_seconds,
            ),
            "credential_refresh_buffer_seconds": _env_int(
                ENV_KEYS["refresh_buffer"],
                AWSSettings().credential_refresh_buffer_seconds,
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc


def input_env_key(name: str) -> str:
    """Environment variable GitHub Actions uses to pass the input ``name``."""
    return "INPUT_" + name.replace(" ", "_").upper()


def get_input(environ: Mapping[str, str], name: str, required: bool = False) -> str:
    value = environ.get(input_env_key(name), "").strip()
    if required and not value:
        raise MissingConfiguration(name)
    return value


def _require_env(environ: Mapping[str, str], key: str) -> str:
    value = environ.get(key, "")
    if not value:
        raise MissingConfiguration(key)
    return value


def load_run_config(environ: Mapping[str, str] | None = None) -> RunConfig:
    """Assemble the run configuration, failing on the first absent value."""
    env = os.environ if environ is None else environ
    return RunConfig(
        request_token=_require_env(env, REQUEST_TOKEN_ENV),
        request_url=_require_env(env, REQUEST_URL_ENV),
        role_arn=get_input(env, "awsRoleToAssume", required=True),
        region=get_input(env, "awsRegion", required=True),
        artifact_bucket=get_input(env, "artifactBucket", required=True),
        build_bucket=get_input(env, "buildBucket", required=True),
        artifact_directory=get_input(env, "artifactDirectory", required=True),
    )


def load_web_identity_config(environ: Mapping[str, str] | None = None) -> WebIdentityConfig:
    env = os.environ if environ is None else environ
    return WebIdentityConfig(
        request_token=_require_env(env, REQUEST_TOKEN_ENV),
        request_url=_require_env(env, REQUEST_URL_ENV),
        role_arn=get_input(env, "awsRoleToAssume", required=True),
        region=get_input(env, "awsRegion", required=True),
    )


def load_build_metadata(environ: Mapping[str, str] | None = None) -> BuildMetadata:
    env = os.environ if environ is None else environ
    return BuildMetadata(
        repository=_require_env(env, "GITHUB_REPOSITORY"),
        run_number=_require_env(env, "GITHUB_RUN_NUMBER"),
        ref=_require_env(env, "GITHUB_REF"),
        sha=_require_env(env, "GITHUB_SHA"),
        server_url=_require_env(env, "GITHUB_SERVER_URL"),
        project_name=get_input(env, "projectName") or None,
    )


def load_env_file_path(environ: Mapping[str, str] | None = None) -> Path:
    """Location of the file GitHub reads to propagate env vars to later steps."""
    env = os.environ if environ is None else environ
    return Path(_require_env(env, GITHUB_ENV_FILE))
