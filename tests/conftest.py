from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from riffraff_publish import config
from riffraff_publish.aws_credentials import TemporaryCredentials

ROLE_ARN = "arn:aws:iam::111111111111:role/riffraff-publish"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    for key in config.ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture
def github_env(tmp_path) -> dict[str, str]:
    artifact_dir = tmp_path / "dist"
    artifact_dir.mkdir()
    return {
        "ACTIONS_ID_TOKEN_REQUEST_TOKEN": "request-token",
        "ACTIONS_ID_TOKEN_REQUEST_URL": "https://token.actions.example.com/idtoken?api-version=2.0",
        "INPUT_AWSROLETOASSUME": ROLE_ARN,
        "INPUT_AWSREGION": "eu-west-1",
        "INPUT_ARTIFACTBUCKET": "artifact-bucket",
        "INPUT_BUILDBUCKET": "build-bucket",
        "INPUT_ARTIFACTDIRECTORY": str(artifact_dir),
        "GITHUB_REPOSITORY": "guardian/my-app",
        "GITHUB_RUN_NUMBER": "42",
        "GITHUB_REF": "refs/heads/main",
        "GITHUB_SHA": "abc123",
        "GITHUB_SERVER_URL": "https://github.com",
    }


def make_credentials(
    expiration: datetime | None = None,
    access_key_id: str = "ASIAXXXXXXXX",
) -> TemporaryCredentials:
    return TemporaryCredentials(
        access_key_id=access_key_id,
        secret_access_key="secret",
        session_token="session-token",
        expiration=expiration or (datetime.now(timezone.utc) + timedelta(hours=1)),
        assumed_role_arn="arn:aws:sts::111111111111:assumed-role/riffraff-publish/gh",
        assumed_role_id="AROATEST:gh",
    )


@pytest.fixture
def credentials_factory():
    return make_credentials
