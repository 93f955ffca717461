from __future__ import annotations

import os
from pathlib import Path

import pytest

from riffraff_publish import cli, logging_utils
from riffraff_publish.errors import PublishFailed
from riffraff_publish.manifest import BuildManifest
from riffraff_publish.runner import PublishResult

ALL_KEYS = (
    "ACTIONS_ID_TOKEN_REQUEST_TOKEN",
    "ACTIONS_ID_TOKEN_REQUEST_URL",
    "GITHUB_REPOSITORY",
    "GITHUB_RUN_NUMBER",
    "GITHUB_REF",
    "GITHUB_SHA",
    "GITHUB_SERVER_URL",
    "GITHUB_ENV",
)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", True)
    for key in ALL_KEYS:
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith("INPUT_"):
            monkeypatch.delenv(key)


def _set_env(monkeypatch: pytest.MonkeyPatch, env: dict[str, str]) -> None:
    for key, value in env.items():
        monkeypatch.setenv(key, value)


def _result() -> PublishResult:
    manifest = BuildManifest(
        project_name="my-app",
        build_number="42",
        start_time="2024-01-01T00:00:00.000Z",
        vcs_url="https://github.com/my-app",
        branch="refs/heads/main",
        revision="abc123",
    )
    return PublishResult(manifest=manifest, manifest_key=manifest.key, artifact_keys=[])


def test_main_publish_success(monkeypatch: pytest.MonkeyPatch, github_env) -> None:
    _set_env(monkeypatch, github_env)
    captured = {}

    async def fake_run(config, metadata, **kwargs):
        captured["config"] = config
        captured["metadata"] = metadata
        return _result()

    monkeypatch.setattr(cli, "run", fake_run)

    assert cli.main([]) == 0
    assert captured["config"].build_bucket == "build-bucket"
    assert captured["metadata"].repository == "guardian/my-app"


def test_main_reports_missing_configuration(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["publish"]) == 1

    out = capsys.readouterr().out
    assert "::error::ACTIONS_ID_TOKEN_REQUEST_TOKEN not found" in out


def test_main_reports_run_failure(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    github_env,
) -> None:
    _set_env(monkeypatch, github_env)

    async def fake_run(config, metadata, **kwargs):
        raise PublishFailed("my-app/42/app.zip", "AccessDenied: Access Denied")

    monkeypatch.setattr(cli, "run", fake_run)

    assert cli.main([]) == 1
    out = capsys.readouterr().out
    assert "::error::Failed to upload my-app/42/app.zip: AccessDenied: Access Denied" in out


def test_main_configure_credentials(
    monkeypatch: pytest.MonkeyPatch,
    github_env,
    tmp_path: Path,
) -> None:
    env_file = tmp_path / "github_env"
    _set_env(monkeypatch, {**github_env, "GITHUB_ENV": str(env_file)})
    captured = {}

    async def fake_configure(config, path, **kwargs):
        captured["config"] = config
        captured["path"] = path
        return {"AWS_ROLE_ARN": config.role_arn}

    monkeypatch.setattr(cli, "configure_credentials", fake_configure)

    assert cli.main(["configure-credentials"]) == 0
    assert captured["path"] == env_file
    assert captured["config"].region == "eu-west-1"


def test_main_configure_credentials_requires_github_env(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    github_env,
) -> None:
    _set_env(monkeypatch, github_env)

    assert cli.main(["configure-credentials"]) == 1
    assert "::error::GITHUB_ENV not found" in capsys.readouterr().out


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--version"])
    assert exc_info.value.code == 0
    assert "riffraff-publish" in capsys.readouterr().out
