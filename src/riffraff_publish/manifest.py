"""Riff-Raff ``build.json`` manifest.

Schema: https://github.com/guardian/riff-raff/blob/main/riff-raff/public/docs/reference/build.json.md
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath

from riffraff_publish.config import BuildMetadata
from riffraff_publish.errors import InvalidRepositoryIdentifier, MissingConfiguration
from riffraff_publish.utils.time import to_iso_millis, utc_now

MANIFEST_FILENAME = "build.json"


@dataclass(frozen=True)
class BuildManifest:
    project_name: str
    build_number: str
    start_time: str
    vcs_url: str
    branch: str
    revision: str

    def __post_init__(self) -> None:
        for name, value in self.to_dict().items():
            if not value:
                raise MissingConfiguration(name)

    def to_dict(self) -> dict[str, str]:
        return {
            "projectName": self.project_name,
            "buildNumber": self.build_number,
            "startTime": self.start_time,
            "vcsURL": self.vcs_url,
            "branch": self.branch,
            "revision": self.revision,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def key(self) -> str:
        return upload_key(self.project_name, self.build_number, MANIFEST_FILENAME)


def repository_name(repository: str) -> str:
    """Second segment of an ``owner/repo`` identifier."""
    owner, sep, rest = repository.partition("/")
    name = rest.split("/", 1)[0]
    if not sep or not owner or not name:
        raise InvalidRepositoryIdentifier(repository)
    return name


def build_manifest(metadata: BuildMetadata, now: datetime | None = None) -> BuildManifest:
    repo_name = repository_name(metadata.repository)
    return BuildManifest(
        project_name=metadata.project_name or repo_name,
        build_number=metadata.run_number,
        start_time=to_iso_millis(now or utc_now()),
        vcs_url=f"{metadata.server_url}/{repo_name}",
        branch=metadata.ref,
        revision=metadata.sha,
    )


def upload_key(project_name: str, build_number: str, relative_path: str) -> str:
    """Object key ``{project}/{build}/{relative_path}`` with POSIX separators."""
    relative = PurePosixPath(relative_path.lstrip("/"))
    return str(PurePosixPath(project_name, build_number, relative))
