from __future__ import annotations

import os
from pathlib import Path

import pytest

from riffraff_publish import artifacts
from riffraff_publish.artifacts import (
    DESCRIPTOR_FILENAME,
    ArtifactFileSet,
    enumerate_artifacts,
    ensure_descriptor,
)
from riffraff_publish.errors import DirectoryReadFailed, MissingManifestDescriptor
from riffraff_publish.manifest import upload_key


@pytest.fixture
def artifact_tree(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    (root / "sub" / "sub2").mkdir(parents=True)
    (root / "a.txt").write_text("a")
    (root / "sub" / "b.txt").write_text("b")
    (root / "sub" / "sub2" / "c.txt").write_text("c")
    return root


@pytest.mark.asyncio
async def test_enumerate_artifacts_finds_nested_files(artifact_tree: Path) -> None:
    files = await enumerate_artifacts(artifact_tree)

    assert len(files) == 3
    assert all(path.is_absolute() for path in files)
    assert {files.relative_path(path) for path in files} == {
        "a.txt",
        "sub/b.txt",
        "sub/sub2/c.txt",
    }


@pytest.mark.asyncio
async def test_enumerate_artifacts_resolves_relative_root(
    artifact_tree: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(artifact_tree.parent)

    files = await enumerate_artifacts("root")

    assert files.root.resolve() == artifact_tree.resolve()
    assert sorted(files.relative_path(path) for path in files) == [
        "a.txt",
        "sub/b.txt",
        "sub/sub2/c.txt",
    ]


@pytest.mark.asyncio
async def test_enumerate_artifacts_is_depth_first(artifact_tree: Path) -> None:
    (artifact_tree / "z.txt").write_text("z")
    (artifact_tree / "other").mkdir()
    (artifact_tree / "other" / "d.txt").write_text("d")

    files = await enumerate_artifacts(artifact_tree)

    assert [files.relative_path(path) for path in files] == [
        "a.txt",
        "z.txt",
        "other/d.txt",
        "sub/b.txt",
        "sub/sub2/c.txt",
    ]


@pytest.mark.asyncio
async def test_enumerate_empty_directory(tmp_path: Path) -> None:
    files = await enumerate_artifacts(tmp_path)
    assert len(files) == 0


@pytest.mark.asyncio
async def test_enumerate_missing_root_fails(tmp_path: Path) -> None:
    with pytest.raises(DirectoryReadFailed, match="missing"):
        await enumerate_artifacts(tmp_path / "missing")


@pytest.mark.asyncio
async def test_unreadable_subdirectory_aborts(
    artifact_tree: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = artifacts._list_directory
    blocked = artifact_tree / "sub" / "sub2"

    def _list(directory: Path) -> list[os.DirEntry[str]]:
        if directory == blocked:
            raise PermissionError(13, "Permission denied", str(directory))
        return original(directory)

    monkeypatch.setattr(artifacts, "_list_directory", _list)

    with pytest.raises(DirectoryReadFailed, match="Permission denied") as exc_info:
        await enumerate_artifacts(artifact_tree)
    assert exc_info.value.path == str(blocked)


def test_ensure_descriptor(artifact_tree: Path) -> None:
    (artifact_tree / DESCRIPTOR_FILENAME).write_text("stacks: [deploy]\n")

    assert ensure_descriptor(artifact_tree) == artifact_tree / "riff-raff.yaml"


def test_ensure_descriptor_missing(artifact_tree: Path) -> None:
    with pytest.raises(MissingManifestDescriptor, match="riff-raff.yaml"):
        ensure_descriptor(artifact_tree)


def test_ensure_descriptor_must_be_top_level_file(artifact_tree: Path) -> None:
    (artifact_tree / "sub" / DESCRIPTOR_FILENAME).write_text("stacks: [deploy]\n")
    (artifact_tree / DESCRIPTOR_FILENAME).mkdir()

    with pytest.raises(MissingManifestDescriptor):
        ensure_descriptor(artifact_tree)


def test_relative_path_maps_to_upload_key(tmp_path: Path) -> None:
    root = tmp_path / "root"
    file_set = ArtifactFileSet(root=root, paths=(root / "sub" / "file.txt",))

    keys = [upload_key("p", "7", file_set.relative_path(path)) for path in file_set]
    assert keys == ["p/7/sub/file.txt"]
