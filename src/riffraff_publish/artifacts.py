"""Artifact directory checks and enumeration."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from riffraff_publish.errors import DirectoryReadFailed, MissingManifestDescriptor

logger = logging.getLogger(__name__)

DESCRIPTOR_FILENAME = "riff-raff.yaml"


@dataclass(frozen=True)
class ArtifactFileSet:
    """Absolute paths of every regular file under ``root``."""

    root: Path
    paths: tuple[Path, ...]

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    def relative_path(self, path: Path) -> str:
        """``path`` relative to ``root``, POSIX-separated."""
        return path.relative_to(self.root).as_posix()


def resolve_root(directory: str | os.PathLike[str]) -> Path:
    return Path(directory).expanduser().absolute()


def ensure_descriptor(directory: str | os.PathLike[str]) -> Path:
    """Check that ``riff-raff.yaml`` sits at the top of the artifact directory.

    Raises:
        MissingManifestDescriptor: If it is absent or not a regular file
    """
    descriptor = resolve_root(directory) / DESCRIPTOR_FILENAME
    if not descriptor.is_file():
        raise MissingManifestDescriptor(str(descriptor))
    return descriptor


def _list_directory(directory: Path) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


async def enumerate_artifacts(directory: str | os.PathLike[str]) -> ArtifactFileSet:
    """Collect every regular file below ``directory``, depth-first.

    Directories are expanded from an explicit stack. A directory that cannot
    be listed aborts the whole enumeration.

    Raises:
        DirectoryReadFailed: If any directory along the way cannot be listed
    """
    root = resolve_root(directory)
    files: list[Path] = []
    stack: list[Path] = [root]

    while stack:
        current = stack.pop()
        try:
            entries = await asyncio.to_thread(_list_directory, current)
        except OSError as exc:
            raise DirectoryReadFailed(str(current), exc.strerror or str(exc)) from exc

        subdirectories: list[Path] = []
        for entry in entries:
            path = current / entry.name
            try:
                if entry.is_dir():
                    subdirectories.append(path)
                elif entry.is_file():
                    files.append(path)
                else:
                    logger.debug("Skipping special file %s", path)
            except OSError as exc:
                raise DirectoryReadFailed(str(current), exc.strerror or str(exc)) from exc
        # Reversed so the first subdirectory is popped (and expanded) first.
        stack.extend(reversed(subdirectories))

    logger.debug("Found %d artifact files under %s", len(files), root)
    return ArtifactFileSet(root=root, paths=tuple(files))
