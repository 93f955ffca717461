"""Publish Riff-Raff build manifests and artifacts from GitHub Actions."""

__version__ = "0.1.0"
