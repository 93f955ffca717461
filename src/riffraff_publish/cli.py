"""Command-line entrypoint, run as a GitHub Actions step."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from riffraff_publish import __version__
from riffraff_publish.actions import set_failed
from riffraff_publish.config import (
    load_build_metadata,
    load_env_file_path,
    load_run_config,
    load_settings,
    load_web_identity_config,
)
from riffraff_publish.errors import error_message
from riffraff_publish.logging_utils import get_logger
from riffraff_publish.runner import configure_credentials, run


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="riffraff-publish",
        description="Publish a Riff-Raff build manifest and artifacts to S3.",
    )
    parser.add_argument(
        "--version", action="version", version=f"riffraff-publish {__version__}"
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="publish",
        choices=("publish", "configure-credentials"),
        help=(
            "publish: upload build.json and artifacts (default); "
            "configure-credentials: export web identity settings to later steps"
        ),
    )
    return parser


async def _publish() -> None:
    logger = get_logger(__name__)
    config = load_run_config()
    metadata = load_build_metadata()
    result = await run(config, metadata, settings=load_settings())
    logger.info(
        "Published %s build %s (%d artifacts)",
        result.manifest.project_name,
        result.manifest.build_number,
        len(result.artifact_keys),
    )


async def _configure_credentials() -> None:
    logger = get_logger(__name__)
    config = load_web_identity_config()
    variables = await configure_credentials(
        config, load_env_file_path(), settings=load_settings()
    )
    logger.info("Exported %s", ", ".join(sorted(variables)))


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        if args.command == "configure-credentials":
            asyncio.run(_configure_credentials())
        else:
            asyncio.run(_publish())
    except Exception as exc:
        logging.getLogger(__name__).debug("Run failed", exc_info=True)
        set_failed(error_message(exc))
        return 1
    return 0


def run_entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run_entrypoint()
