"""Command-line entry point for drivetreelib.

``crawl`` walks a Drive folder into a JSON tree, ``analyze`` reads the tree
back and prints every folder shared with anyone. The original command names
``start`` and ``stats`` are accepted as aliases.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .aio.api import analyze_file, crawl_to_file
from .aio.core.crawler import CrawlAbortedError
from .aio.error_policies import RetryPolicy
from .config import AnalyzeConfig, CrawlConfig, DriveConfig
from .serialization import TreeFormatError

logger = logging.getLogger("drivetreelib.cli")


def _add_crawl_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("root_id", help="ID of the root folder")
    parser.add_argument(
        "--output",
        default=str(CrawlConfig.output_path),
        type=Path,
        help="Path of the JSON tree to write",
    )
    parser.add_argument(
        "--client-secret",
        default=str(DriveConfig.client_secret_path),
        type=Path,
        help="Path of the Google Cloud API client secret",
    )
    parser.add_argument("--user", default=DriveConfig.user, help="User to authorize as")
    parser.add_argument(
        "--application-name",
        default=DriveConfig.application_name,
        help="Application name sent to the API",
    )
    parser.add_argument(
        "--token-dir",
        type=Path,
        default=None,
        help="Directory holding cached per-user tokens",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=CrawlConfig.max_concurrent,
        help="Maximum number of folders expanded concurrently",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=CrawlConfig.max_retries,
        help="Retries per page request on rate limiting or network errors",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the crawl after this many seconds",
    )


def _add_analyze_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--input",
        default=str(AnalyzeConfig.input_path),
        type=Path,
        help="Path of the JSON tree to read",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=AnalyzeConfig.max_concurrent,
        help="Maximum number of nodes evaluated concurrently",
    )
    parser.add_argument(
        "--principal-type",
        default=AnalyzeConfig.principal_type,
        help="Report items shared with this principal type",
    )
    parser.add_argument(
        "--include-root",
        action="store_true",
        help="Evaluate the root folder itself as well",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drivetreelib",
        description="Crawl a Drive folder tree and report publicly shared items.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Explicit log level (overrides --verbose)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser(
        "crawl", aliases=["start"], help="Generate a JSON tree of the items under a root folder"
    )
    _add_crawl_arguments(crawl)
    crawl.set_defaults(handler=_run_crawl)

    analyze = subparsers.add_parser(
        "analyze", aliases=["stats"], help="List folders in a JSON tree shared with anyone"
    )
    _add_analyze_arguments(analyze)
    analyze.set_defaults(handler=_run_analyze)
    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    if args.log_level:
        level = getattr(logging, args.log_level)
    else:
        level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


def _run_crawl(args: argparse.Namespace) -> int:
    # Imported here so ``analyze`` works without the drive extra
    from .aio.adapters.drive import DriveListingClient

    config = CrawlConfig(
        max_concurrent=args.max_concurrent,
        max_retries=args.retries,
        timeout_seconds=args.timeout,
        output_path=args.output,
    )
    drive_kwargs = dict(
        client_secret_path=args.client_secret,
        user=args.user,
        application_name=args.application_name,
    )
    if args.token_dir is not None:
        drive_kwargs["token_dir"] = args.token_dir
    drive_config = DriveConfig(**drive_kwargs)

    policy = None
    if config.max_retries:
        policy = RetryPolicy(
            max_retries=config.max_retries,
            backoff_factor=config.backoff_factor,
            base_delay=config.base_delay,
        )

    async def crawl() -> None:
        async with DriveListingClient.from_config(drive_config) as client:
            await crawl_to_file(
                client,
                args.root_id,
                config.output_path,
                max_concurrent=config.max_concurrent,
                error_policy=policy,
                timeout_seconds=config.timeout_seconds,
            )

    asyncio.run(crawl())
    return 0


def _run_analyze(args: argparse.Namespace) -> int:
    config = AnalyzeConfig(
        max_concurrent=args.max_concurrent,
        principal_type=args.principal_type,
        include_root=args.include_root,
        input_path=args.input,
    )
    report = asyncio.run(
        analyze_file(
            config.input_path,
            max_concurrent=config.max_concurrent,
            principal_type=config.principal_type,
            separator=config.separator,
            include_root=config.include_root,
        )
    )
    print(f"Folders: {report.folder_count}")
    print(f"Files: {report.file_count}")
    print(f"Visited folders: {report.visited_folders}")
    print(f"Visited files: {report.visited_files}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args)
    try:
        return args.handler(args)
    except (CrawlAbortedError, TreeFormatError, FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
