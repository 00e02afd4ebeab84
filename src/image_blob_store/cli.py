"""Command line entry point for image-blob-store."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .core.types import ConversionConfig
from .exceptions import BlobStoreError, PipelineError
from .pipeline import convert_bundle
from .store.package import package_tree

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-blob-store",
        description=(
            "Convert a docker save archive into a content-addressed blob store "
            "with a v2 manifest."
        ),
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="docker save tar file (default: read from stdin)",
    )
    parser.add_argument(
        "--dest", "-d",
        dest="dest_root",
        default=None,
        help="Destination root (default: new temporary directory)",
    )
    parser.add_argument(
        "--output", "-o",
        dest="output",
        default=None,
        help="Also write the finished work tree to this tar archive",
    )
    parser.add_argument(
        "--verify-config",
        action="store_true",
        default=None,
        help="Rehash the config blob instead of trusting its file name",
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Maximum number of layers streamed at once (default: 8)",
    )
    parser.add_argument(
        "--keep-source",
        action="store_true",
        help="Keep the extracted source directory",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


async def _run(args: argparse.Namespace) -> Path:
    config = ConversionConfig.from_env(
        verify_config=args.verify_config,
        max_concurrency=args.max_concurrency,
        cleanup_source=False if args.keep_source else None,
    )

    source = sys.stdin.buffer if args.input == "-" else args.input
    work_root = await convert_bundle(source, args.dest_root, config)

    if args.output:
        await package_tree(work_root, args.output)
    return work_root


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        work_root = asyncio.run(_run(args))
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except BlobStoreError as e:
        # Packaging runs after the pipeline and is not wrapped by it
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2

    print(f"Done! The blob store is in {work_root}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
