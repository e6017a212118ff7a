"""Command line entry point: ``tesslocate INPUT OUTPUT``."""

import argparse
from pathlib import Path
from typing import Optional, Sequence

from .config import LocateConfig
from .errors import DatasetUnavailableError
from .footprints import load_footprints
from .index import FootprintIndex
from .io import output_format, read_targets, write_targets
from .locate import BatchLocator
from .logging import logger, set_log_level


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tesslocate", description="Locate targets on TESS FFIs"
    )
    parser.add_argument("input", help="path to csv with columns ID, ra, dec")
    parser.add_argument("output", help="output file path, either json or csv")
    parser.add_argument("--workers", type=int, default=None, help="Number of worker threads (default: all CPUs)")
    parser.add_argument("--chunk-size", type=int, default=None, help="Targets per unit of work")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Directory of the footprint cache file")
    parser.add_argument("--depth", type=int, default=None, help="HEALPix depth of the index cells")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging verbosity",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    set_log_level(args.log_level)

    if not Path(args.input).exists():
        logger.error(f"File {args.input} does not exist.")
        return 1
    try:
        output_format(args.output)
    except ValueError as e:
        logger.error(str(e))
        return 1

    config = LocateConfig.for_environment(
        workers=args.workers,
        chunk_size=args.chunk_size,
        cache_dir=args.cache_dir,
        depth=args.depth,
    )
    logger.debug(f"Using {config!r}")

    try:
        dataset = load_footprints(config.cache_dir, url=config.url)
    except DatasetUnavailableError as e:
        logger.error(str(e))
        return 2
    index = FootprintIndex.from_dataset(dataset, depth=config.depth)

    records = read_targets(args.input)
    targets = BatchLocator.from_config(index, config).locate(records)
    write_targets(args.output, targets)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
