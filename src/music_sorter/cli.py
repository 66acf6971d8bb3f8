from __future__ import annotations

import argparse
import os
from dataclasses import replace
from pathlib import Path

import structlog

from .config import Config, default_config_path, load_config, write_service_file
from .errors import InvalidRoot, SorterError
from .logs import configure_logging
from .models import SortOptions
from .sorter import sort_folder
from .template import DEFAULT_FORMAT, CompiledFormat
from .watcher import Watcher

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-sorter",
        description="Sort music files into folders built from their tags.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Path to a custom config file (defaults to {default_config_path()})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sort = subparsers.add_parser("sort", help="Sort a music directory")
    sort.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to the music directory (defaults to the current directory)",
    )
    sort.add_argument(
        "-f",
        "--format",
        type=str,
        default=None,
        help=f"Custom format string (defaults to the library's format, then {DEFAULT_FORMAT!r})",
    )
    sort.add_argument(
        "-d",
        "--dryrun",
        action="store_true",
        help="Don't sort anything. Simulated run.",
    )
    sort.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Sort files recursively",
    )
    sort.add_argument(
        "--remove-empty",
        action="store_true",
        help="Remove directories left empty after sorting",
    )
    sort.add_argument(
        "-e",
        "--exfat-compat",
        action="store_true",
        help="Keep file names compatible with FAT32/exFAT",
    )
    sort.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of files sorted in parallel (defaults to the CPU count)",
    )

    subparsers.add_parser("watch", help="Watch libraries and sort added files")
    subparsers.add_parser("copy-service", help="Write a systemd user service for watch mode")
    return parser


def build_sort_options(args: argparse.Namespace, config: Config, path: Path) -> SortOptions:
    found = config.search_format(path)
    exfat_compat = args.exfat_compat

    if args.format is not None:
        fmt = CompiledFormat.parse(args.format)
    elif found is not None:
        fmt, library_exfat = found
        exfat_compat = exfat_compat or library_exfat
    else:
        fmt = CompiledFormat.parse(DEFAULT_FORMAT)

    options = SortOptions(
        format=fmt,
        dryrun=args.dryrun,
        recursive=args.recursive,
        exfat_compat=exfat_compat,
        remove_empty=args.remove_empty,
    )
    if args.jobs is not None:
        options = replace(options, jobs=max(1, args.jobs))
    return options


def run_sort(args: argparse.Namespace, config: Config) -> None:
    path = Path(os.path.abspath((args.path or Path.cwd()).expanduser()))
    if not path.is_dir():
        raise InvalidRoot(path)

    options = build_sort_options(args, config, path)
    print(f"[sort] root: {path}")
    print(f"[sort] format: {options.format}")
    if options.dryrun:
        print("[sort] dry-run mode enabled")

    report = sort_folder(path, path, options)
    print(f"[sort] {report.summary()}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.command == "copy-service":
            service_path = write_service_file()
            print(f"[write] service file: {service_path}")
            return

        config = load_config(args.config)

        if args.command == "watch":
            Watcher(config).watch()
        else:
            run_sort(args, config)
    except SorterError as exc:
        logger.error(str(exc))
        raise SystemExit(1)
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    main()
