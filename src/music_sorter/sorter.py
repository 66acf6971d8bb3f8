from __future__ import annotations

import os
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from pathlib import Path

import structlog

from .builder import build_path
from .errors import InvalidParent, InvalidRoot, SorterError
from .models import SortOptions, SortReport

logger = structlog.get_logger()


def _absolute(path: Path | str) -> Path:
    # Normalized but not resolved, so paths keep matching watcher events.
    return Path(os.path.abspath(path))


def place_file(root: Path | str, file: Path | str, options: SortOptions) -> tuple[Path, Path | None]:
    """Like ``sort_file``, also returning the destination directory if this call created it."""
    root = _absolute(root)
    file = _absolute(file)

    if options.dryrun:
        logger.info("Working on (dryrun)", path=str(file))
    else:
        logger.info("Working on", path=str(file))

    metadata = options.reader(file)
    new_path = root / build_path(options.format, metadata, options.exfat_compat)

    created = None
    if not options.dryrun:
        parent = new_path.parent
        if parent == new_path:
            raise InvalidParent(new_path)
        if not parent.exists():
            created = parent
        parent.mkdir(parents=True, exist_ok=True)
        file.rename(new_path)

    logger.info("Item created", path=str(new_path))
    return new_path, created


def sort_file(root: Path | str, file: Path | str, options: SortOptions) -> Path:
    return place_file(root, file, options)[0]


def _sort_batch(root: Path, files: list[Path], options: SortOptions, executor: Executor) -> SortReport:
    report = SortReport()
    futures = {executor.submit(place_file, root, path, options): path for path in files}

    for future in as_completed(futures):
        path = futures[future]
        report.total += 1
        try:
            new_path, created = future.result()
        except (SorterError, OSError) as exc:
            logger.error("Couldn't sort file", path=str(path), error=str(exc))
            continue
        report.success += 1
        report.new_paths.append(new_path)
        if created is not None:
            report.new_dirs.append(created)

    return report


def _remove_if_empty(directory: Path, dryrun: bool) -> None:
    try:
        if any(directory.iterdir()):
            return
    except OSError as exc:
        logger.error("Couldn't read directory", path=str(directory), error=str(exc))
        return

    if dryrun:
        logger.info("Would remove empty folder (dryrun)", path=str(directory))
        return

    logger.info("Removing empty folder", path=str(directory))
    try:
        directory.rmdir()
    except OSError as exc:
        logger.error("Couldn't remove dir", path=str(directory), error=str(exc))


def sort_folder(root: Path | str, start: Path | str, options: SortOptions) -> SortReport:
    """Sort every file below ``start`` into ``root``; single-file failures are counted, never raised."""
    root = _absolute(root)
    start = _absolute(start)

    if not root.is_dir():
        raise InvalidRoot(root)
    if not start.is_dir():
        raise InvalidRoot(start)

    report = SortReport()
    placed: set[Path] = set()
    stack: list[tuple[Path, bool]] = [(start, False)]

    # Each directory is pushed twice; the second pop runs after everything below it is done.
    with ThreadPoolExecutor(max_workers=max(1, options.jobs)) as executor:
        while stack:
            directory, children_done = stack.pop()

            if children_done:
                if options.remove_empty and directory != root:
                    _remove_if_empty(directory, options.dryrun)
                continue

            try:
                entries = list(directory.iterdir())
            except OSError as exc:
                logger.error("Couldn't read directory", path=str(directory), error=str(exc))
                continue

            stack.append((directory, True))

            files: list[Path] = []
            subdirs: list[Path] = []
            for entry in entries:
                try:
                    if entry.is_dir():
                        # Symlinked directories could cycle back into the tree.
                        if not entry.is_symlink():
                            subdirs.append(entry)
                    elif entry.is_file() and entry not in placed:
                        files.append(entry)
                except OSError as exc:
                    logger.error("Couldn't read metadata", path=str(entry), error=str(exc))

            batch = _sort_batch(root, files, options, executor)
            placed.update(batch.new_paths)
            report = report.merge(batch)

            if options.recursive:
                stack.extend((subdir, False) for subdir in subdirs)

    return report
