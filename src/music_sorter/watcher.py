from __future__ import annotations

import os
import queue
from dataclasses import replace
from pathlib import Path
from typing import Iterator

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import Config
from .errors import SorterError
from .models import SortOptions, SortReport
from .sorter import place_file, sort_folder

logger = structlog.get_logger()

CREATED = "created"
MOVED = "moved"


class WatchEventHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[tuple[str, Path]]) -> None:
        super().__init__()
        self.events = events

    @staticmethod
    def _path(raw: str | bytes) -> Path:
        return Path(os.fsdecode(raw))

    def on_created(self, event: FileSystemEvent) -> None:
        self.events.put((CREATED, self._path(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        self.events.put((MOVED, self._path(event.dest_path)))


class Watcher:
    def __init__(self, config: Config, options: SortOptions | None = None) -> None:
        self.config = config
        self.roots: dict[Path, str] = dict(config.watched_roots())
        # Paths our own renames created. Best effort: an outside write to the
        # same path before its event arrives is swallowed too.
        self.ignore: set[Path] = set()
        self.events: queue.Queue[tuple[str, Path]] = queue.Queue()
        # Template fields are replaced per library at dispatch time.
        self.base_options = options

    def watch(self) -> None:
        if not self.roots:
            logger.info("No directories to watch!")
            return

        observer = Observer()
        handler = WatchEventHandler(self.events)
        for root in self.roots:
            observer.schedule(handler, str(root), recursive=True)
        observer.start()

        logger.info("Watching libraries", roots=[str(root) for root in self.roots], every=self.config.watch.every)
        try:
            self.run()
        finally:
            observer.stop()
            observer.join()

    def run(self) -> None:
        while True:
            for kind, path in self.next_batch():
                self.handle(kind, path)

    def next_batch(self) -> Iterator[tuple[str, Path]]:
        batch = [self.events.get()]
        delay = self.config.watch.every
        while True:
            try:
                batch.append(self.events.get(timeout=delay) if delay > 0 else self.events.get_nowait())
            except queue.Empty:
                break
        return iter(dict.fromkeys(batch))

    def handle(self, kind: str, path: Path) -> None:
        if kind in (CREATED, MOVED):
            self.dispatch(Path(os.path.abspath(path)))

    def dispatch(self, path: Path) -> SortReport | None:
        if self.is_ignored(path):
            logger.debug("Ignoring self-caused event", path=str(path))
            self.ignore.discard(path)
            return None

        if not path.exists():
            logger.debug("Path vanished before it could be sorted", path=str(path))
            return None

        root = self.root_for(path)
        if root is None:
            return None

        options = self.options_for(self.roots[root])
        if options is None:
            logger.error("Library has no format", library=self.roots[root])
            return None

        try:
            if path.is_dir():
                report = sort_folder(root, path, options)
            else:
                new_path, created = place_file(root, path, options)
                report = SortReport(total=1, success=1, new_paths=[new_path], new_dirs=[created] if created else [])
        except (SorterError, OSError) as exc:
            logger.error("Couldn't sort", path=str(path), error=str(exc))
            return None

        logger.info(report.summary())
        self.ignore_report(report)
        return report

    def options_for(self, library: str) -> SortOptions | None:
        fmt = self.config.format_of(library)
        if fmt is None:
            return None
        exfat_compat = self.config.is_exfat_compat(library)
        if self.base_options is None:
            return SortOptions(format=fmt, recursive=True, remove_empty=True, exfat_compat=exfat_compat)
        return replace(
            self.base_options,
            format=fmt,
            dryrun=False,
            recursive=True,
            remove_empty=True,
            exfat_compat=exfat_compat,
        )

    def ignore_report(self, report: SortReport) -> None:
        # Directories that already existed never produce an event, so only new ones are kept.
        self.ignore.update(report.new_dirs)
        self.ignore.update(report.new_paths)

    def is_ignored(self, path: Path) -> bool:
        if path.is_file():
            return path in self.ignore

        for ignored in self.ignore:
            if ignored.is_dir() and ignored.is_relative_to(path):
                return True
        return False

    def root_for(self, path: Path) -> Path | None:
        for ancestor in (path, *path.parents):
            if ancestor in self.roots:
                return ancestor
        return None
