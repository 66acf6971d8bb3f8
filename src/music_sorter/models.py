from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .metadata import Metadata
from .template import CompiledFormat


MetadataReader = Callable[[Path], Metadata]


def _default_jobs() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class SortOptions:
    format: CompiledFormat
    dryrun: bool = False
    recursive: bool = False
    exfat_compat: bool = False
    remove_empty: bool = False
    jobs: int = field(default_factory=_default_jobs)
    reader: MetadataReader = Metadata.from_path


@dataclass
class SortReport:
    total: int = 0
    success: int = 0
    new_paths: list[Path] = field(default_factory=list)
    new_dirs: list[Path] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - self.success

    def merge(self, other: SortReport) -> SortReport:
        return SortReport(
            total=self.total + other.total,
            success=self.success + other.success,
            new_paths=self.new_paths + other.new_paths,
            new_dirs=self.new_dirs + other.new_dirs,
        )

    def summary(self) -> str:
        return f"Done: {self.success} successful out of {self.total} ({self.failed} failed)"
