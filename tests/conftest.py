"""Pytest configuration and fixtures.

Real audio fixtures are not needed: tracks are small text files whose first
line is ``FAKEAUDIO`` followed by ``key=value`` tag lines, read back by
``read_fake_tags``. Anything else counts as an unsupported file type.
"""

from pathlib import Path
from typing import Callable

import pytest

from music_sorter.errors import NotSupported
from music_sorter.metadata import Metadata
from music_sorter.models import SortOptions
from music_sorter.template import CompiledFormat

MAGIC = "FAKEAUDIO"
FORMAT = "{artist}/{album}/{track:2} - {title}.{ext}"


def read_fake_tags(path: Path) -> Metadata:
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    if not lines or lines[0] != MAGIC:
        raise NotSupported(path)

    tags = dict(line.split("=", 1) for line in lines[1:] if "=" in line)
    return Metadata(
        ext=tags.get("ext", Path(path).suffix.lstrip(".")),
        artist=tags.get("artist"),
        album=tags.get("album"),
        disc=int(tags["disc"]) if "disc" in tags else None,
        track=int(tags["track"]) if "track" in tags else None,
        title=tags.get("title"),
    )


@pytest.fixture
def write_track() -> Callable[..., Path]:
    """Write a fake tagged track and return its path."""

    def _write(path: Path, **tags: object) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        body = [MAGIC] + [f"{key}={value}" for key, value in tags.items()]
        path.write_text("\n".join(body) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_junk() -> Callable[[Path], Path]:
    """Write a file that the fake reader rejects as unsupported."""

    def _write(path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("not audio\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def options() -> SortOptions:
    return SortOptions(format=CompiledFormat.parse(FORMAT), reader=read_fake_tags, jobs=2)


@pytest.fixture
def library(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root
