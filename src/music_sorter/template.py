from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import FailedToParse


class Tag(Enum):
    ARTIST = "artist"
    ALBUM = "album"
    DISC = "disc"
    TRACK = "track"
    TITLE = "title"
    EXT = "ext"


TAG_NAMES = {
    "artist": Tag.ARTIST,
    "album": Tag.ALBUM,
    "disc": Tag.DISC,
    "disk": Tag.DISC,
    "track": Tag.TRACK,
    "title": Tag.TITLE,
    "ext": Tag.EXT,
}
NUMERIC_TAGS = {Tag.DISC, Tag.TRACK}
MAX_LEADING = 255

PLACEHOLDER_RE = re.compile(r"\{(?P<name>[^{}:?]*)(?::(?P<leading>[^{}?]*))?(?P<optional>\?)?\}")


@dataclass(frozen=True)
class Placeholder:
    tag: Tag
    leading: int = 0
    optional: bool = False

    @property
    def counts_in_file(self) -> bool:
        return not self.optional and self.tag is not Tag.EXT


Component = Union[str, Placeholder]


@dataclass(frozen=True)
class DirSegment:
    components: tuple[Component, ...]


@dataclass(frozen=True)
class FileSegment:
    components: tuple[Component, ...]


Segment = Union[DirSegment, FileSegment]


def _parse_placeholder(source: str, body: re.Match[str]) -> Placeholder:
    name = body.group("name")
    tag = TAG_NAMES.get(name)
    if tag is None:
        raise FailedToParse(source, f"unknown tag {name!r}")

    leading = 0
    raw_leading = body.group("leading")
    if raw_leading is not None:
        if tag not in NUMERIC_TAGS:
            raise FailedToParse(source, f"{name} doesn't accept a leading width")
        if not raw_leading.isascii() or not raw_leading.isdigit():
            raise FailedToParse(source, f"invalid leading width {raw_leading!r}")
        leading = int(raw_leading)
        if leading > MAX_LEADING:
            raise FailedToParse(source, f"leading width {leading} is out of range")

    optional = body.group("optional") is not None
    if optional and tag is Tag.EXT:
        raise FailedToParse(source, "ext can't be optional")

    return Placeholder(tag=tag, leading=leading, optional=optional)


def parse_components(source: str) -> list[Component]:
    if not source:
        raise FailedToParse(source, "empty format string")

    components: list[Component] = []
    pos = 0
    while pos < len(source):
        if source[pos] == "{":
            match = PLACEHOLDER_RE.match(source, pos)
            if match is None:
                raise FailedToParse(source, f"malformed placeholder at position {pos}")
            components.append(_parse_placeholder(source, match))
            pos = match.end()
        else:
            end = source.find("{", pos)
            if end == -1:
                end = len(source)
            components.append(source[pos:end])
            pos = end

    return components


def _split_segments(components: list[Component]) -> tuple[Segment, ...]:
    segments: list[Segment] = []
    current: list[Component] = []

    for component in components:
        if isinstance(component, Placeholder):
            current.append(component)
            continue

        *dirs, rest = component.split("/")
        for part in dirs:
            if part:
                current.append(part)
            segments.append(DirSegment(tuple(current)))
            current = []
        if rest:
            current.append(rest)

    if current:
        segments.append(FileSegment(tuple(current)))

    return tuple(segments)


@dataclass(frozen=True)
class CompiledFormat:
    segments: tuple[Segment, ...]
    source: str

    @classmethod
    def parse(cls, text: str) -> CompiledFormat:
        return cls(segments=_split_segments(parse_components(text)), source=text)

    def to_text(self) -> str:
        return self.source

    @property
    def file_segment(self) -> FileSegment | None:
        if self.segments and isinstance(self.segments[-1], FileSegment):
            return self.segments[-1]
        return None

    def __str__(self) -> str:
        return self.source


DEFAULT_FORMAT = "{artist}/{album}/{track} - {title}.{ext}"
