from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Callable, Protocol

from .errors import MissingTag, OptionalInDir, RequiredInFile
from .template import CompiledFormat, DirSegment, Placeholder, Tag

SEPARATOR_CHARS = re.compile(r"/")
EXFAT_INVALID_CHARS = re.compile(r"[/\"*:<>\\?|]")


class TagSource(Protocol):
    def get_artist(self) -> str: ...

    def get_album(self) -> str: ...

    def get_disc(self) -> str: ...

    def get_track(self) -> str: ...

    def get_title(self) -> str: ...

    def get_ext(self) -> str: ...


def sanitize(value: str, exfat_compat: bool = False) -> str:
    pattern = EXFAT_INVALID_CHARS if exfat_compat else SEPARATOR_CHARS
    return pattern.sub("_", value)


def add_leading_zeros(value: str, leading: int) -> str:
    return value.rjust(leading, "0")


def _getter(metadata: TagSource, tag: Tag) -> Callable[[], str]:
    return {
        Tag.ARTIST: metadata.get_artist,
        Tag.ALBUM: metadata.get_album,
        Tag.DISC: metadata.get_disc,
        Tag.TRACK: metadata.get_track,
        Tag.TITLE: metadata.get_title,
        Tag.EXT: metadata.get_ext,
    }[tag]


def resolve(metadata: TagSource, placeholder: Placeholder) -> str | None:
    try:
        value = _getter(metadata, placeholder.tag)()
    except MissingTag:
        if placeholder.optional:
            return None
        raise

    if placeholder.tag in (Tag.DISC, Tag.TRACK):
        value = add_leading_zeros(value, placeholder.leading)
    return value


def build_path(template: CompiledFormat, metadata: TagSource, exfat_compat: bool = False) -> PurePosixPath:
    path: list[str] = []

    for segment in template.segments:
        if isinstance(segment, DirSegment):
            for component in segment.components:
                if isinstance(component, str):
                    path.append(component)
                    continue
                value = resolve(metadata, component)
                if value is None:
                    raise OptionalInDir()
                path.append(sanitize(value, exfat_compat))
            path.append("/")
            continue

        required_found = 0
        for component in segment.components:
            if isinstance(component, str):
                path.append(component)
                continue
            if component.counts_in_file:
                required_found += 1
            value = resolve(metadata, component)
            if value is not None:
                path.append(sanitize(value, exfat_compat))

        if required_found < 1:
            raise RequiredInFile()

    return PurePosixPath("".join(path))
