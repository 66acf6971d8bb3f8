from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mutagen import File, MutagenError
from mutagen.flac import FLAC
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4
from mutagen.oggvorbis import OggVorbis

from .errors import EmptyComments, MissingTag, NotSupported, TagReadError


def _first(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        if not value:
            return None
        value = value[0]
    text = str(value).strip()
    return text if text else None


def _tag_value(tags: object, *keys: str) -> str | None:
    if tags is None:
        return None

    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError):
            value = None
        text = _first(value)
        if text:
            return text

    return None


def _number(value: str | None) -> int | None:
    # "3/12" style totals are common in ID3 and MP4 tags.
    if value is None:
        return None
    head = value.split("/", 1)[0].strip()
    if not head.isdigit():
        return None
    return int(head)


def _ext_for(audio: object, path: Path) -> str | None:
    if isinstance(audio, FLAC):
        return "flac"
    if isinstance(audio, MP3):
        return "mp3"
    if isinstance(audio, OggVorbis):
        return "ogg"
    if isinstance(audio, MP4):
        suffix = path.suffix.lstrip(".")
        return suffix if suffix else "m4a"
    return None


@dataclass
class Metadata:
    ext: str
    artist: str | None = None
    album: str | None = None
    disc: int | None = None
    track: int | None = None
    title: str | None = None

    @classmethod
    def from_path(cls, path: Path) -> Metadata:
        path = Path(path)
        try:
            audio = File(path, easy=True)
        except MutagenError as exc:
            # mutagen wraps I/O failures as well as broken headers.
            raise TagReadError(path, str(exc)) from exc

        if audio is None:
            raise NotSupported(path)

        ext = _ext_for(audio, path)
        if ext is None:
            raise NotSupported(path)

        tags = getattr(audio, "tags", None)
        if isinstance(audio, FLAC) and not tags:
            raise EmptyComments(path)

        return cls.from_tags(tags, ext)

    @classmethod
    def from_tags(cls, tags: object, ext: str) -> Metadata:
        return cls(
            ext=ext,
            artist=_tag_value(tags, "albumartist", "artist"),
            album=_tag_value(tags, "album"),
            disc=_number(_tag_value(tags, "discnumber")),
            track=_number(_tag_value(tags, "tracknumber")),
            title=_tag_value(tags, "title"),
        )

    def _require(self, name: str) -> str:
        value = getattr(self, name)
        if value is None:
            raise MissingTag(name)
        return str(value)

    def get_artist(self) -> str:
        return self._require("artist")

    def get_album(self) -> str:
        return self._require("album")

    def get_disc(self) -> str:
        return self._require("disc")

    def get_track(self) -> str:
        return self._require("track")

    def get_title(self) -> str:
        return self._require("title")

    def get_ext(self) -> str:
        return self.ext
