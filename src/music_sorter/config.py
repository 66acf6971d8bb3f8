from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Iterator

import structlog
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_serializer, field_validator

from .errors import FailedToParse, InvalidConfig, ResourceNotFound
from .template import CompiledFormat

logger = structlog.get_logger()

DEFAULT_CONFIG = """\
[watch]
# Seconds to wait for a burst of filesystem events to settle.
every = 1
libraries = ["main"]

[libraries.main]
format = "{artist}/{album}/{disc?}.{track} - {title}.{ext}"
folders = ["~/Music"]
exfat-compat = false
"""

TOML_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}
TOML_ESCAPE_RE = re.compile(r'["\\\x00-\x1f\x7f]')


def config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def default_config_path() -> Path:
    return config_dir() / "music-sorter" / "config.toml"


def toml_string(value: str) -> str:
    def escape(match: re.Match[str]) -> str:
        char = match.group()
        return TOML_ESCAPES.get(char, f"\\u{ord(char):04x}")

    return f'"{TOML_ESCAPE_RE.sub(escape, value)}"'


def toml_array(values: list[str]) -> str:
    return f"[{', '.join(toml_string(value) for value in values)}]"


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    where = ".".join(str(part) for part in error["loc"])
    return f"{where}: {error['msg']}" if where else error["msg"]


class WatchConfig(BaseModel):
    every: int = Field(default=1, ge=0, strict=True, description="Debounce interval in seconds")
    libraries: list[StrictStr] = Field(default_factory=list, description="Libraries to keep sorted")


class LibraryConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    format: CompiledFormat
    folders: list[Path] = Field(default_factory=list)
    exfat_compat: bool = Field(default=False, alias="exfat-compat", strict=True)

    @field_validator("format", mode="before")
    @classmethod
    def parse_format(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        try:
            return CompiledFormat.parse(value)
        except FailedToParse as exc:
            raise ValueError(str(exc)) from exc

    @field_serializer("format")
    def dump_format(self, value: CompiledFormat) -> str:
        return value.to_text()


class Config(BaseModel):
    watch: WatchConfig = Field(default_factory=WatchConfig)
    libraries: dict[StrictStr, LibraryConfig] = Field(default_factory=dict)

    @classmethod
    def from_path(cls, path: Path) -> Config:
        path = Path(path)
        try:
            contents = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise InvalidConfig(path, exc.strerror or str(exc)) from exc
        return cls.from_text(contents, path)

    @classmethod
    def from_text(cls, contents: str, path: Path = Path("<string>")) -> Config:
        try:
            config = cls.model_validate(tomllib.loads(contents))
        except tomllib.TOMLDecodeError as exc:
            raise InvalidConfig(path, str(exc)) from exc
        except ValidationError as exc:
            raise InvalidConfig(path, _describe(exc)) from exc

        config.sanitize_folders(path)
        return config

    def sanitize_folders(self, path: Path) -> None:
        """Expand folders and drop the unusable ones; repeated folders are fatal."""
        seen: set[Path] = set()

        for name, library in self.libraries.items():
            sanitized: list[Path] = []
            for folder in library.folders:
                expanded = Path(os.path.expandvars(os.path.expanduser(str(folder))))

                if not expanded.is_absolute() or not expanded.exists():
                    logger.warning("Library contains an invalid path (ignoring)", library=name, folder=str(expanded))
                    continue

                expanded = Path(os.path.normpath(expanded))
                if expanded in seen:
                    logger.error("Library contains a repeated folder", library=name, folder=str(expanded))
                    raise InvalidConfig(path, "Repeated folder path in library")

                seen.add(expanded)
                sanitized.append(expanded)

            library.folders = sanitized

    def library(self, name: str) -> LibraryConfig | None:
        return self.libraries.get(name)

    def search_format(self, folder: Path) -> tuple[CompiledFormat, bool] | None:
        folder = Path(os.path.abspath(folder))
        for library in self.libraries.values():
            if folder in library.folders:
                return library.format, library.exfat_compat
        return None

    def format_of(self, name: str) -> CompiledFormat | None:
        library = self.libraries.get(name)
        return library.format if library else None

    def is_exfat_compat(self, name: str) -> bool:
        library = self.libraries.get(name)
        return library.exfat_compat if library else False

    def watched_roots(self) -> Iterator[tuple[Path, str]]:
        for name in self.watch.libraries:
            library = self.libraries.get(name)
            if library is None:
                logger.warning("Watched library is not defined", library=name)
                continue
            for folder in library.folders:
                yield folder, name

    def to_toml(self) -> str:
        data = self.model_dump(mode="json", by_alias=True)
        lines = [
            "[watch]",
            f"every = {data['watch']['every']}",
            f"libraries = {toml_array(data['watch']['libraries'])}",
        ]
        for name, library in data["libraries"].items():
            lines += [
                "",
                f"[libraries.{toml_string(name)}]",
                f"format = {toml_string(library['format'])}",
                f"folders = {toml_array(library['folders'])}",
                f"exfat-compat = {'true' if library['exfat-compat'] else 'false'}",
            ]
        return "\n".join(lines) + "\n"


def ensure_config(path: Path) -> Path:
    """Create the default config on first run; other missing paths are an error."""
    path = Path(path)
    if path.exists():
        return path
    if path != default_config_path():
        raise ResourceNotFound(path)

    logger.info("Generating config file", path=str(path))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    return path


SERVICE_UNIT = """\
[Unit]
Description=Sort music libraries as files arrive

[Service]
Type=simple
ExecStart=music-sorter watch
Restart=on-failure

[Install]
WantedBy=default.target
"""


def default_service_path() -> Path:
    return config_dir() / "systemd" / "user" / "music-sorter.service"


def write_service_file(path: Path | None = None) -> Path:
    path = Path(path or default_service_path())
    logger.info("Generating service file", path=str(path))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SERVICE_UNIT, encoding="utf-8")
    return path


def load_config(path: Path | None = None) -> Config:
    return Config.from_path(ensure_config(path or default_config_path()))
