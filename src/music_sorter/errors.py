from __future__ import annotations


class SorterError(Exception):
    """Base class for every error raised by music-sorter."""


class FailedToParse(SorterError):
    def __init__(self, source: str, reason: str = "") -> None:
        self.source = source
        self.reason = reason
        message = f"Failed to parse format string: {source!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class OptionalInDir(SorterError):
    def __init__(self) -> None:
        super().__init__("Directory components in format string can't contain missing optionals")


class RequiredInFile(SorterError):
    def __init__(self) -> None:
        super().__init__("File component must have one required placeholder (except from {ext})")


class MissingTag(SorterError):
    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Tag property {tag} is missing!")


class NotSupported(SorterError):
    def __init__(self, path: object = None) -> None:
        self.path = path
        super().__init__(f"File type not supported: {path}" if path else "File type not supported!")


class EmptyComments(SorterError):
    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"Empty vorbis comments: {path}")


class TagReadError(SorterError):
    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Couldn't read tags from {path} ({reason})")


class InvalidParent(SorterError):
    def __init__(self, child: object) -> None:
        self.child = child
        super().__init__(f'Parent directory of "{child}" is not valid!')


class InvalidRoot(SorterError):
    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"Path {path} is not valid as root folder!")


class InvalidConfig(SorterError):
    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f'Invalid config file: "{path}" ({reason})')


class ResourceNotFound(SorterError):
    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f'Resource "{path}" was not found!')
