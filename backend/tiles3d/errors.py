"""
Tile Decoding Errors
====================

Every failure of the codec is fatal for the current decode and surfaces as
one of the exceptions below. Nothing is retried internally.
"""

from pathlib import Path
from typing import Optional


class Tiles3dError(Exception):
    """Base class for all 3D Tiles decoding errors"""


class IoFailure(Tiles3dError):
    """The underlying byte source failed while reading"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MagicMismatch(Tiles3dError):
    """The 4-byte signature does not belong to the requested format"""

    def __init__(self, expected: bytes, found: bytes):
        super().__init__(f"Invalid magic: {found!r}, expected {expected!r}")
        self.expected = expected
        self.found = found


class UnsupportedVersion(Tiles3dError):
    """Only version 1 of the tile formats is supported"""

    def __init__(self, version: int, magic: bytes = b""):
        label = magic.decode("ascii", errors="replace") if magic else "tile"
        super().__init__(f"Unsupported {label} version: {version}")
        self.version = version


class MalformedJson(Tiles3dError):
    """Feature table, batch table or tileset JSON could not be decoded"""


class TruncatedBody(Tiles3dError):
    """A declared length exceeds the bytes that are actually available"""

    def __init__(self, what: str, expected: int, available: int):
        super().__init__(
            f"Truncated {what}: expected {expected} bytes, {available} available"
        )
        self.what = what
        self.expected = expected
        self.available = available


class UnsupportedSemantic(Tiles3dError):
    """A semantic value has a shape that cannot be resolved where a number is needed"""


class MalformedUri(Tiles3dError):
    """The glTF URI of an i3dm tile is not valid UTF-8"""


class MissingContent(Tiles3dError):
    """No tile in the reachable tileset tree carries content"""


class OutsideRoot(Tiles3dError):
    """An external tileset resolves to a file outside the permitted directory"""

    def __init__(self, path: Path, root: Path):
        super().__init__(f"Tileset {path} lies outside {root}")
        self.path = path
        self.root = root
