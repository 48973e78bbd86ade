"""
Tileset Reader
==============

Loads tileset.json documents and walks the tile tree to the tiles that
carry content. Content URIs ending in .json are external tilesets: they
are loaded relative to the referencing document and traversed in place.

Traversal is depth-first, left-to-right over `children`, root first.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union
from urllib.parse import unquote, urlparse

from pydantic import ValidationError

from tiles3d.errors import IoFailure, MalformedJson, MissingContent, OutsideRoot
from tiles3d.models.tileset import BoundingVolume, Refine, Tile, Tileset

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Matrix4 = Tuple[float, ...]

DEFAULT_MAX_DEPTH = 16

IDENTITY: Matrix4 = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)


def mat4_mul(a: Matrix4, b: Matrix4) -> Matrix4:
    """Product a * b of two column-major 4x4 matrices."""
    out = [0.0] * 16
    for col in range(4):
        for row in range(4):
            out[col * 4 + row] = (
                a[0 * 4 + row] * b[col * 4 + 0]
                + a[1 * 4 + row] * b[col * 4 + 1]
                + a[2 * 4 + row] * b[col * 4 + 2]
                + a[3 * 4 + row] * b[col * 4 + 3]
            )
    return tuple(out)


# ============================================================================
# Loading
# ============================================================================

def parse_tileset(data: Union[str, bytes]) -> Tileset:
    """tileset.json text into the Tileset model (MalformedJson on failure)."""
    try:
        document = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedJson(f"Invalid tileset JSON: {e}") from e
    try:
        return Tileset.model_validate(document)
    except ValidationError as e:
        raise MalformedJson(f"Invalid tileset: {e}") from e


def load_tileset(path: PathLike) -> Tileset:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise IoFailure(f"Cannot read tileset {path}", e) from e
    tileset = parse_tileset(data)
    logger.debug(f"Loaded tileset {path} (asset version {tileset.asset.version})")
    return tileset


def has_scheme(uri: str) -> bool:
    """http:, https:, data: ... (single letters are Windows drive names)"""
    return len(urlparse(uri).scheme) > 1


def resolve_content_path(tileset_path: PathLike, uri: str) -> Optional[Path]:
    """
    Filesystem location of a content URI relative to the directory of the
    tileset document. Query and fragment are dropped, percent escapes
    decoded. Returns None for URIs with a scheme, those are never fetched.
    """
    if has_scheme(uri):
        return None
    relative = unquote(uri.split("?", 1)[0].split("#", 1)[0])
    return Path(tileset_path).parent / relative


# ============================================================================
# Traversal
# ============================================================================

@dataclass(frozen=True)
class TileVisit:
    """A tile together with the state inherited from its ancestors"""
    tile: Tile
    depth: int
    refine: Refine
    transform: Matrix4


def iter_tiles(
    tileset: Tileset,
    transform: Matrix4 = IDENTITY,
    refine: Refine = Refine.REPLACE,
) -> Iterator[TileVisit]:
    """
    Preorder walk of one tileset document.

    `refine` is inherited from the nearest ancestor, the root falls back to
    the given default. `transform` is accumulated parent * local.
    """
    stack: List[Tuple[Tile, int, Refine, Matrix4]] = [(tileset.root, 0, refine, transform)]
    while stack:
        tile, depth, inherited_refine, parent_transform = stack.pop()
        effective_refine = tile.refine or inherited_refine
        world = parent_transform
        if tile.transform is not None:
            world = mat4_mul(parent_transform, tuple(tile.transform))

        yield TileVisit(tile=tile, depth=depth, refine=effective_refine, transform=world)

        for child in reversed(tile.children or []):
            stack.append((child, depth + 1, effective_refine, world))


@dataclass(frozen=True)
class ContentReference:
    """
    A tile with content, ready to be loaded.

    - uri: content URI as written in the tileset
    - path: resolved file location (None for URIs with a scheme)
    - root_bounding_volume: bounding volume of the root of the document
      holding the tile
    - depth: number of external tileset documents entered to get here
    """
    uri: str
    path: Optional[Path]
    tile: Tile
    root_bounding_volume: BoundingVolume
    tileset_path: Path
    depth: int
    refine: Refine = Refine.REPLACE
    transform: Matrix4 = IDENTITY


@dataclass
class _Document:
    path: Path
    tileset: Tileset
    depth: int
    tiles: Iterator[TileVisit]


def _within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def iter_contents(
    tileset_path: PathLike,
    max_depth: int = DEFAULT_MAX_DEPTH,
    root: Optional[PathLike] = None,
) -> Iterator[ContentReference]:
    """
    Lazily yield every content tile reachable from a tileset document.

    External tilesets are expanded where they are referenced. A reference
    to a document that is already being traversed is skipped, as are
    documents nested deeper than `max_depth`.

    With `root` set, an external tileset outside that directory raises
    OutsideRoot instead of being loaded.
    """
    boundary = Path(root).resolve() if root is not None else None
    root_path = Path(tileset_path).resolve()
    if boundary is not None and not _within(root_path, boundary):
        raise OutsideRoot(root_path, boundary)
    root_tileset = load_tileset(root_path)
    stack = [_Document(root_path, root_tileset, 0, iter_tiles(root_tileset))]
    active = {root_path}

    while stack:
        document = stack[-1]
        visit = next(document.tiles, None)
        if visit is None:
            stack.pop()
            active.discard(document.path)
            continue

        content = visit.tile.content
        if content is None:
            continue

        if not content.is_tileset:
            yield ContentReference(
                uri=content.uri,
                path=resolve_content_path(document.path, content.uri),
                tile=visit.tile,
                root_bounding_volume=document.tileset.root.bounding_volume,
                tileset_path=document.path,
                depth=document.depth,
                refine=visit.refine,
                transform=visit.transform,
            )
            continue

        nested_path = resolve_content_path(document.path, content.uri)
        if nested_path is None:
            logger.warning(f"External tileset {content.uri} is not a local file, skipping")
            continue
        nested_path = nested_path.resolve()
        if nested_path in active:
            logger.warning(f"Cyclic tileset reference {content.uri} in {document.path}, skipping")
            continue
        if boundary is not None and not _within(nested_path, boundary):
            raise OutsideRoot(nested_path, boundary)
        if document.depth + 1 > max_depth:
            logger.warning(f"Tileset {nested_path} exceeds max depth {max_depth}, skipping")
            continue

        nested = load_tileset(nested_path)
        logger.debug(f"Entering external tileset {nested_path} (depth {document.depth + 1})")
        stack.append(_Document(
            nested_path,
            nested,
            document.depth + 1,
            iter_tiles(nested, visit.transform, visit.refine),
        ))
        active.add(nested_path)


def resolve_next_content(
    tileset_path: PathLike,
    max_depth: int = DEFAULT_MAX_DEPTH,
    root: Optional[PathLike] = None,
) -> ContentReference:
    """
    First tile with content, root first, then depth-first over children.
    External tilesets are traversed recursively.
    """
    reference = next(iter_contents(tileset_path, max_depth, root), None)
    if reference is None:
        raise MissingContent(f"No tile with content in {tileset_path}")
    logger.info(f"Next content: {reference.uri} (depth {reference.depth})")
    return reference
