"""
3D Tiles Codec
==============

Dekodiert b3dm, i3dm und pnts Tiles sowie tileset.json Dokumente.
"""

from .errors import (
    IoFailure,
    MagicMismatch,
    MalformedJson,
    MalformedUri,
    MissingContent,
    OutsideRoot,
    Tiles3dError,
    TruncatedBody,
    UnsupportedSemantic,
    UnsupportedVersion,
)

from .models.tile_formats import TileFormat

from .services.b3dm import B3dmTile, read_b3dm
from .services.i3dm import I3dmTile, decode_instances, read_i3dm
from .services.pnts import PntsTile, decode_points, read_pnts

from .services.dispatch import (
    PayloadKind,
    ScenePayload,
    detect_format,
    extract_scene_payload,
    read_tile,
)

from .services.tileset_reader import (
    ContentReference,
    iter_contents,
    iter_tiles,
    load_tileset,
    parse_tileset,
    resolve_next_content,
)

from .services.tile_writer import build_tile

__all__ = [
    'Tiles3dError',
    'IoFailure',
    'MagicMismatch',
    'UnsupportedVersion',
    'MalformedJson',
    'MalformedUri',
    'TruncatedBody',
    'UnsupportedSemantic',
    'MissingContent',
    'OutsideRoot',
    'TileFormat',
    'B3dmTile',
    'I3dmTile',
    'PntsTile',
    'read_b3dm',
    'read_i3dm',
    'read_pnts',
    'decode_points',
    'decode_instances',
    'PayloadKind',
    'ScenePayload',
    'detect_format',
    'read_tile',
    'extract_scene_payload',
    'ContentReference',
    'load_tileset',
    'parse_tileset',
    'iter_tiles',
    'iter_contents',
    'resolve_next_content',
    'build_tile',
]
