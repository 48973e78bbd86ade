"""
Format Dispatch
===============

Routes tile bytes to the matching decoder by magic and locates the scene
payload: embedded binary glTF (b3dm, i3dm gltfFormat 1), a glTF URI
(i3dm gltfFormat 0) or decoded point streams (pnts).
"""

import gzip
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from tiles3d.errors import IoFailure, MagicMismatch
from tiles3d.models.tile_formats import TileFormat
from tiles3d.services.b3dm import B3dmTile, read_b3dm
from tiles3d.services.i3dm import GLTF_FORMAT_URI, I3dmTile, read_i3dm
from tiles3d.services.pnts import PntsTile, PointAttributes, decode_points, read_pnts

logger = logging.getLogger(__name__)

Tile = Union[B3dmTile, I3dmTile, PntsTile]

_READERS = {
    TileFormat.B3DM: read_b3dm,
    TileFormat.I3DM: read_i3dm,
    TileFormat.PNTS: read_pnts,
}


class PayloadKind(str, Enum):
    GLB = "glb"
    URI = "uri"
    POINTS = "points"


@dataclass(frozen=True)
class ScenePayload:
    """What follows the tables of a tile"""
    format: TileFormat
    kind: PayloadKind
    data: bytes = b""
    uri: Optional[str] = None
    points: Optional[PointAttributes] = None


def detect_format(data: bytes) -> TileFormat:
    """Tile format from the 4-byte magic."""
    magic = bytes(data[:4])
    for tile_format in TileFormat:
        if magic == tile_format.magic:
            return tile_format
    raise MagicMismatch(b"b3dm|i3dm|pnts", magic)


def read_tile(data: bytes, format: Optional[TileFormat] = None) -> Tile:
    """
    Decode a tile of any supported format.

    With an explicit `format` the matching decoder is used as is, so a tile
    of another format fails with MagicMismatch.
    """
    tile_format = TileFormat(format) if format is not None else detect_format(data)
    logger.debug(f"Decoding {len(data)} bytes as {tile_format.value}")
    return _READERS[tile_format](data)


def payload_kind_of(tile: Tile) -> PayloadKind:
    if isinstance(tile, B3dmTile):
        return PayloadKind.GLB
    if isinstance(tile, I3dmTile):
        return PayloadKind.URI if tile.header.gltf_format == GLTF_FORMAT_URI else PayloadKind.GLB
    return PayloadKind.POINTS


def scene_payload_of(tile: Tile) -> ScenePayload:
    kind = payload_kind_of(tile)
    tile_format = TileFormat(tile.header.magic)
    if kind == PayloadKind.POINTS:
        return ScenePayload(format=tile_format, kind=kind, points=decode_points(tile))
    if kind == PayloadKind.URI:
        return ScenePayload(format=tile_format, kind=kind, data=tile.payload, uri=tile.gltf_uri)
    data = tile.glb if isinstance(tile, B3dmTile) else tile.payload
    return ScenePayload(format=tile_format, kind=kind, data=data)


def feature_count(tile: Tile) -> int:
    """BATCH_LENGTH, INSTANCES_LENGTH or POINTS_LENGTH"""
    if isinstance(tile, B3dmTile):
        return tile.batch_length
    if isinstance(tile, I3dmTile):
        return tile.instances_length
    return tile.points_length


def describe_tile(tile: Tile) -> Dict[str, Any]:
    """Header, tables and payload facts of a decoded tile as plain JSON data."""
    kind = payload_kind_of(tile)
    batch_table = tile.batch_table
    if isinstance(tile, B3dmTile):
        payload_length = len(tile.glb)
    elif isinstance(tile, I3dmTile):
        payload_length = len(tile.payload)
    else:
        payload_length = 0

    return {
        "format": tile.header.magic,
        "header": tile.header.model_dump(),
        "feature_table": tile.feature_table.semantics.to_json(),
        "feature_table_binary_byte_length": len(tile.feature_table.body),
        "batch_table": batch_table.semantics.to_json() if batch_table.semantics is not None else None,
        "batch_table_binary_byte_length": len(batch_table.body),
        "feature_count": feature_count(tile),
        "payload_kind": kind.value,
        "payload_byte_length": payload_length,
        "gltf_uri": tile.gltf_uri if isinstance(tile, I3dmTile) else None,
    }


def extract_scene_payload(tile_bytes: bytes, format: Optional[TileFormat] = None) -> ScenePayload:
    """Locate the scene payload of a tile without interpreting it."""
    return scene_payload_of(read_tile(tile_bytes, format))


def load_tile_bytes(path: Union[str, Path]) -> bytes:
    """Read a tile file; gzip-compressed tiles are decompressed."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise IoFailure(f"Cannot read tile {path}", e) from e
    # Prüfen ob gzip-komprimiert
    if data[:2] == b"\x1f\x8b":
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError) as e:
            raise IoFailure(f"Cannot decompress tile {path}", e) from e
        logger.debug(f"Decompressed {path}: {len(data)} bytes")
    return data
