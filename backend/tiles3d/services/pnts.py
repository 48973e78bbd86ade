"""
Point Cloud (.pnts)
===================

Header + Feature Table + Batch Table. There is no embedded scene: point
positions and attributes live in the feature table binary body and are
located through the binary body references of the semantics.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from tiles3d.errors import UnsupportedSemantic
from tiles3d.models.tile_formats import (
    BinaryBodyReference,
    ComponentType,
    PntsFeatureTable,
    PntsHeader,
    PropertyType,
)
from tiles3d.services.attribute_math import Vec3, dequantize_positions, oct_decode, rgb565_to_rgb
from tiles3d.services.binary_reader import ByteSource, TileReader
from tiles3d.services.headers import read_header
from tiles3d.services.tables import (
    BatchTable,
    FeatureTable,
    read_batch_table,
    read_feature_table,
    read_per_feature_values,
    resolve_count,
    resolve_global_vector,
)

logger = logging.getLogger(__name__)

_BATCH_ID_TYPES = (ComponentType.UNSIGNED_BYTE, ComponentType.UNSIGNED_SHORT, ComponentType.UNSIGNED_INT)


@dataclass(frozen=True)
class PntsTile:
    """Decoded pnts tile"""
    header: PntsHeader
    feature_table: FeatureTable
    batch_table: BatchTable

    @property
    def semantics(self) -> PntsFeatureTable:
        return self.feature_table.semantics

    @property
    def points_length(self) -> int:
        return resolve_count(self.semantics.points_length, self.feature_table.body)

    @property
    def batch_length(self) -> Optional[int]:
        if self.semantics.batch_length is None:
            return None
        return resolve_count(self.semantics.batch_length, self.feature_table.body)


@dataclass(frozen=True)
class PointAttributes:
    """
    Decoded point streams. Optional streams are None when the semantic is
    absent. Normals are always unit vectors (oct-encoded normals are
    decoded), RGB565 colors are kept packed.
    """
    positions: List[Vec3]
    rgba: Optional[List[Tuple[int, int, int, int]]] = None
    rgb: Optional[List[Tuple[int, int, int]]] = None
    rgb565: Optional[List[int]] = None
    normals: Optional[List[Vec3]] = None
    batch_ids: Optional[List[int]] = None
    constant_rgba: Optional[Tuple[float, ...]] = None
    rtc_center: Optional[Tuple[float, ...]] = None

    def __len__(self) -> int:
        return len(self.positions)

    def colors(self) -> Optional[List[Tuple[int, int, int, int]]]:
        """Per-point RGBA, taking RGBA, RGB, RGB565, CONSTANT_RGBA in that order."""
        if self.rgba is not None:
            return list(self.rgba)
        if self.rgb is not None:
            return [(r, g, b, 255) for r, g, b in self.rgb]
        if self.rgb565 is not None:
            return [rgb565_to_rgb(value) + (255,) for value in self.rgb565]
        if self.constant_rgba is not None:
            constant = tuple(int(c) for c in self.constant_rgba)
            return [constant] * len(self.positions)
        return None


def read_pnts_from(reader: TileReader) -> PntsTile:
    header = read_header(reader, PntsHeader)
    feature_table = read_feature_table(
        reader,
        header.feature_table_json_byte_length,
        header.feature_table_binary_byte_length,
        PntsFeatureTable,
    )
    batch_table = read_batch_table(
        reader,
        header.batch_table_json_byte_length,
        header.batch_table_binary_byte_length,
    )
    return PntsTile(header=header, feature_table=feature_table, batch_table=batch_table)


def read_pnts(source: ByteSource) -> PntsTile:
    """Parse a complete pnts tile from bytes or a binary file object."""
    return read_pnts_from(TileReader(source))


def _positions(tile: PntsTile, count: int) -> List[Vec3]:
    semantics = tile.semantics
    body = tile.feature_table.body

    if semantics.position is not None:
        return read_per_feature_values(
            semantics.position, body, count, ComponentType.FLOAT, PropertyType.VEC3, "POSITION"
        )

    if semantics.position_quantized is not None:
        if semantics.quantized_volume_offset is None or semantics.quantized_volume_scale is None:
            raise UnsupportedSemantic(
                "POSITION_QUANTIZED requires QUANTIZED_VOLUME_OFFSET and QUANTIZED_VOLUME_SCALE"
            )
        quantized = read_per_feature_values(
            semantics.position_quantized, body, count,
            ComponentType.UNSIGNED_SHORT, PropertyType.VEC3, "POSITION_QUANTIZED",
        )
        return dequantize_positions(
            quantized,
            resolve_global_vector(semantics.quantized_volume_offset, body, 3),
            resolve_global_vector(semantics.quantized_volume_scale, body, 3),
        )

    logger.warning("pnts: no POSITION semantic declared, reading float positions from offset 0")
    return read_per_feature_values(
        BinaryBodyReference(byte_offset=0), body, count,
        ComponentType.FLOAT, PropertyType.VEC3, "POSITION",
    )


def decode_points(tile: PntsTile) -> PointAttributes:
    """
    Decode points_length positions plus every optional point stream.

    Each stream is read from its declared byte offset and component type.
    A body too short for a stream fails with TruncatedBody.
    """
    semantics = tile.semantics
    body = tile.feature_table.body
    count = tile.points_length

    def per_point(value, component: ComponentType, kind: PropertyType, name: str):
        if value is None:
            return None
        return read_per_feature_values(value, body, count, component, kind, name)

    positions = _positions(tile, count)

    normals = per_point(semantics.normal, ComponentType.FLOAT, PropertyType.VEC3, "NORMAL")
    if normals is None and semantics.normal_oct16p is not None:
        encoded = per_point(semantics.normal_oct16p, ComponentType.UNSIGNED_BYTE, PropertyType.VEC2, "NORMAL_OCT16P")
        normals = [oct_decode(x, y, 255) for x, y in encoded]

    batch_ids = per_point(semantics.batch_id, ComponentType.UNSIGNED_SHORT, PropertyType.SCALAR, "BATCH_ID")
    if batch_ids is not None:
        component = semantics.batch_id.component_type
        if component is not None and component not in _BATCH_ID_TYPES:
            raise UnsupportedSemantic(f"BATCH_ID componentType {component.value} is not supported")

    constant_rgba = None
    if semantics.constant_rgba is not None:
        constant_rgba = resolve_global_vector(semantics.constant_rgba, body, 4, ComponentType.UNSIGNED_BYTE)
    rtc_center = None
    if semantics.rtc_center is not None:
        rtc_center = resolve_global_vector(semantics.rtc_center, body, 3)

    attributes = PointAttributes(
        positions=positions,
        rgba=per_point(semantics.rgba, ComponentType.UNSIGNED_BYTE, PropertyType.VEC4, "RGBA"),
        rgb=per_point(semantics.rgb, ComponentType.UNSIGNED_BYTE, PropertyType.VEC3, "RGB"),
        rgb565=per_point(semantics.rgb565, ComponentType.UNSIGNED_SHORT, PropertyType.SCALAR, "RGB565"),
        normals=normals,
        batch_ids=batch_ids,
        constant_rgba=constant_rgba,
        rtc_center=rtc_center,
    )
    logger.debug(f"pnts: decoded {len(attributes)} points")
    return attributes
