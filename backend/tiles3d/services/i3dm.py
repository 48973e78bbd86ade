"""
Instanced 3D Model (.i3dm)
==========================

Header (with gltfFormat) + Feature Table + Batch Table + glTF.
The glTF is either referenced by URI (gltfFormat 0) or embedded as binary
glTF (gltfFormat 1).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from tiles3d.errors import MalformedUri, UnsupportedSemantic
from tiles3d.models.tile_formats import ComponentType, I3dmFeatureTable, I3dmHeader, PropertyType
from tiles3d.services.attribute_math import Vec3, dequantize_positions, oct_decode
from tiles3d.services.binary_reader import ByteSource, TileReader
from tiles3d.services.headers import read_header, read_payload
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

GLTF_FORMAT_URI = 0
GLTF_FORMAT_EMBEDDED = 1

_BATCH_ID_TYPES = (ComponentType.UNSIGNED_BYTE, ComponentType.UNSIGNED_SHORT, ComponentType.UNSIGNED_INT)


@dataclass(frozen=True)
class I3dmTile:
    """Decoded i3dm tile; payload is the raw bytes after the batch table"""
    header: I3dmHeader
    feature_table: FeatureTable
    batch_table: BatchTable
    payload: bytes

    @property
    def semantics(self) -> I3dmFeatureTable:
        return self.feature_table.semantics

    @property
    def instances_length(self) -> int:
        return resolve_count(self.semantics.instances_length, self.feature_table.body)

    @property
    def is_embedded(self) -> bool:
        return self.header.gltf_format == GLTF_FORMAT_EMBEDDED

    @property
    def gltf_uri(self) -> Optional[str]:
        """glTF URI for gltfFormat 0 (padding stripped), else None"""
        if self.header.gltf_format != GLTF_FORMAT_URI:
            return None
        try:
            text = self.payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedUri(f"glTF URI is not valid UTF-8: {e}") from e
        return text.rstrip("\x00 ")

    @property
    def glb(self) -> Optional[bytes]:
        return self.payload if self.is_embedded else None


@dataclass(frozen=True)
class InstanceAttributes:
    """Per-instance attributes decoded from the feature table body"""
    positions: List[Vec3]
    normal_up: Optional[List[Vec3]] = None
    normal_right: Optional[List[Vec3]] = None
    scales: Optional[List[float]] = None
    scales_non_uniform: Optional[List[Vec3]] = None
    batch_ids: Optional[List[int]] = None
    east_north_up: bool = False
    rtc_center: Optional[Tuple[float, ...]] = None

    def __len__(self) -> int:
        return len(self.positions)


def read_i3dm_from(reader: TileReader) -> I3dmTile:
    header = read_header(reader, I3dmHeader)
    feature_table = read_feature_table(
        reader,
        header.feature_table_json_byte_length,
        header.feature_table_binary_byte_length,
        I3dmFeatureTable,
    )
    batch_table = read_batch_table(
        reader,
        header.batch_table_json_byte_length,
        header.batch_table_binary_byte_length,
    )
    payload = read_payload(reader, header)
    if header.gltf_format not in (GLTF_FORMAT_URI, GLTF_FORMAT_EMBEDDED):
        logger.warning(f"i3dm: unknown gltfFormat {header.gltf_format}, payload kept as raw bytes")
    return I3dmTile(header=header, feature_table=feature_table, batch_table=batch_table, payload=payload)


def read_i3dm(source: ByteSource) -> I3dmTile:
    """Parse a complete i3dm tile from bytes or a binary file object."""
    return read_i3dm_from(TileReader(source))


def _read(tile: I3dmTile, value, count: int, component: ComponentType, kind: PropertyType, name: str):
    return read_per_feature_values(value, tile.feature_table.body, count, component, kind, name)


def decode_instances(tile: I3dmTile) -> InstanceAttributes:
    """Decode instance positions, orientations, scales and batch ids."""
    semantics = tile.semantics
    body = tile.feature_table.body
    count = tile.instances_length

    if semantics.position is not None:
        positions = _read(tile, semantics.position, count, ComponentType.FLOAT, PropertyType.VEC3, "POSITION")
    elif semantics.position_quantized is not None:
        if semantics.quantized_volume_offset is None or semantics.quantized_volume_scale is None:
            raise UnsupportedSemantic("POSITION_QUANTIZED requires QUANTIZED_VOLUME_OFFSET and QUANTIZED_VOLUME_SCALE")
        quantized = _read(
            tile, semantics.position_quantized, count,
            ComponentType.UNSIGNED_SHORT, PropertyType.VEC3, "POSITION_QUANTIZED",
        )
        positions = dequantize_positions(
            quantized,
            resolve_global_vector(semantics.quantized_volume_offset, body, 3),
            resolve_global_vector(semantics.quantized_volume_scale, body, 3),
        )
    else:
        raise UnsupportedSemantic("i3dm feature table declares neither POSITION nor POSITION_QUANTIZED")

    normal_up = normal_right = None
    if semantics.normal_up is not None and semantics.normal_right is not None:
        normal_up = _read(tile, semantics.normal_up, count, ComponentType.FLOAT, PropertyType.VEC3, "NORMAL_UP")
        normal_right = _read(tile, semantics.normal_right, count, ComponentType.FLOAT, PropertyType.VEC3, "NORMAL_RIGHT")
    elif semantics.normal_up_oct32p is not None and semantics.normal_right_oct32p is not None:
        normal_up = [
            oct_decode(x, y, 65535)
            for x, y in _read(
                tile, semantics.normal_up_oct32p, count,
                ComponentType.UNSIGNED_SHORT, PropertyType.VEC2, "NORMAL_UP_OCT32P",
            )
        ]
        normal_right = [
            oct_decode(x, y, 65535)
            for x, y in _read(
                tile, semantics.normal_right_oct32p, count,
                ComponentType.UNSIGNED_SHORT, PropertyType.VEC2, "NORMAL_RIGHT_OCT32P",
            )
        ]

    scales = None
    if semantics.scale is not None:
        scales = _read(tile, semantics.scale, count, ComponentType.FLOAT, PropertyType.SCALAR, "SCALE")
    scales_non_uniform = None
    if semantics.scale_non_uniform is not None:
        scales_non_uniform = _read(
            tile, semantics.scale_non_uniform, count,
            ComponentType.FLOAT, PropertyType.VEC3, "SCALE_NON_UNIFORM",
        )

    batch_ids = None
    if semantics.batch_id is not None:
        batch_ids = _read(tile, semantics.batch_id, count, ComponentType.UNSIGNED_SHORT, PropertyType.SCALAR, "BATCH_ID")
        component = getattr(semantics.batch_id, "component_type", None)
        if component is not None and component not in _BATCH_ID_TYPES:
            raise UnsupportedSemantic(f"BATCH_ID componentType {component.value} is not supported")

    rtc_center = None
    if semantics.rtc_center is not None:
        rtc_center = resolve_global_vector(semantics.rtc_center, body, 3)

    return InstanceAttributes(
        positions=positions,
        normal_up=normal_up,
        normal_right=normal_right,
        scales=scales,
        scales_non_uniform=scales_non_uniform,
        batch_ids=batch_ids,
        east_north_up=bool(semantics.east_north_up),
        rtc_center=rtc_center,
    )
