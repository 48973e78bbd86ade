"""
Batched 3D Model (.b3dm)
========================

Header + Feature Table + Batch Table + binary glTF.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from tiles3d.models.tile_formats import B3dmFeatureTable, B3dmHeader
from tiles3d.services.binary_reader import ByteSource, TileReader
from tiles3d.services.headers import read_header, read_payload
from tiles3d.services.tables import (
    BatchTable,
    FeatureTable,
    read_batch_table,
    read_feature_table,
    resolve_count,
    resolve_global_vector,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class B3dmTile:
    """Decoded b3dm tile"""
    header: B3dmHeader
    feature_table: FeatureTable
    batch_table: BatchTable
    glb: bytes

    @property
    def semantics(self) -> B3dmFeatureTable:
        return self.feature_table.semantics

    @property
    def batch_length(self) -> int:
        return resolve_count(self.semantics.batch_length, self.feature_table.body)

    @property
    def rtc_center(self) -> Optional[Tuple[float, ...]]:
        if self.semantics.rtc_center is None:
            return None
        return resolve_global_vector(self.semantics.rtc_center, self.feature_table.body, 3)


def read_b3dm_from(reader: TileReader) -> B3dmTile:
    header = read_header(reader, B3dmHeader)
    feature_table = read_feature_table(
        reader,
        header.feature_table_json_byte_length,
        header.feature_table_binary_byte_length,
        B3dmFeatureTable,
    )
    batch_table = read_batch_table(
        reader,
        header.batch_table_json_byte_length,
        header.batch_table_binary_byte_length,
    )
    glb = read_payload(reader, header)
    logger.debug(f"b3dm: {len(glb)} bytes glTF payload")
    return B3dmTile(header=header, feature_table=feature_table, batch_table=batch_table, glb=glb)


def read_b3dm(source: ByteSource) -> B3dmTile:
    """Parse a complete b3dm tile from bytes or a binary file object."""
    return read_b3dm_from(TileReader(source))
