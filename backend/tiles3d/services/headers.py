"""
Tile Header Codec
=================

b3dm / pnts Header (28 bytes):
- magic (4 bytes): "b3dm" / "pnts"
- version (4 bytes): uint32
- byteLength (4 bytes): uint32
- featureTableJSONByteLength (4 bytes): uint32
- featureTableBinaryByteLength (4 bytes): uint32
- batchTableJSONByteLength (4 bytes): uint32
- batchTableBinaryByteLength (4 bytes): uint32

i3dm Header (32 bytes): as above plus
- gltfFormat (4 bytes): uint32, 0 = URI, 1 = embedded binary glTF
"""

import logging
import struct
from typing import Type, TypeVar

from tiles3d.errors import MagicMismatch, TruncatedBody, UnsupportedVersion
from tiles3d.models.tile_formats import (
    B3dmHeader,
    I3dmHeader,
    PntsHeader,
    TileHeader,
)
from tiles3d.services.binary_reader import ByteSource, TileReader

logger = logging.getLogger(__name__)

SUPPORTED_VERSION = 1

H = TypeVar("H", bound=TileHeader)


def read_header(reader: TileReader, header_cls: Type[H]) -> H:
    """
    Read a tile header from the front of the stream.

    The magic is validated before any other field is read, the version after
    all fields are read. On success the reader is positioned right after the
    header.
    """
    magic = reader.read_tag()
    if magic != header_cls.MAGIC:
        raise MagicMismatch(header_cls.MAGIC, magic)

    values = {}
    for name in header_cls.FIELDS:
        values[name] = reader.read_u32(name)

    if values["version"] != SUPPORTED_VERSION:
        raise UnsupportedVersion(values["version"], magic)

    header = header_cls(magic=magic.decode("ascii"), **values)
    logger.debug(
        f"{header.magic} header: byteLength={header.byte_length}, "
        f"featureTable={header.feature_table_json_byte_length}/{header.feature_table_binary_byte_length}, "
        f"batchTable={header.batch_table_json_byte_length}/{header.batch_table_binary_byte_length}"
    )
    return header


def decode_b3dm_header(source: ByteSource) -> B3dmHeader:
    return read_header(TileReader(source), B3dmHeader)


def decode_i3dm_header(source: ByteSource) -> I3dmHeader:
    return read_header(TileReader(source), I3dmHeader)


def decode_pnts_header(source: ByteSource) -> PntsHeader:
    return read_header(TileReader(source), PntsHeader)


def encode_header(header: TileHeader) -> bytes:
    """Serialize a header back into its binary layout."""
    values = [getattr(header, name) for name in header.FIELDS]
    return header.MAGIC + struct.pack(f"<{len(values)}I", *values)


def read_payload(reader: TileReader, header: TileHeader) -> bytes:
    """
    Read the trailing payload after both tables.

    Its length follows from the declared byteLength; bytes beyond it are
    left in the source.
    """
    remaining = header.byte_length - reader.position
    if remaining < 0:
        raise TruncatedBody(f"{header.magic} byteLength", reader.position, header.byte_length)
    return reader.read_exact(remaining, f"{header.magic} payload")
