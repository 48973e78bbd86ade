import struct

import pytest

from tiles3d.errors import MagicMismatch, TruncatedBody, UnsupportedVersion
from tiles3d.models.tile_formats import B3dmHeader, I3dmHeader, PntsHeader
from tiles3d.services.binary_reader import TileReader
from tiles3d.services.headers import (
    decode_b3dm_header,
    decode_i3dm_header,
    decode_pnts_header,
    encode_header,
    read_header,
)

LENGTHS = dict(
    byte_length=1000,
    feature_table_json_byte_length=24,
    feature_table_binary_byte_length=16,
    batch_table_json_byte_length=40,
    batch_table_binary_byte_length=8,
)


@pytest.mark.parametrize("header, decode", [
    (B3dmHeader(**LENGTHS), decode_b3dm_header),
    (PntsHeader(**LENGTHS), decode_pnts_header),
    (I3dmHeader(gltf_format=0, **LENGTHS), decode_i3dm_header),
    (I3dmHeader(gltf_format=1, **LENGTHS), decode_i3dm_header),
])
def test_header_round_trip(header, decode):
    data = encode_header(header)
    assert len(data) == header.HEADER_LENGTH
    assert decode(data) == header


def test_header_sizes():
    assert len(encode_header(B3dmHeader(byte_length=28))) == 28
    assert len(encode_header(PntsHeader(byte_length=28))) == 28
    assert len(encode_header(I3dmHeader(byte_length=32))) == 32


def test_reader_positioned_after_header():
    data = encode_header(I3dmHeader(byte_length=40)) + b"trailing"
    reader = TileReader(data)
    read_header(reader, I3dmHeader)
    assert reader.position == 32


def test_wrong_magic_fails_before_reading_fields():
    data = encode_header(PntsHeader(**LENGTHS))
    reader = TileReader(data)
    with pytest.raises(MagicMismatch) as excinfo:
        read_header(reader, B3dmHeader)
    assert excinfo.value.expected == b"b3dm"
    assert excinfo.value.found == b"pnts"
    assert reader.position == 4


def test_unsupported_version():
    data = b"b3dm" + struct.pack("<6I", 2, 28, 0, 0, 0, 0)
    with pytest.raises(UnsupportedVersion) as excinfo:
        decode_b3dm_header(data)
    assert excinfo.value.version == 2


def test_truncated_header():
    data = encode_header(B3dmHeader(**LENGTHS))[:18]
    with pytest.raises(TruncatedBody):
        decode_b3dm_header(data)


def test_tables_byte_length():
    assert B3dmHeader(**LENGTHS).tables_byte_length == 24 + 16 + 40 + 8
