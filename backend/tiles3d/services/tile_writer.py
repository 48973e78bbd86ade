"""
Tile Writer
===========

Assembles b3dm / i3dm / pnts tiles from tables and payload. JSON headers
are padded with spaces and binary bodies with zeros to 8-byte boundaries,
header lengths are computed from the padded sections.
"""

import json
from typing import Any, Dict, Optional, Union

from tiles3d.models.tile_formats import HEADER_CLASSES, TileFormat
from tiles3d.services.headers import encode_header

ALIGNMENT = 8


def _pad(data: bytes, offset: int, fill: bytes) -> bytes:
    remainder = (offset + len(data)) % ALIGNMENT
    if remainder:
        data += fill * (ALIGNMENT - remainder)
    return data


def encode_json(document: Optional[Union[Dict[str, Any], Any]], offset: int) -> bytes:
    """JSON header padded with spaces so the next section starts 8-byte aligned."""
    if document is None:
        return b""
    if hasattr(document, "to_json"):
        document = document.to_json()
    data = json.dumps(document, separators=(",", ":")).encode("utf-8")
    return _pad(data, offset, b" ")


def build_tile(
    format: TileFormat,
    feature_table_json: Union[Dict[str, Any], Any],
    feature_table_body: bytes = b"",
    batch_table_json: Optional[Union[Dict[str, Any], Any]] = None,
    batch_table_body: bytes = b"",
    payload: bytes = b"",
    gltf_format: int = 1,
) -> bytes:
    """Build a complete tile; semantics models are accepted as JSON documents."""
    tile_format = TileFormat(format)
    header_cls = HEADER_CLASSES[tile_format]

    offset = header_cls.HEADER_LENGTH
    ft_json = encode_json(feature_table_json, offset)
    offset += len(ft_json)
    ft_body = _pad(bytes(feature_table_body), offset, b"\x00")
    offset += len(ft_body)
    bt_json = encode_json(batch_table_json, offset)
    offset += len(bt_json)
    bt_body = _pad(bytes(batch_table_body), offset, b"\x00") if batch_table_body else b""
    offset += len(bt_body)

    fields = dict(
        byte_length=offset + len(payload),
        feature_table_json_byte_length=len(ft_json),
        feature_table_binary_byte_length=len(ft_body),
        batch_table_json_byte_length=len(bt_json),
        batch_table_binary_byte_length=len(bt_body),
    )
    if tile_format == TileFormat.I3DM:
        fields["gltf_format"] = gltf_format
    header = header_cls(**fields)

    return encode_header(header) + ft_json + ft_body + bt_json + bt_body + bytes(payload)
