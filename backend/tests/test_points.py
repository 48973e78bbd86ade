import logging
import struct

import pytest

from tiles3d.errors import MagicMismatch, TruncatedBody, UnsupportedSemantic
from tiles3d.models.tile_formats import TileFormat
from tiles3d.services.attribute_math import oct_decode, rgb565_to_rgb
from tiles3d.services.pnts import decode_points, read_pnts
from tiles3d.services.tile_writer import build_tile


def _pnts(feature_table, body=b"", **kwargs):
    return read_pnts(build_tile(TileFormat.PNTS, feature_table, body, **kwargs))


def _floats(points):
    return b"".join(struct.pack("<3f", *p) for p in points)


def test_fixture_points(pnts_bytes, point_positions):
    tile = read_pnts(pnts_bytes)
    points = decode_points(tile)

    assert tile.points_length == 3
    assert points.positions == point_positions
    assert points.rgb == [(255, 0, 0), (0, 255, 0), (0, 0, 255)]
    assert points.colors() == [(255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255)]
    assert points.normals is None
    assert len(points) == 3


def test_positions_read_at_declared_offset():
    positions = [(0.5, 1.5, 2.5), (-1.0, 0.25, 8.0)]
    tile = _pnts({"POINTS_LENGTH": 2, "POSITION": {"byteOffset": 8}}, b"\xff" * 8 + _floats(positions))
    assert decode_points(tile).positions == positions


def test_short_body_is_truncated():
    tile = _pnts({"POINTS_LENGTH": 4, "POSITION": {"byteOffset": 0}}, _floats([(1, 2, 3)] * 3))
    with pytest.raises(TruncatedBody):
        decode_points(tile)


def test_missing_position_reads_from_offset_zero(caplog):
    tile = _pnts({"POINTS_LENGTH": 1}, _floats([(3.0, 2.0, 1.0)]))
    with caplog.at_level(logging.WARNING):
        points = decode_points(tile)
    assert points.positions == [(3.0, 2.0, 1.0)]
    assert "no POSITION" in caplog.text


def test_inline_position_is_unsupported():
    tile = _pnts({"POINTS_LENGTH": 1, "POSITION": [1, 2, 3]})
    with pytest.raises(UnsupportedSemantic):
        decode_points(tile)


def test_quantized_positions():
    body = struct.pack("<6H", 0, 0, 0, 65535, 65535, 65535)
    tile = _pnts({
        "POINTS_LENGTH": 2,
        "POSITION_QUANTIZED": {"byteOffset": 0},
        "QUANTIZED_VOLUME_OFFSET": [10, 20, 30],
        "QUANTIZED_VOLUME_SCALE": [2, 4, 6],
    }, body)
    first, second = decode_points(tile).positions
    assert first == pytest.approx((10.0, 20.0, 30.0))
    assert second == pytest.approx((12.0, 24.0, 36.0))


def test_quantized_positions_need_volume():
    tile = _pnts({"POINTS_LENGTH": 1, "POSITION_QUANTIZED": {"byteOffset": 0}}, b"\x00" * 8)
    with pytest.raises(UnsupportedSemantic):
        decode_points(tile)


def test_rgb565_colors():
    body = _floats([(0, 0, 0), (1, 1, 1)]) + struct.pack("<2H", 0xF800, 0x07E0)
    tile = _pnts({"POINTS_LENGTH": 2, "POSITION": {"byteOffset": 0}, "RGB565": {"byteOffset": 24}}, body)
    points = decode_points(tile)
    assert points.rgb565 == [0xF800, 0x07E0]
    assert points.colors() == [(255, 0, 0, 255), (0, 255, 0, 255)]


def test_constant_rgba_and_rtc_center():
    tile = _pnts({
        "POINTS_LENGTH": 2,
        "POSITION": {"byteOffset": 0},
        "CONSTANT_RGBA": [10, 20, 30, 255],
        "RTC_CENTER": [100.0, 200.0, 300.0],
    }, _floats([(0, 0, 0), (1, 1, 1)]))
    points = decode_points(tile)
    assert points.colors() == [(10, 20, 30, 255)] * 2
    assert points.rtc_center == (100.0, 200.0, 300.0)


def test_normals_and_oct_encoded_normals():
    body = _floats([(0, 0, 0)]) + _floats([(0, 0, 1)])
    tile = _pnts({"POINTS_LENGTH": 1, "POSITION": {"byteOffset": 0}, "NORMAL": {"byteOffset": 12}}, body)
    assert decode_points(tile).normals == [(0.0, 0.0, 1.0)]

    body = _floats([(0, 0, 0)]) + bytes([0, 0])
    tile = _pnts({"POINTS_LENGTH": 1, "POSITION": {"byteOffset": 0}, "NORMAL_OCT16P": {"byteOffset": 12}}, body)
    assert decode_points(tile).normals[0] == pytest.approx((0.0, 0.0, -1.0))


def test_batch_ids_with_declared_component_type():
    body = _floats([(0, 0, 0)] * 3) + bytes([0, 1, 1])
    tile = _pnts({
        "POINTS_LENGTH": 3,
        "BATCH_LENGTH": 2,
        "POSITION": {"byteOffset": 0},
        "BATCH_ID": {"byteOffset": 36, "componentType": "UNSIGNED_BYTE"},
    }, body)
    assert tile.batch_length == 2
    assert decode_points(tile).batch_ids == [0, 1, 1]


def test_batch_ids_reject_float_component_type():
    body = _floats([(0, 0, 0)]) + struct.pack("<f", 1.0)
    tile = _pnts({
        "POINTS_LENGTH": 1,
        "POSITION": {"byteOffset": 0},
        "BATCH_ID": {"byteOffset": 12, "componentType": "FLOAT"},
    }, body)
    with pytest.raises(UnsupportedSemantic):
        decode_points(tile)


def test_b3dm_is_not_a_point_cloud(b3dm_bytes):
    with pytest.raises(MagicMismatch):
        read_pnts(b3dm_bytes)


def test_attribute_math():
    assert rgb565_to_rgb(0xFFFF) == (255, 255, 255)
    assert rgb565_to_rgb(0x001F) == (0, 0, 255)
    assert oct_decode(255, 255, 255) == pytest.approx((0.0, 0.0, -1.0))
    x, y, z = oct_decode(32767, 32767, 65535)
    assert z == pytest.approx(1.0, abs=1e-3)
