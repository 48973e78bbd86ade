import io
import struct

import pytest

from tiles3d.errors import IoFailure, TruncatedBody
from tiles3d.services.binary_reader import TileReader


def test_sequential_reads_track_position():
    data = b"b3dm" + struct.pack("<BHIfd", 7, 513, 70000, 1.5, -2.25)
    reader = TileReader(data)

    assert reader.read_tag() == b"b3dm"
    assert reader.read_u8() == 7
    assert reader.read_u16() == 513
    assert reader.read_u32() == 70000
    assert reader.read_f32() == 1.5
    assert reader.read_f64() == -2.25
    assert reader.position == len(data)
    assert reader.read_to_end() == b""


def test_short_read_raises_truncated_body():
    reader = TileReader(b"\x01\x02")
    with pytest.raises(TruncatedBody) as excinfo:
        reader.read_u32("byteLength")
    assert excinfo.value.expected == 4
    assert excinfo.value.available == 2
    assert "byteLength" in str(excinfo.value)


def test_zero_length_read_consumes_nothing():
    reader = TileReader(b"abc")
    assert reader.read_exact(0) == b""
    assert reader.position == 0


def test_reads_from_file_objects():
    reader = TileReader(io.BytesIO(b"pnts\x01\x00\x00\x00rest"))
    assert reader.read_tag() == b"pnts"
    assert reader.read_u32() == 1
    assert reader.read_to_end() == b"rest"
    assert reader.position == 12


class _BrokenStream(io.RawIOBase):
    def read(self, size=-1):
        raise OSError("disk gone")


def test_os_errors_become_io_failure():
    reader = TileReader(_BrokenStream())
    with pytest.raises(IoFailure) as excinfo:
        reader.read_exact(4, "magic")
    assert isinstance(excinfo.value.cause, OSError)
