"""
Binary Field Reader
===================

Sequential little-endian reads over a tile byte source. All tile decoders
sit on top of this reader: every read is length-driven, nothing scans for
delimiters.
"""

import io
import struct
from typing import BinaryIO, Union

from tiles3d.errors import IoFailure, TruncatedBody

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]

_U8 = struct.Struct('<B')
_U16 = struct.Struct('<H')
_U32 = struct.Struct('<I')
_F32 = struct.Struct('<f')
_F64 = struct.Struct('<d')


class TileReader:
    """Cursor over a byte buffer or binary file object"""

    def __init__(self, source: ByteSource):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self._stream = source
        self._position = 0

    @property
    def position(self) -> int:
        """Number of bytes consumed so far"""
        return self._position

    def read_exact(self, length: int, what: str = "data") -> bytes:
        """Read exactly `length` bytes or fail with TruncatedBody."""
        if length < 0:
            raise ValueError(f"Negative read length for {what}: {length}")
        if length == 0:
            return b""
        try:
            data = self._stream.read(length)
        except OSError as e:
            raise IoFailure(f"Error reading {what} at offset {self._position}: {e}", e) from e
        if data is None:
            data = b""
        self._position += len(data)
        if len(data) != length:
            raise TruncatedBody(what, length, len(data))
        return data

    def read_tag(self) -> bytes:
        return self.read_exact(4, "magic")

    def _unpack(self, fmt: struct.Struct, what: str):
        return fmt.unpack(self.read_exact(fmt.size, what))[0]

    def read_u8(self, what: str = "uint8") -> int:
        return self._unpack(_U8, what)

    def read_u16(self, what: str = "uint16") -> int:
        return self._unpack(_U16, what)

    def read_u32(self, what: str = "uint32") -> int:
        return self._unpack(_U32, what)

    def read_f32(self, what: str = "float32") -> float:
        return self._unpack(_F32, what)

    def read_f64(self, what: str = "float64") -> float:
        return self._unpack(_F64, what)

    def read_to_end(self) -> bytes:
        """Read everything left in the source."""
        try:
            data = self._stream.read()
        except OSError as e:
            raise IoFailure(f"Error reading tail at offset {self._position}: {e}", e) from e
        data = data or b""
        self._position += len(data)
        return data
