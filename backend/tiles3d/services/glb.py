"""
GLB Summary
===========

Reads the container structure of a binary glTF payload for display.

GLB Header (12 bytes):
- magic (4 bytes): "glTF"
- version (4 bytes): uint32
- length (4 bytes): uint32

followed by chunks of (length uint32, type uint32, data).
"""

import json
import logging
import struct
from typing import Any, Dict, List

from tiles3d.errors import MagicMismatch, MalformedJson, TruncatedBody

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"

CHUNK_TYPES = {
    0x4E4F534A: 'JSON',  # "JSON"
    0x004E4942: 'BIN',   # "BIN\x00"
}


def summarize_glb(data: bytes) -> Dict[str, Any]:
    """
    Parse GLB header and chunk table.

    Returns version, declared length, chunks and mesh/accessor counts from
    the JSON chunk. The scene itself is not interpreted.
    """
    if len(data) < 12:
        raise TruncatedBody("GLB header", 12, len(data))
    magic = bytes(data[0:4])
    if magic != GLB_MAGIC:
        raise MagicMismatch(GLB_MAGIC, magic)

    version, length = struct.unpack('<II', data[4:12])

    offset = 12
    chunks: List[Dict[str, Any]] = []
    gltf_json = None
    while offset + 8 <= len(data):
        chunk_length, chunk_type = struct.unpack('<II', data[offset:offset + 8])
        chunk_data = data[offset + 8:offset + 8 + chunk_length]
        if len(chunk_data) < chunk_length:
            raise TruncatedBody("GLB chunk", chunk_length, len(chunk_data))

        chunk_type_str = CHUNK_TYPES.get(chunk_type, f'0x{chunk_type:08X}')
        chunks.append({'type': chunk_type_str, 'length': chunk_length})

        if chunk_type_str == 'JSON' and gltf_json is None:
            try:
                gltf_json = json.loads(bytes(chunk_data).decode('utf-8'))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MalformedJson(f"Invalid glTF JSON chunk: {e}") from e

        offset += 8 + chunk_length
        # Padding to 4-byte boundary
        if offset % 4 != 0:
            offset += 4 - (offset % 4)

    gltf_json = gltf_json or {}
    summary = {
        'version': version,
        'length': length,
        'chunks': chunks,
        'meshes': len(gltf_json.get('meshes', [])),
        'accessors': len(gltf_json.get('accessors', [])),
        'asset': gltf_json.get('asset', {}),
    }
    logger.debug(f"GLB v{version}: {len(chunks)} chunks, {summary['meshes']} meshes")
    return summary
