import json
import struct

import pytest

from tiles3d.models.tile_formats import TileFormat
from tiles3d.services.tile_writer import build_tile


def make_glb(gltf=None, binary=b"\x00" * 8) -> bytes:
    """Minimal binary glTF: JSON chunk plus BIN chunk."""
    gltf = gltf or {"asset": {"version": "2.0"}, "meshes": [{}], "accessors": [{}, {}]}
    json_chunk = json.dumps(gltf).encode("utf-8")
    json_chunk += b" " * (-len(json_chunk) % 4)
    total = 12 + 8 + len(json_chunk) + 8 + len(binary)
    return (
        b"glTF" + struct.pack("<II", 2, total)
        + struct.pack("<II", len(json_chunk), 0x4E4F534A) + json_chunk
        + struct.pack("<II", len(binary), 0x004E4942) + binary
    )


def write_json(path, document):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def tile_node(uri=None, children=None, **extra):
    node = {"boundingVolume": {"sphere": [0, 0, 0, 10]}, "geometricError": 1.0}
    if uri is not None:
        node["content"] = {"uri": uri}
    if children is not None:
        node["children"] = children
    node.update(extra)
    return node


def tileset_document(root):
    return {"asset": {"version": "1.0"}, "geometricError": 100.0, "root": root}


@pytest.fixture
def glb_bytes():
    return make_glb()


@pytest.fixture
def b3dm_bytes(glb_bytes):
    return build_tile(
        TileFormat.B3DM,
        {"BATCH_LENGTH": 2, "RTC_CENTER": [100.0, 200.0, 300.0]},
        batch_table_json={"height": [10.5, 12.0], "name": ["Bundeshaus", "Nebenbau"]},
        payload=glb_bytes,
    )


@pytest.fixture
def point_positions():
    return [(0.0, 0.0, 0.0), (1.0, 2.0, 3.0), (4.0, 5.0, 6.0)]


@pytest.fixture
def pnts_bytes(point_positions):
    body = b"".join(struct.pack("<3f", *p) for p in point_positions)
    body += bytes([255, 0, 0, 0, 255, 0, 0, 0, 255])
    return build_tile(
        TileFormat.PNTS,
        {"POINTS_LENGTH": 3, "POSITION": {"byteOffset": 0}, "RGB": {"byteOffset": 36}},
        body,
    )


@pytest.fixture
def tileset_dir(tmp_path):
    """Factory writing tileset documents below tmp_path."""
    def write(relative, root):
        return write_json(tmp_path / relative, tileset_document(root))
    return write
