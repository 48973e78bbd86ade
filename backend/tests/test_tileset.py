import json
import logging

import pytest

from conftest import tile_node, tileset_document
from tiles3d.errors import IoFailure, MalformedJson, MissingContent, OutsideRoot
from tiles3d.models.tileset import BoundingVolume, Refine
from tiles3d.services.tileset_reader import (
    iter_contents,
    iter_tiles,
    load_tileset,
    parse_tileset,
    resolve_content_path,
    resolve_next_content,
)


def test_child_content_is_found(tileset_dir, tmp_path):
    path = tileset_dir("tileset.json", tile_node(children=[
        tile_node(),
        tile_node("tiles/a.b3dm"),
        tile_node("tiles/b.b3dm"),
    ]))
    reference = resolve_next_content(path)
    assert reference.uri == "tiles/a.b3dm"
    assert reference.path == tmp_path.resolve() / "tiles" / "a.b3dm"
    assert reference.depth == 0


def test_root_content_wins(tileset_dir):
    path = tileset_dir("tileset.json", tile_node("root.pnts", children=[tile_node("child.pnts")]))
    assert resolve_next_content(path).uri == "root.pnts"


def test_depth_first_left_to_right(tileset_dir):
    path = tileset_dir("tileset.json", tile_node(children=[
        tile_node(children=[tile_node(children=[tile_node("deep.b3dm")])]),
        tile_node("shallow.b3dm"),
    ]))
    assert [ref.uri for ref in iter_contents(path)] == ["deep.b3dm", "shallow.b3dm"]
    assert resolve_next_content(path).uri == "deep.b3dm"


def test_nested_tileset_is_traversed(tileset_dir, tmp_path):
    nested_root = tile_node(children=[tile_node("x.b3dm")])
    nested_root["boundingVolume"] = {"box": [0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 1]}
    tileset_dir("sub/tileset.json", nested_root)
    path = tileset_dir("tileset.json", tile_node("sub/tileset.json"))

    reference = resolve_next_content(path)
    assert reference.uri == "x.b3dm"
    assert reference.path == tmp_path.resolve() / "sub" / "x.b3dm"
    assert reference.tileset_path == tmp_path.resolve() / "sub" / "tileset.json"
    assert reference.depth == 1
    assert reference.root_bounding_volume.kind == "box"


def test_nested_tileset_expanded_in_place(tileset_dir):
    tileset_dir("sub.json", tile_node("inner.b3dm"))
    path = tileset_dir("tileset.json", tile_node(children=[
        tile_node("sub.json", children=[tile_node("after_nested.b3dm")]),
        tile_node("sibling.b3dm"),
    ]))
    assert [ref.uri for ref in iter_contents(path)] == ["inner.b3dm", "after_nested.b3dm", "sibling.b3dm"]


def test_cycles_terminate(tileset_dir, caplog):
    tileset_dir("b.json", tile_node("a.json"))
    path = tileset_dir("a.json", tile_node("b.json"))
    with caplog.at_level(logging.WARNING):
        with pytest.raises(MissingContent):
            resolve_next_content(path)
    assert "Cyclic" in caplog.text


def test_cycle_does_not_hide_other_content(tileset_dir):
    tileset_dir("b.json", tile_node(children=[tile_node("a.json"), tile_node("b_content.b3dm")]))
    path = tileset_dir("a.json", tile_node("b.json"))
    assert [ref.uri for ref in iter_contents(path)] == ["b_content.b3dm"]


def test_same_document_referenced_twice_is_not_a_cycle(tileset_dir):
    tileset_dir("shared.json", tile_node("shared.b3dm"))
    path = tileset_dir("tileset.json", tile_node(children=[tile_node("shared.json"), tile_node("shared.json")]))
    assert [ref.uri for ref in iter_contents(path)] == ["shared.b3dm", "shared.b3dm"]


def test_max_depth(tileset_dir, caplog):
    tileset_dir("level2.json", tile_node("deep.b3dm"))
    tileset_dir("level1.json", tile_node("level2.json"))
    path = tileset_dir("tileset.json", tile_node("level1.json"))

    assert resolve_next_content(path, max_depth=2).uri == "deep.b3dm"
    with caplog.at_level(logging.WARNING):
        with pytest.raises(MissingContent):
            resolve_next_content(path, max_depth=1)
    assert "max depth" in caplog.text


def test_missing_content(tileset_dir):
    path = tileset_dir("tileset.json", tile_node(children=[tile_node(), tile_node()]))
    with pytest.raises(MissingContent):
        resolve_next_content(path)


def test_missing_nested_tileset_fails(tileset_dir):
    path = tileset_dir("tileset.json", tile_node("missing.json"))
    with pytest.raises(IoFailure):
        resolve_next_content(path)


def test_nested_tileset_outside_root_is_rejected(tileset_dir, tmp_path):
    tileset_dir("secret/private.json", tile_node("secret.b3dm"))
    path = tileset_dir("public/tileset.json", tile_node("../secret/private.json"))

    # ohne Grenze wird das externe Tileset geladen
    assert resolve_next_content(path).uri == "secret.b3dm"
    with pytest.raises(OutsideRoot):
        resolve_next_content(path, root=tmp_path / "public")


def test_nested_tileset_inside_root(tileset_dir, tmp_path):
    tileset_dir("sub/inner.json", tile_node("a.pnts"))
    path = tileset_dir("tileset.json", tile_node("sub/inner.json"))
    references = list(iter_contents(path, root=tmp_path))
    assert [r.uri for r in references] == ["a.pnts"]


def test_start_document_outside_root(tileset_dir, tmp_path):
    path = tileset_dir("other/tileset.json", tile_node("a.pnts"))
    with pytest.raises(OutsideRoot):
        list(iter_contents(path, root=tmp_path / "public"))


def test_uris_with_scheme_are_not_resolved(tileset_dir):
    path = tileset_dir("tileset.json", tile_node(children=[
        tile_node("https://example.com/remote.json"),
        tile_node("https://example.com/remote.b3dm"),
    ]))
    reference = resolve_next_content(path)
    assert reference.uri == "https://example.com/remote.b3dm"
    assert reference.path is None


def test_resolve_content_path(tmp_path):
    tileset_path = tmp_path / "data" / "tileset.json"
    assert resolve_content_path(tileset_path, "tiles/a%20b.b3dm?v=2#x") == tmp_path / "data" / "tiles" / "a b.b3dm"
    assert resolve_content_path(tileset_path, "../other/0.pnts") == tmp_path / "data" / ".." / "other" / "0.pnts"
    assert resolve_content_path(tileset_path, "data:application/octet-stream;base64,AAAA") is None


# ============================================================================
# Tree model
# ============================================================================

def test_refine_inheritance_and_transform():
    translate_x = [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 10, 0, 0, 1]
    translate_y = [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 5, 0, 1]
    tileset = parse_tileset(json.dumps(tileset_document(
        tile_node(refine="add", transform=translate_x, children=[
            tile_node(transform=translate_y, children=[tile_node()]),
            tile_node(refine="REPLACE"),
        ])
    )))
    visits = list(iter_tiles(tileset))

    assert [v.depth for v in visits] == [0, 1, 2, 1]
    assert [v.refine for v in visits] == [Refine.ADD, Refine.ADD, Refine.ADD, Refine.REPLACE]
    assert visits[0].transform[12:15] == (10.0, 0.0, 0.0)
    assert visits[1].transform[12:15] == (10.0, 5.0, 0.0)
    assert visits[2].transform == visits[1].transform


def test_root_refine_defaults_to_replace():
    tileset = parse_tileset(json.dumps(tileset_document(tile_node(children=[tile_node()]))))
    assert [v.refine for v in iter_tiles(tileset)] == [Refine.REPLACE, Refine.REPLACE]


def test_legacy_url_key():
    tileset = parse_tileset(
        '{"asset": {"version": "0.0"}, "geometricError": 1, "root": '
        '{"boundingVolume": {"sphere": [0, 0, 0, 1]}, "geometricError": 0, "content": {"url": "old.b3dm"}}}'
    )
    assert tileset.root.content.uri == "old.b3dm"


@pytest.mark.parametrize("text", [
    "{not json",
    '{"asset": {"version": "1.0"}, "geometricError": 1}',
    '{"asset": {"version": "1.0"}, "geometricError": 1, "root": '
    '{"boundingVolume": {"box": [0, 0, 0]}, "geometricError": 0}}',
    '{"asset": {"version": "1.0"}, "geometricError": 1, "root": '
    '{"boundingVolume": {"sphere": [0, 0, 0, 1]}, "geometricError": 0, "refine": "MERGE"}}',
])
def test_invalid_tilesets(text):
    with pytest.raises(MalformedJson):
        parse_tileset(text)


def test_load_missing_tileset(tmp_path):
    with pytest.raises(IoFailure):
        load_tileset(tmp_path / "tileset.json")


def test_bounding_volume_helpers():
    box = BoundingVolume(box=[1, 2, 3, 1, 0, 0, 0, 2, 0, 0, 0, 3])
    assert box.kind == "box"
    assert box.center() == (1, 2, 3)
    corners = box.box_corners()
    assert len(corners) == 8
    assert (0, 0, 0) in corners
    assert (2, 4, 6) in corners

    region = BoundingVolume(region=[0.1, 0.2, 0.3, 0.4, 0, 100])
    assert region.center() == pytest.approx((0.2, 0.3, 50.0))
    assert region.box_corners() == []
    assert BoundingVolume().kind is None
