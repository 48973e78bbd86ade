#!/usr/bin/env python3
"""
3D Tiles Kommandozeile
======================

Zeigt Tilesets und Tiles an, extrahiert eingebettetes glTF und startet
die API.

Beispiele:
    tiles3d display data/tileset.json
    tiles3d display data/tiles/0.b3dm
    tiles3d extract data/tiles/0.b3dm -o building.glb
    tiles3d serve --port 8000
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tiles3d.config import configure_logging, load_settings
from tiles3d.errors import MissingContent, Tiles3dError
from tiles3d.services.dispatch import (
    PayloadKind,
    describe_tile,
    load_tile_bytes,
    read_tile,
    scene_payload_of,
)
from tiles3d.services.glb import summarize_glb
from tiles3d.services.tileset_reader import iter_tiles, load_tileset, resolve_next_content

logger = logging.getLogger(__name__)


def _print_json(title: str, data) -> None:
    print(f"\n--- {title} ---")
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def display_tileset(path: Path, max_depth: int) -> None:
    tileset = load_tileset(path)
    visits = list(iter_tiles(tileset))

    print(f"\n=== Tileset: {path} ===")
    print(f"Asset-Version: {tileset.asset.version}")
    if tileset.asset.tileset_version:
        print(f"Tileset-Version: {tileset.asset.tileset_version}")
    print(f"Geometric Error: {tileset.geometric_error}")
    print(f"Tiles: {len(visits)} (max. Tiefe {max(v.depth for v in visits)})")
    print(f"Tiles mit Inhalt: {sum(1 for v in visits if v.tile.has_content)}")
    root_volume = tileset.root.bounding_volume
    print(f"Root Bounding Volume: {root_volume.kind} {root_volume.center()}")

    try:
        reference = resolve_next_content(path, max_depth)
    except MissingContent:
        print("Erster Inhalt: (keiner)")
        return
    print(f"Erster Inhalt: {reference.uri}")
    print(f"  Datei: {reference.path}")
    print(f"  Tileset: {reference.tileset_path} (Tiefe {reference.depth})")
    print(f"  Refine: {reference.refine.value}")


def display_tile(path: Path) -> None:
    tile = read_tile(load_tile_bytes(path))
    info = describe_tile(tile)

    print(f"\n=== {info['format']}: {path} ===")
    _print_json("Header", info["header"])
    _print_json("Feature Table", info["feature_table"])
    print(f"Feature Table Body: {info['feature_table_binary_byte_length']:,} bytes")
    if info["batch_table"] is not None:
        _print_json("Batch Table", info["batch_table"])
    print(f"Batch Table Body: {info['batch_table_binary_byte_length']:,} bytes")
    print(f"Features: {info['feature_count']:,}")
    print(f"Payload: {info['payload_kind']} ({info['payload_byte_length']:,} bytes)")

    if info["gltf_uri"] is not None:
        print(f"glTF URI: {info['gltf_uri']}")
    if info["payload_kind"] == PayloadKind.GLB.value:
        _print_json("GLB", summarize_glb(scene_payload_of(tile).data))


def extract(path: Path, output: Optional[Path]) -> None:
    scene = scene_payload_of(read_tile(load_tile_bytes(path)))

    if scene.kind == PayloadKind.GLB:
        target = output or path.with_suffix(".glb")
        target.write_bytes(scene.data)
        print(f"GLB geschrieben: {target} ({len(scene.data):,} bytes)")
    elif scene.kind == PayloadKind.URI:
        print(f"glTF URI: {scene.uri}")
    else:
        points = scene.points
        print(f"Punkte: {len(points):,}")
        if points.positions:
            xs, ys, zs = zip(*points.positions)
            print(f"  X: {min(xs):.3f} .. {max(xs):.3f}")
            print(f"  Y: {min(ys):.3f} .. {max(ys):.3f}")
            print(f"  Z: {min(zs):.3f} .. {max(zs):.3f}")
        if points.rtc_center is not None:
            print(f"  RTC_CENTER: {points.rtc_center}")
        print(f"  Farben: {'ja' if points.colors() is not None else 'nein'}")
        print(f"  Normalen: {'ja' if points.normals is not None else 'nein'}")


def serve(host: str, port: int, reload: bool, log_level: str) -> None:
    import uvicorn

    uvicorn.run("tiles3d.main:app", host=host, port=port, reload=reload, log_level=log_level.lower())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tiles3d",
        description="3D Tiles (b3dm, i3dm, pnts, tileset.json) anzeigen und extrahieren",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Beispiele:
    tiles3d display data/tileset.json
    tiles3d display data/tiles/0.b3dm
    tiles3d extract data/tiles/0.b3dm -o building.glb
    tiles3d serve --port 8000
        """
    )
    parser.add_argument('--log-level', type=str, default=None, help='Log-Level (Default: LOG_LEVEL oder INFO)')
    commands = parser.add_subparsers(dest='command', required=True)

    display_parser = commands.add_parser('display', help='Tileset oder Tile anzeigen')
    display_parser.add_argument('path', type=Path, help='tileset.json, .b3dm, .i3dm oder .pnts')

    extract_parser = commands.add_parser('extract', help='glTF aus einem Tile extrahieren')
    extract_parser.add_argument('path', type=Path, help='Tile-Datei')
    extract_parser.add_argument('-o', '--output', type=Path, default=None, help='Ziel-Datei (Default: <tile>.glb)')

    serve_parser = commands.add_parser('serve', help='API starten')
    serve_parser.add_argument('--host', type=str, default='127.0.0.1', help='Host')
    serve_parser.add_argument('--port', type=int, default=8000, help='Port')
    serve_parser.add_argument('--reload', action='store_true', help='Auto-Reload (Entwicklung)')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    log_level = args.log_level or settings.log_level
    configure_logging(log_level)
    logger.debug(f"Command: {args.command}")

    if args.command == 'serve':
        serve(args.host, args.port, args.reload, log_level)
        return 0

    # Datei prüfen
    if not args.path.exists():
        print(f"FEHLER: Datei nicht gefunden: {args.path}", file=sys.stderr)
        return 1

    try:
        if args.command == 'display':
            if args.path.suffix.lower() == '.json':
                display_tileset(args.path, settings.max_tileset_depth)
            else:
                display_tile(args.path)
        elif args.command == 'extract':
            extract(args.path, args.output)
    except Tiles3dError as e:
        print(f"FEHLER: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
