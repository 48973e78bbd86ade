"""
3D Tiles API
============

REST API zum Dekodieren von 3D Tiles (b3dm, i3dm, pnts) und zum
Traversieren von tileset.json Dokumenten.
"""

import logging
from contextlib import asynccontextmanager
from itertools import islice
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from tiles3d.config import configure_logging, load_settings
from tiles3d.errors import MagicMismatch, MissingContent, OutsideRoot, Tiles3dError
from tiles3d.models.schemas import (
    ContentListResponse,
    ContentReferenceResponse,
    ErrorResponse,
    HealthResponse,
    PointCloudResponse,
    TileInspection,
)
from tiles3d.models.tile_formats import TileFormat
from tiles3d.services.dispatch import PayloadKind, describe_tile, read_tile, scene_payload_of
from tiles3d.services.glb import summarize_glb
from tiles3d.services.pnts import decode_points
from tiles3d.services.tileset_reader import ContentReference, iter_contents, resolve_next_content

logger = logging.getLogger(__name__)

settings = load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup und Shutdown Events"""
    configure_logging(settings.log_level)
    logger.info(f"✅ 3D Tiles API gestartet (Tileset-Verzeichnis: {settings.tileset_root})")
    yield
    logger.info("👋 3D Tiles API beendet")


# FastAPI App
app = FastAPI(
    title="3D Tiles API",
    description="""
    REST API für 3D Tiles.

    ## Features
    - 🧱 b3dm / i3dm / pnts dekodieren (Header, Feature Table, Batch Table)
    - 📦 Eingebettetes glTF extrahieren
    - ☁️ Punktwolken dekodieren
    - 🌳 tileset.json traversieren (inkl. externer Tilesets)
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS für Frontend
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
if settings.frontend_url:
    allowed_origins.append(settings.frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Health Check"""
    return HealthResponse(
        status="healthy",
        service="tiles3d-api",
        version="1.0.0"
    )


@app.get("/", tags=["System"])
async def root():
    """API Info"""
    return {
        "name": "3D Tiles API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Ungültige Anfrage"},
    413: {"model": ErrorResponse, "description": "Upload zu gross"},
    422: {"model": ErrorResponse, "description": "Tile oder Tileset nicht dekodierbar"},
}

TILESET_RESPONSES = {
    **ERROR_RESPONSES,
    404: {"model": ErrorResponse, "description": "Tileset oder Inhalt nicht gefunden"},
}


# ============================================================================
# Tiles
# ============================================================================

def _upload_too_large(size: int) -> HTTPException:
    return HTTPException(
        status_code=413,
        detail=f"Tile zu gross: {size:,} Bytes (max. {settings.max_upload_mb} MB)"
    )


async def _read_upload(request: Request) -> bytes:
    # Content-Length zuerst prüfen, dann beim Lesen begrenzen (chunked Uploads)
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > settings.max_upload_bytes:
        raise _upload_too_large(int(declared))

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > settings.max_upload_bytes:
            raise _upload_too_large(len(body))
    if not body:
        raise HTTPException(status_code=400, detail="Leerer Request-Body, Tile-Bytes erwartet")
    return bytes(body)


@app.post("/api/v1/tiles/inspect",
          response_model=TileInspection,
          responses=ERROR_RESPONSES,
          tags=["Tiles"])
async def inspect_tile(
    request: Request,
    format: Optional[TileFormat] = Query(None, description="Erwartetes Format (sonst aus Magic)")
):
    """
    Header, Feature Table und Batch Table eines Tiles anzeigen.

    Die Tile-Bytes werden als Request-Body gesendet.
    """
    tile = read_tile(await _read_upload(request), format)
    info = describe_tile(tile)
    if info["payload_kind"] == PayloadKind.GLB.value:
        try:
            info["glb"] = summarize_glb(scene_payload_of(tile).data)
        except Tiles3dError as e:
            logger.warning(f"GLB summary not available: {e}")
    return TileInspection(**info)


@app.post("/api/v1/tiles/payload",
          responses=ERROR_RESPONSES,
          tags=["Tiles"])
async def extract_payload(
    request: Request,
    format: Optional[TileFormat] = Query(None, description="Erwartetes Format (sonst aus Magic)")
):
    """
    Eingebettetes glTF (model/gltf-binary) oder die glTF URI (i3dm mit
    gltfFormat 0) eines Tiles. Punktwolken haben kein glTF.
    """
    tile = read_tile(await _read_upload(request), format)
    if tile.header.magic == TileFormat.PNTS.value:
        raise HTTPException(status_code=422, detail="pnts Tiles enthalten kein glTF")

    scene = scene_payload_of(tile)
    if scene.kind == PayloadKind.URI:
        return {"uri": scene.uri}
    return Response(
        content=scene.data,
        media_type="model/gltf-binary",
        headers={
            "Content-Disposition": f'attachment; filename="payload_{scene.format.value}.glb"'
        }
    )


@app.post("/api/v1/tiles/points",
          response_model=PointCloudResponse,
          responses=ERROR_RESPONSES,
          tags=["Tiles"])
async def decode_point_cloud(
    request: Request,
    limit: int = Query(1000, ge=1, le=1_000_000, description="Max. Anzahl zurückgegebener Punkte")
):
    """Positionen, Farben, Normalen und Batch-IDs eines pnts Tiles."""
    tile = read_tile(await _read_upload(request), TileFormat.PNTS)
    points = decode_points(tile)

    colors = points.colors()
    return PointCloudResponse(
        points_length=len(points),
        returned=min(limit, len(points)),
        positions=[list(p) for p in points.positions[:limit]],
        colors=[list(c) for c in colors[:limit]] if colors is not None else None,
        normals=[list(n) for n in points.normals[:limit]] if points.normals is not None else None,
        batch_ids=list(points.batch_ids[:limit]) if points.batch_ids is not None else None,
        rtc_center=list(points.rtc_center) if points.rtc_center is not None else None,
    )


# ============================================================================
# Tilesets
# ============================================================================

def _tileset_file(path: str) -> Path:
    """Tileset-Pfad unterhalb von TILESET_ROOT"""
    root = settings.tileset_root.resolve()
    candidate = (root / path).resolve()
    if candidate != root and root not in candidate.parents:
        raise HTTPException(status_code=400, detail=f"Pfad ausserhalb des Tileset-Verzeichnisses: {path}")
    if not candidate.is_file():
        raise HTTPException(status_code=404, detail=f"Tileset nicht gefunden: {path}")
    return candidate


def _relative(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    root = settings.tileset_root.resolve()
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError:
        # ausserhalb TILESET_ROOT, keine absoluten Pfade ausgeben
        return None


def _content_response(reference: ContentReference) -> ContentReferenceResponse:
    content = reference.tile.content
    content_volume = None
    if content is not None and content.bounding_volume is not None:
        content_volume = content.bounding_volume.model_dump(exclude_none=True)
    return ContentReferenceResponse(
        uri=reference.uri,
        path=_relative(reference.path),
        tileset_path=_relative(reference.tileset_path),
        depth=reference.depth,
        refine=reference.refine.value,
        geometric_error=reference.tile.geometric_error,
        root_bounding_volume=reference.root_bounding_volume.model_dump(exclude_none=True),
        content_bounding_volume=content_volume,
        transform=list(reference.transform),
    )


@app.get("/api/v1/tilesets/next-content",
         response_model=ContentReferenceResponse,
         responses=TILESET_RESPONSES,
         tags=["Tilesets"])
async def next_content(
    path: str = Query("tileset.json", description="Tileset relativ zu TILESET_ROOT")
):
    """
    Erstes Tile mit Inhalt (Wurzel zuerst, dann Tiefensuche).

    Externe Tilesets (.json Content) werden rekursiv aufgelöst.
    """
    reference = resolve_next_content(_tileset_file(path), settings.max_tileset_depth, settings.tileset_root)
    return _content_response(reference)


@app.get("/api/v1/tilesets/contents",
         response_model=ContentListResponse,
         responses=TILESET_RESPONSES,
         tags=["Tilesets"])
async def list_contents(
    path: str = Query("tileset.json", description="Tileset relativ zu TILESET_ROOT"),
    limit: int = Query(1000, ge=1, le=100_000, description="Max. Anzahl Inhalte")
):
    """Alle Tiles mit Inhalt in Traversierungsreihenfolge."""
    contents_iter = iter_contents(_tileset_file(path), settings.max_tileset_depth, settings.tileset_root)
    references = list(islice(contents_iter, limit + 1))
    truncated = len(references) > limit
    contents = [_content_response(reference) for reference in references[:limit]]
    return ContentListResponse(
        tileset=path,
        count=len(contents),
        truncated=truncated,
        contents=contents,
    )


# ============================================================================
# Error Handler
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code}
    )


@app.exception_handler(Tiles3dError)
async def tiles3d_exception_handler(request, exc):
    message = str(exc)
    if isinstance(exc, MissingContent):
        status_code = 404
    elif isinstance(exc, OutsideRoot):
        status_code = 400
        message = "Externes Tileset ausserhalb des Tileset-Verzeichnisses"
    else:
        status_code = 422
    if not isinstance(exc, (MissingContent, MagicMismatch)):
        logger.warning(f"{request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "status_code": status_code}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.exception(f"Unerwarteter Fehler bei {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Interner Serverfehler", "status_code": 500}
    )
