"""
Pydantic Models für die 3D Tiles API
====================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# System
# ============================================================================

class HealthResponse(BaseModel):
    """Health Check Response"""
    status: str = "healthy"
    service: str = "tiles3d-api"
    version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=datetime.now)


class ErrorResponse(BaseModel):
    """Fehler-Response"""
    error: str
    status_code: int


# ============================================================================
# Tiles
# ============================================================================

class TileInspection(BaseModel):
    """Struktur eines Tiles (Header, Tabellen, Payload)"""
    format: str = Field(..., description="b3dm, i3dm oder pnts")
    header: Dict[str, Any]
    feature_table: Dict[str, Any] = Field(..., description="Feature Table JSON")
    feature_table_binary_byte_length: int
    batch_table: Optional[Dict[str, Any]] = Field(None, description="Batch Table JSON (falls vorhanden)")
    batch_table_binary_byte_length: int
    feature_count: int = Field(..., description="BATCH_LENGTH, INSTANCES_LENGTH oder POINTS_LENGTH")
    payload_kind: str = Field(..., description="glb, uri oder points")
    payload_byte_length: int
    gltf_uri: Optional[str] = Field(None, description="glTF URI bei i3dm mit gltfFormat 0")
    glb: Optional[Dict[str, Any]] = Field(None, description="Zusammenfassung des eingebetteten GLB")

    class Config:
        json_schema_extra = {
            "example": {
                "format": "b3dm",
                "header": {"magic": "b3dm", "version": 1, "byte_length": 1024},
                "feature_table": {"BATCH_LENGTH": 10},
                "feature_table_binary_byte_length": 0,
                "batch_table": None,
                "batch_table_binary_byte_length": 0,
                "feature_count": 10,
                "payload_kind": "glb",
                "payload_byte_length": 980,
            }
        }


class PointCloudResponse(BaseModel):
    """Dekodierte Punkte eines pnts Tiles"""
    points_length: int = Field(..., description="POINTS_LENGTH des Tiles")
    returned: int = Field(..., description="Anzahl zurückgegebener Punkte")
    positions: List[List[float]]
    colors: Optional[List[List[int]]] = Field(None, description="RGBA pro Punkt")
    normals: Optional[List[List[float]]] = None
    batch_ids: Optional[List[int]] = None
    rtc_center: Optional[List[float]] = None


# ============================================================================
# Tilesets
# ============================================================================

class ContentReferenceResponse(BaseModel):
    """Ein Tile mit Inhalt"""
    uri: str = Field(..., description="Content URI wie im Tileset angegeben")
    path: Optional[str] = Field(None, description="Pfad relativ zum Tileset-Verzeichnis")
    tileset_path: str
    depth: int = Field(..., ge=0, description="Verschachtelungstiefe externer Tilesets")
    refine: str
    geometric_error: float
    root_bounding_volume: Dict[str, Any]
    content_bounding_volume: Optional[Dict[str, Any]] = None
    transform: List[float]

    class Config:
        json_schema_extra = {
            "example": {
                "uri": "tiles/0.b3dm",
                "path": "tiles/0.b3dm",
                "tileset_path": "tileset.json",
                "depth": 0,
                "refine": "REPLACE",
                "geometric_error": 0.0,
                "root_bounding_volume": {"sphere": [0, 0, 0, 100]},
                "transform": [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1],
            }
        }


class ContentListResponse(BaseModel):
    """Alle Tiles mit Inhalt (bis zum Limit)"""
    tileset: str
    count: int
    truncated: bool = Field(False, description="Limit erreicht, weitere Inhalte vorhanden")
    contents: List[ContentReferenceResponse]
