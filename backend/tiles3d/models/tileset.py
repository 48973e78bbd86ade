"""
Tileset Models
==============

Pydantic Modelle für das tileset.json Dokument (3D Tiles 1.0).
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

Vec3 = Tuple[float, float, float]


class Refine(str, Enum):
    """Verfeinerungsstrategie"""
    ADD = "ADD"
    REPLACE = "REPLACE"


class BoundingVolume(BaseModel):
    """
    Bounding volume of a tile or its content.

    - box: 12 numbers, center followed by the x, y and z half-axis vectors
    - region: 6 numbers, [west, south, east, north, min height, max height],
      angles in radians (EPSG:4979)
    - sphere: 4 numbers, center and radius
    """
    box: Optional[List[float]] = None
    region: Optional[List[float]] = None
    sphere: Optional[List[float]] = None
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True

    @field_validator("box")
    @classmethod
    def _check_box(cls, value):
        if value is not None and len(value) != 12:
            raise ValueError(f"box needs 12 numbers, got {len(value)}")
        return value

    @field_validator("region")
    @classmethod
    def _check_region(cls, value):
        if value is not None and len(value) != 6:
            raise ValueError(f"region needs 6 numbers, got {len(value)}")
        return value

    @field_validator("sphere")
    @classmethod
    def _check_sphere(cls, value):
        if value is not None and len(value) != 4:
            raise ValueError(f"sphere needs 4 numbers, got {len(value)}")
        return value

    @property
    def kind(self) -> Optional[str]:
        """First populated volume type (box, region, sphere)"""
        for name in ("box", "region", "sphere"):
            if getattr(self, name) is not None:
                return name
        return None

    def center(self) -> Optional[Vec3]:
        if self.box is not None:
            return (self.box[0], self.box[1], self.box[2])
        if self.region is not None:
            west, south, east, north, min_h, max_h = self.region
            return ((west + east) / 2, (south + north) / 2, (min_h + max_h) / 2)
        if self.sphere is not None:
            return (self.sphere[0], self.sphere[1], self.sphere[2])
        return None

    def box_corners(self) -> List[Vec3]:
        """The 8 corners of an oriented bounding box (empty list without box)."""
        if self.box is None:
            return []
        center = self.box[0:3]
        x_axis, y_axis, z_axis = self.box[3:6], self.box[6:9], self.box[9:12]
        corners = []
        for sx in (-1.0, 1.0):
            for sy in (-1.0, 1.0):
                for sz in (-1.0, 1.0):
                    corners.append(tuple(
                        center[i] + sx * x_axis[i] + sy * y_axis[i] + sz * z_axis[i]
                        for i in range(3)
                    ))
        return corners


class TileContent(BaseModel):
    """Link auf den Inhalt eines Tiles"""
    uri: str
    bounding_volume: Optional[BoundingVolume] = Field(None, alias="boundingVolume")
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _legacy_url(cls, data: Any) -> Any:
        # pre-1.0 tilesets use "url"
        if isinstance(data, dict) and "uri" not in data and "url" in data:
            data = dict(data)
            data["uri"] = data.pop("url")
        return data

    @property
    def is_tileset(self) -> bool:
        """Content is an external tileset JSON document"""
        path = self.uri.split("?", 1)[0].split("#", 1)[0]
        return path.lower().endswith(".json")


class Tile(BaseModel):
    """Ein Knoten im Tile-Baum"""
    bounding_volume: BoundingVolume = Field(..., alias="boundingVolume")
    geometric_error: float = Field(..., ge=0, alias="geometricError")
    children: Optional[List["Tile"]] = None
    content: Optional[TileContent] = None
    refine: Optional[Refine] = None
    transform: Optional[List[float]] = Field(None, description="4x4 Matrix, column-major")
    viewer_request_volume: Optional[BoundingVolume] = Field(None, alias="viewerRequestVolume")
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("refine", mode="before")
    @classmethod
    def _upper_refine(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("transform")
    @classmethod
    def _check_transform(cls, value):
        if value is not None and len(value) != 16:
            raise ValueError(f"transform needs 16 numbers, got {len(value)}")
        return value

    @property
    def has_content(self) -> bool:
        return self.content is not None


Tile.model_rebuild()


class Asset(BaseModel):
    """Metadaten des Tilesets"""
    version: str
    tileset_version: Optional[str] = Field(None, alias="tilesetVersion")
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_string(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class Tileset(BaseModel):
    """tileset.json Wurzeldokument"""
    asset: Asset
    geometric_error: float = Field(..., ge=0, alias="geometricError")
    root: Tile
    properties: Optional[Dict[str, Any]] = None
    extensions_used: Optional[List[str]] = Field(None, alias="extensionsUsed")
    extensions_required: Optional[List[str]] = Field(None, alias="extensionsRequired")
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True
        populate_by_name = True
