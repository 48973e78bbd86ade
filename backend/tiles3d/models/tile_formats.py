"""
Tile Format Models
==================

Pydantic models for the binary tile formats: headers of b3dm/i3dm/pnts,
the semantic value union used by feature and batch tables, and the
per-format feature table semantics.

Semantic values are stored as tagged variants. Raw JSON is classified in a
fixed order:

1. JSON object  -> BinaryBodyReference (structurally distinct, checked first)
2. JSON number  -> ScalarValue
3. JSON array   -> Cartesian3Value / Cartesian4Value when the semantic is a
                   3/4-component global property and the length matches,
                   otherwise ScalarArrayValue

Which variant is legal for a given semantic is not enforced; whatever shape
the JSON contains is stored.
"""

from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, Field, model_validator

U32_MAX = 0xFFFFFFFF


# ============================================================================
# Enums
# ============================================================================

class TileFormat(str, Enum):
    """Binary tile content formats"""
    B3DM = "b3dm"
    I3DM = "i3dm"
    PNTS = "pnts"

    @property
    def magic(self) -> bytes:
        return self.value.encode("ascii")


class ComponentType(str, Enum):
    """Datatype of the components of a binary body property"""
    BYTE = "BYTE"
    UNSIGNED_BYTE = "UNSIGNED_BYTE"
    SHORT = "SHORT"
    UNSIGNED_SHORT = "UNSIGNED_SHORT"
    INT = "INT"
    UNSIGNED_INT = "UNSIGNED_INT"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"

    @property
    def struct_code(self) -> str:
        return _STRUCT_CODES[self]

    @property
    def size(self) -> int:
        return _COMPONENT_SIZES[self]


_STRUCT_CODES = {
    ComponentType.BYTE: 'b',
    ComponentType.UNSIGNED_BYTE: 'B',
    ComponentType.SHORT: 'h',
    ComponentType.UNSIGNED_SHORT: 'H',
    ComponentType.INT: 'i',
    ComponentType.UNSIGNED_INT: 'I',
    ComponentType.FLOAT: 'f',
    ComponentType.DOUBLE: 'd',
}

_COMPONENT_SIZES = {
    ComponentType.BYTE: 1,
    ComponentType.UNSIGNED_BYTE: 1,
    ComponentType.SHORT: 2,
    ComponentType.UNSIGNED_SHORT: 2,
    ComponentType.INT: 4,
    ComponentType.UNSIGNED_INT: 4,
    ComponentType.FLOAT: 4,
    ComponentType.DOUBLE: 8,
}


class PropertyType(str, Enum):
    """Scalar or vector shape of a binary body property"""
    SCALAR = "SCALAR"
    VEC2 = "VEC2"
    VEC3 = "VEC3"
    VEC4 = "VEC4"

    @property
    def arity(self) -> int:
        return {"SCALAR": 1, "VEC2": 2, "VEC3": 3, "VEC4": 4}[self.value]


# ============================================================================
# Header
# ============================================================================

class TileHeader(BaseModel):
    """Gemeinsamer Header aller Tile-Formate (magic + 6 x uint32)"""

    MAGIC: ClassVar[bytes] = b""
    HEADER_LENGTH: ClassVar[int] = 28
    FIELDS: ClassVar[Tuple[str, ...]] = (
        "version",
        "byte_length",
        "feature_table_json_byte_length",
        "feature_table_binary_byte_length",
        "batch_table_json_byte_length",
        "batch_table_binary_byte_length",
    )

    magic: str
    version: int = Field(1, ge=0, le=U32_MAX)
    byte_length: int = Field(..., ge=0, le=U32_MAX, description="Länge des ganzen Tiles")
    feature_table_json_byte_length: int = Field(0, ge=0, le=U32_MAX)
    feature_table_binary_byte_length: int = Field(0, ge=0, le=U32_MAX)
    batch_table_json_byte_length: int = Field(0, ge=0, le=U32_MAX)
    batch_table_binary_byte_length: int = Field(0, ge=0, le=U32_MAX)

    class Config:
        frozen = True

    @property
    def tables_byte_length(self) -> int:
        """Bytes occupied by both tables (JSON and binary)"""
        return (
            self.feature_table_json_byte_length
            + self.feature_table_binary_byte_length
            + self.batch_table_json_byte_length
            + self.batch_table_binary_byte_length
        )


class B3dmHeader(TileHeader):
    """Batched 3D Model Header"""
    MAGIC: ClassVar[bytes] = b"b3dm"

    magic: Literal["b3dm"] = "b3dm"


class PntsHeader(TileHeader):
    """Point Cloud Header"""
    MAGIC: ClassVar[bytes] = b"pnts"

    magic: Literal["pnts"] = "pnts"


class I3dmHeader(TileHeader):
    """Instanced 3D Model Header (mit zusätzlichem gltfFormat)"""
    MAGIC: ClassVar[bytes] = b"i3dm"
    HEADER_LENGTH: ClassVar[int] = 32
    FIELDS: ClassVar[Tuple[str, ...]] = TileHeader.FIELDS + ("gltf_format",)

    magic: Literal["i3dm"] = "i3dm"
    gltf_format: int = Field(1, ge=0, le=U32_MAX, description="0 = URI, 1 = eingebettetes GLB")


HEADER_CLASSES = {
    TileFormat.B3DM: B3dmHeader,
    TileFormat.I3DM: I3dmHeader,
    TileFormat.PNTS: PntsHeader,
}


# ============================================================================
# Semantic values
# ============================================================================

class ScalarValue(BaseModel):
    """A single tile-wide number"""
    kind: Literal["scalar"] = "scalar"
    value: float

    class Config:
        frozen = True

    def to_json(self) -> Any:
        return int(self.value) if self.value.is_integer() else self.value


class ScalarArrayValue(BaseModel):
    """Numeric values supplied inline in the JSON"""
    kind: Literal["scalar_array"] = "scalar_array"
    values: List[float]

    class Config:
        frozen = True

    def to_json(self) -> Any:
        return list(self.values)


class Cartesian3Value(BaseModel):
    kind: Literal["cartesian3"] = "cartesian3"
    values: Tuple[float, float, float]

    class Config:
        frozen = True

    def to_json(self) -> Any:
        return list(self.values)


class Cartesian4Value(BaseModel):
    kind: Literal["cartesian4"] = "cartesian4"
    values: Tuple[float, float, float, float]

    class Config:
        frozen = True

    def to_json(self) -> Any:
        return list(self.values)


class BinaryBodyReference(BaseModel):
    """Reference to a section of the binary body of a feature or batch table"""
    kind: Literal["binary"] = "binary"
    byte_offset: int = Field(..., ge=0, alias="byteOffset")
    component_type: Optional[ComponentType] = Field(None, alias="componentType")
    type: Optional[PropertyType] = Field(None, alias="type")

    class Config:
        frozen = True
        populate_by_name = True

    def to_json(self) -> Any:
        data: Dict[str, Any] = {"byteOffset": self.byte_offset}
        if self.component_type is not None:
            data["componentType"] = self.component_type.value
        if self.type is not None:
            data["type"] = self.type.value
        return data


class InlineArrayValue(BaseModel):
    """Batch table property given as a JSON array (any JSON values)"""
    kind: Literal["array"] = "array"
    values: List[Any]

    class Config:
        frozen = True

    def to_json(self) -> Any:
        return list(self.values)


_SEMANTIC_VALUE_TYPES = (
    ScalarValue,
    ScalarArrayValue,
    Cartesian3Value,
    Cartesian4Value,
    BinaryBodyReference,
)


def classify_semantic_value(raw: Any, vector_size: Optional[int] = None) -> Any:
    """Turn a raw JSON semantic value into its tagged variant."""
    if isinstance(raw, _SEMANTIC_VALUE_TYPES):
        return raw
    if isinstance(raw, dict):
        return BinaryBodyReference.model_validate(raw)
    if isinstance(raw, bool):
        raise ValueError(f"Boolean is not a numeric semantic value: {raw!r}")
    if isinstance(raw, (int, float)):
        return ScalarValue(value=raw)
    if isinstance(raw, list):
        if vector_size == 3 and len(raw) == 3:
            return Cartesian3Value(values=tuple(raw))
        if vector_size == 4 and len(raw) == 4:
            return Cartesian4Value(values=tuple(raw))
        return ScalarArrayValue(values=raw)
    raise ValueError(f"Unsupported semantic value: {raw!r}")


def classify_batch_property(raw: Any) -> Any:
    """Batch table properties are either inline arrays or binary references."""
    if isinstance(raw, (InlineArrayValue, BinaryBodyReference)):
        return raw
    if isinstance(raw, dict):
        return BinaryBodyReference.model_validate(raw)
    if isinstance(raw, list):
        return InlineArrayValue(values=raw)
    raise ValueError(f"Batch table property must be an array or a binary body reference: {raw!r}")


SemanticValue = Union[
    BinaryBodyReference,
    ScalarValue,
    ScalarArrayValue,
    Cartesian3Value,
    Cartesian4Value,
]

GlobalScalar = Annotated[SemanticValue, BeforeValidator(classify_semantic_value)]
GlobalCartesian3 = Annotated[SemanticValue, BeforeValidator(lambda raw: classify_semantic_value(raw, 3))]
GlobalCartesian4 = Annotated[SemanticValue, BeforeValidator(lambda raw: classify_semantic_value(raw, 4))]
PerFeature = Annotated[SemanticValue, BeforeValidator(classify_semantic_value)]
BatchProperty = Annotated[
    Union[BinaryBodyReference, InlineArrayValue],
    BeforeValidator(classify_batch_property),
]


def _json_value(value: Any) -> Any:
    return value.to_json() if hasattr(value, "to_json") else value


# ============================================================================
# Feature table semantics
# ============================================================================

class FeatureTableSemantics(BaseModel):
    """
    Basis für die Feature-Table-Semantik.

    Keys that are not declared semantics of the format end up in
    `properties`, classified with the per-feature rule.
    """

    properties: Dict[str, PerFeature] = Field(default_factory=dict)
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _collect_properties(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set()
        for name, field in cls.model_fields.items():
            if name == "properties":
                continue
            known.add(name)
            if field.alias:
                known.add(field.alias)
        declared = {key: value for key, value in data.items() if key in known}
        extra = {key: value for key, value in data.items() if key not in known}
        declared["properties"] = extra
        return declared

    def to_json(self) -> Dict[str, Any]:
        """Rebuild the feature table JSON document."""
        data: Dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            if name == "properties":
                continue
            value = getattr(self, name)
            if value is None:
                continue
            data[field.alias or name] = _json_value(value)
        for key, value in self.properties.items():
            data[key] = _json_value(value)
        return data


class B3dmFeatureTable(FeatureTableSemantics):
    """Batched 3D Model: BATCH_LENGTH (required), RTC_CENTER"""
    batch_length: GlobalScalar = Field(..., alias="BATCH_LENGTH")
    rtc_center: Optional[GlobalCartesian3] = Field(None, alias="RTC_CENTER")


class I3dmFeatureTable(FeatureTableSemantics):
    """Instanced 3D Model semantics"""
    instances_length: GlobalScalar = Field(..., alias="INSTANCES_LENGTH")
    rtc_center: Optional[GlobalCartesian3] = Field(None, alias="RTC_CENTER")
    quantized_volume_offset: Optional[GlobalCartesian3] = Field(None, alias="QUANTIZED_VOLUME_OFFSET")
    quantized_volume_scale: Optional[GlobalCartesian3] = Field(None, alias="QUANTIZED_VOLUME_SCALE")
    east_north_up: Optional[bool] = Field(None, alias="EAST_NORTH_UP")
    position: Optional[PerFeature] = Field(None, alias="POSITION")
    position_quantized: Optional[PerFeature] = Field(None, alias="POSITION_QUANTIZED")
    normal_up: Optional[PerFeature] = Field(None, alias="NORMAL_UP")
    normal_right: Optional[PerFeature] = Field(None, alias="NORMAL_RIGHT")
    normal_up_oct32p: Optional[PerFeature] = Field(None, alias="NORMAL_UP_OCT32P")
    normal_right_oct32p: Optional[PerFeature] = Field(None, alias="NORMAL_RIGHT_OCT32P")
    scale: Optional[PerFeature] = Field(None, alias="SCALE")
    scale_non_uniform: Optional[PerFeature] = Field(None, alias="SCALE_NON_UNIFORM")
    batch_id: Optional[PerFeature] = Field(None, alias="BATCH_ID")


class PntsFeatureTable(FeatureTableSemantics):
    """Point Cloud semantics"""
    points_length: GlobalScalar = Field(..., alias="POINTS_LENGTH")
    batch_length: Optional[GlobalScalar] = Field(None, alias="BATCH_LENGTH")
    constant_rgba: Optional[GlobalCartesian4] = Field(None, alias="CONSTANT_RGBA")
    rtc_center: Optional[GlobalCartesian3] = Field(None, alias="RTC_CENTER")
    quantized_volume_offset: Optional[GlobalCartesian3] = Field(None, alias="QUANTIZED_VOLUME_OFFSET")
    quantized_volume_scale: Optional[GlobalCartesian3] = Field(None, alias="QUANTIZED_VOLUME_SCALE")
    position: Optional[PerFeature] = Field(None, alias="POSITION")
    position_quantized: Optional[PerFeature] = Field(None, alias="POSITION_QUANTIZED")
    rgba: Optional[PerFeature] = Field(None, alias="RGBA")
    rgb: Optional[PerFeature] = Field(None, alias="RGB")
    rgb565: Optional[PerFeature] = Field(None, alias="RGB565")
    normal: Optional[PerFeature] = Field(None, alias="NORMAL")
    normal_oct16p: Optional[PerFeature] = Field(None, alias="NORMAL_OCT16P")
    batch_id: Optional[PerFeature] = Field(None, alias="BATCH_ID")


class BatchTableSemantics(BaseModel):
    """Anwendungsspezifische Eigenschaften pro Feature"""

    properties: Dict[str, BatchProperty] = Field(default_factory=dict)
    extensions: Optional[Dict[str, Any]] = None
    extras: Optional[Any] = None

    class Config:
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def _collect_properties(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        reserved = {"extensions", "extras"}
        extra = {key: value for key, value in data.items() if key not in reserved}
        result = {key: data[key] for key in reserved if key in data}
        result["properties"] = extra
        return result

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {key: _json_value(value) for key, value in self.properties.items()}
        if self.extensions is not None:
            data["extensions"] = self.extensions
        if self.extras is not None:
            data["extras"] = self.extras
        return data


FEATURE_TABLE_CLASSES = {
    TileFormat.B3DM: B3dmFeatureTable,
    TileFormat.I3DM: I3dmFeatureTable,
    TileFormat.PNTS: PntsFeatureTable,
}
