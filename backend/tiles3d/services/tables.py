"""
Feature Table / Batch Table Decoder
===================================

Both tables consist of a JSON header of declared length followed by a binary
body of declared length. The JSON is validated into the format semantics,
the body is kept verbatim. Binary body references are resolved on demand
with `read_binary_values`.
"""

import json
import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError

from tiles3d.errors import MalformedJson, TruncatedBody, UnsupportedSemantic
from tiles3d.models.tile_formats import (
    BatchTableSemantics,
    BinaryBodyReference,
    Cartesian3Value,
    Cartesian4Value,
    ComponentType,
    FeatureTableSemantics,
    InlineArrayValue,
    PropertyType,
    ScalarArrayValue,
    ScalarValue,
)
from tiles3d.services.binary_reader import TileReader

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=FeatureTableSemantics)

_VECTOR_TYPES = {2: PropertyType.VEC2, 3: PropertyType.VEC3, 4: PropertyType.VEC4}


@dataclass(frozen=True)
class FeatureTable:
    """Feature table: semantics plus the raw binary body"""
    semantics: FeatureTableSemantics
    body: bytes


@dataclass(frozen=True)
class BatchTable:
    """Batch table: optional semantics (None if JSON length is 0) plus the binary body"""
    semantics: Optional[BatchTableSemantics]
    body: bytes

    @property
    def property_names(self) -> List[str]:
        if self.semantics is None:
            return []
        return list(self.semantics.properties)

    def property_values(self, name: str, count: int) -> List[Any]:
        """
        Values of a batch table property for `count` features.

        Inline arrays are returned as stored; binary body references need a
        componentType and a type.
        """
        if self.semantics is None or name not in self.semantics.properties:
            raise KeyError(name)
        value = self.semantics.properties[name]
        if isinstance(value, InlineArrayValue):
            return list(value.values)
        return read_binary_values(self.body, value, count)


def decode_json_block(data: bytes, what: str) -> Dict[str, Any]:
    """Decode a padded JSON header into a dict (MalformedJson on failure)."""
    try:
        text = data.decode("utf-8").rstrip("\x00 ")
        document = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedJson(f"Invalid {what} JSON: {e}") from e
    if not isinstance(document, dict):
        raise MalformedJson(f"Invalid {what} JSON: expected an object, got {type(document).__name__}")
    return document


def read_feature_table(
    reader: TileReader,
    json_byte_length: int,
    binary_byte_length: int,
    semantics_cls: Type[S],
) -> FeatureTable:
    """Consume exactly json_byte_length + binary_byte_length bytes."""
    raw_json = reader.read_exact(json_byte_length, "feature table JSON")
    document = decode_json_block(raw_json, "feature table")
    try:
        semantics = semantics_cls.model_validate(document)
    except ValidationError as e:
        raise MalformedJson(f"Invalid feature table semantics: {e}") from e
    body = reader.read_exact(binary_byte_length, "feature table binary body")
    logger.debug(f"Feature table: {len(document)} keys, body {len(body)} bytes")
    return FeatureTable(semantics=semantics, body=body)


def read_batch_table(
    reader: TileReader,
    json_byte_length: int,
    binary_byte_length: int,
) -> BatchTable:
    """
    Consume the batch table. A JSON length of 0 means there is no batch
    table, but a declared binary length is still consumed.
    """
    semantics = None
    if json_byte_length > 0:
        raw_json = reader.read_exact(json_byte_length, "batch table JSON")
        document = decode_json_block(raw_json, "batch table")
        try:
            semantics = BatchTableSemantics.model_validate(document)
        except ValidationError as e:
            raise MalformedJson(f"Invalid batch table: {e}") from e
    elif binary_byte_length > 0:
        logger.warning(f"Batch table without JSON declares {binary_byte_length} binary bytes, skipping them")
    body = reader.read_exact(binary_byte_length, "batch table binary body")
    return BatchTable(semantics=semantics, body=body)


# ============================================================================
# Binary body access
# ============================================================================

def read_binary_values(
    body: bytes,
    reference: BinaryBodyReference,
    count: int,
    default_component_type: Optional[ComponentType] = None,
    default_type: Optional[PropertyType] = None,
) -> List[Any]:
    """
    Decode `count` elements referenced by a binary body reference.

    Scalars come back as numbers, vectors as tuples. The declared
    componentType/type win over the defaults of the semantic.
    """
    component_type = reference.component_type or default_component_type
    property_type = reference.type or default_type or PropertyType.SCALAR
    if component_type is None:
        raise UnsupportedSemantic(
            f"Binary body reference at offset {reference.byte_offset} has no componentType"
        )
    if count < 0:
        raise UnsupportedSemantic(f"Negative element count: {count}")

    arity = property_type.arity
    element = struct.Struct("<" + component_type.struct_code * arity)
    start = reference.byte_offset
    end = start + element.size * count
    if end > len(body):
        raise TruncatedBody(
            f"{property_type.value}/{component_type.value} values at offset {start}",
            end - start,
            max(len(body) - start, 0),
        )

    view = memoryview(body)[start:end]
    if arity == 1:
        return [values[0] for values in element.iter_unpack(view)]
    return list(element.iter_unpack(view))


def resolve_global_scalar(
    value: Any,
    body: bytes,
    default_component_type: ComponentType = ComponentType.UNSIGNED_INT,
) -> float:
    """Numeric value of a global scalar semantic (inline or binary)."""
    if isinstance(value, ScalarValue):
        return value.value
    if isinstance(value, BinaryBodyReference):
        return read_binary_values(body, value, 1, default_component_type, PropertyType.SCALAR)[0]
    if isinstance(value, ScalarArrayValue) and len(value.values) == 1:
        return value.values[0]
    raise UnsupportedSemantic(f"Cannot resolve {value!r} as a global scalar")


def resolve_count(value: Any, body: bytes) -> int:
    """Feature count semantics such as POINTS_LENGTH or BATCH_LENGTH."""
    number = resolve_global_scalar(value, body, ComponentType.UNSIGNED_INT)
    if number < 0 or number != int(number):
        raise UnsupportedSemantic(f"Invalid feature count: {number}")
    return int(number)


def resolve_global_vector(
    value: Any,
    body: bytes,
    size: int,
    default_component_type: ComponentType = ComponentType.FLOAT,
) -> Tuple[float, ...]:
    """Numeric components of a global CARTESIAN3/CARTESIAN4 semantic."""
    if isinstance(value, (Cartesian3Value, Cartesian4Value)) and len(value.values) == size:
        return tuple(value.values)
    if isinstance(value, ScalarArrayValue) and len(value.values) == size:
        return tuple(value.values)
    if isinstance(value, BinaryBodyReference):
        element = read_binary_values(body, value, 1, default_component_type, _VECTOR_TYPES[size])[0]
        if isinstance(element, tuple) and len(element) == size:
            return element
    raise UnsupportedSemantic(f"Cannot resolve {value!r} as a {size}-component global property")


def read_per_feature_values(
    value: Any,
    body: bytes,
    count: int,
    component_type: ComponentType,
    property_type: PropertyType,
    semantic: str,
) -> List[Any]:
    """Per-feature semantic stored in the feature table body."""
    if not isinstance(value, BinaryBodyReference):
        raise UnsupportedSemantic(f"{semantic} must reference the binary body, got {value!r}")
    return read_binary_values(body, value, count, component_type, property_type)
