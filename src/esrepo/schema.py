"""
esrepo Schema
=============

Declared document schemas and the codec that turns documents into
``_source`` bodies and back.

A schema is a list of :class:`FieldDescriptor`. Text fields flagged as
``keyword`` get a ``keyword`` sub-field, which makes them filterable and
aggregatable as ``<name>.keyword``:

    schema = DocumentSchema([
        FieldDescriptor("name", "text", keyword=True),
        FieldDescriptor("age", "integer"),
        FieldDescriptor("city", "text", keyword=True),
    ])
"""

import dataclasses
import datetime as dt
import enum
import logging
from dataclasses import dataclass
from typing import (
    Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, Type,
    TypeVar, get_args, get_origin, get_type_hints
)

from .exceptions import MappingError, SerializationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

FIELD_TYPES = {
    "text", "keyword", "integer", "long", "short", "byte", "float",
    "double", "half_float", "scaled_float", "boolean", "date", "object",
    "nested", "ip", "geo_point",
}

# Python annotation -> mapping type
PYTHON_TYPES = {
    str: "text",
    int: "integer",
    float: "float",
    bool: "boolean",
    dt.datetime: "date",
    dt.date: "date",
    dict: "object",
}

KEYWORD_SUBFIELD = {"type": "keyword", "ignore_above": 256}


@dataclass(frozen=True)
class FieldDescriptor:
    """One declared document field."""

    name: str
    type: str = "text"
    keyword: bool = False

    def mapping(self) -> Dict[str, Any]:
        if self.type not in FIELD_TYPES:
            raise MappingError(
                f"Unsupported type {self.type!r} for field {self.name!r}"
            )
        body: Dict[str, Any] = {"type": self.type}
        if self.keyword and self.type == "text":
            body["fields"] = {"keyword": dict(KEYWORD_SUBFIELD)}
        return body


def _encode_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc).isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _encode_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_encode_value(v) for v in value]
    return value


def encode_document(doc: Any) -> Dict[str, Any]:
    """
    Default encoder: dataclasses and dicts become ``_source`` dicts.

    ``None`` values are dropped, enums are written by name and datetimes
    as ISO-8601 in UTC.
    """
    if dataclasses.is_dataclass(doc) and not isinstance(doc, type):
        raw = {f.name: getattr(doc, f.name) for f in dataclasses.fields(doc)}
    elif isinstance(doc, dict):
        raw = doc
    else:
        raise TypeError(f"Cannot encode {type(doc).__name__}")
    return {k: _encode_value(v) for k, v in raw.items() if v is not None}


def _decode_value(value: Any, hint: Any) -> Any:
    if value is None:
        return None
    if isinstance(hint, type):
        if issubclass(hint, enum.Enum):
            return hint[value]
        if hint is dt.datetime and isinstance(value, str):
            return dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        if hint is dt.date and isinstance(value, str):
            return dt.date.fromisoformat(value[:10])
    return value


def decoder_for(cls: Type[T]) -> Callable[[Dict[str, Any]], T]:
    """Build a ``_source`` -> dataclass decoder for ``cls``."""
    hints = {k: _unwrap_optional(v) for k, v in get_type_hints(cls).items()}
    names = [f.name for f in dataclasses.fields(cls)]

    def decode(source: Dict[str, Any]) -> T:
        kwargs = {
            name: _decode_value(source[name], hints.get(name))
            for name in names
            if name in source
        }
        return cls(**kwargs)

    return decode


def _unwrap_optional(hint: Any) -> Any:
    args = getattr(hint, "__args__", None)
    if args and type(None) in args:
        rest = [a for a in args if a is not type(None)]
        if len(rest) == 1:
            return rest[0]
    return hint


def mapping_type(hint: Any) -> Optional[str]:
    """
    Mapping type for a field annotation, or None if there is none.

    Arrays take their element's type: ``List[int]`` maps to ``integer``.
    An untyped ``list`` maps to ``text``.
    """
    hint = _unwrap_optional(hint)
    if get_origin(hint) in (list, tuple, set, frozenset):
        args = [a for a in get_args(hint) if a is not Ellipsis]
        return mapping_type(args[0]) if args else "text"
    if hint in (list, tuple, set, frozenset):
        return "text"
    if isinstance(hint, type) and issubclass(hint, enum.Enum):
        return "keyword"
    return PYTHON_TYPES.get(hint)


class DocumentSchema(Generic[T]):
    """
    Field declarations plus a serializer/deserializer pair for documents of type T.

    Args:
        fields: Declared fields, used to derive the index mapping
        document_class: Dataclass the documents decode to (dicts if None)
        serializer: Custom ``T -> dict`` encoder
        deserializer: Custom ``dict -> T`` decoder
    """

    def __init__(
        self,
        fields: Iterable[FieldDescriptor],
        document_class: Optional[Type[T]] = None,
        serializer: Optional[Callable[[T], Dict[str, Any]]] = None,
        deserializer: Optional[Callable[[Dict[str, Any]], T]] = None
    ):
        self.fields: List[FieldDescriptor] = list(fields)
        self.document_class = document_class
        self._serializer = serializer or encode_document

        if deserializer is not None:
            self._deserializer = deserializer
        elif document_class is not None and dataclasses.is_dataclass(document_class):
            self._deserializer = decoder_for(document_class)
        else:
            self._deserializer = dict

    @classmethod
    def from_dataclass(
        cls,
        document_class: Type[T],
        keyword_fields: Sequence[str] = ()
    ) -> "DocumentSchema[T]":
        """
        Derive a schema from a dataclass' annotations.

        Args:
            document_class: Dataclass describing the document
            keyword_fields: Text fields that also get a ``keyword`` sub-field

        Returns:
            Schema bound to ``document_class``
        """
        if not dataclasses.is_dataclass(document_class):
            raise MappingError(f"{document_class!r} is not a dataclass")

        hints = get_type_hints(document_class)
        fields = []
        for f in dataclasses.fields(document_class):
            hint = hints.get(f.name, str)
            field_type = mapping_type(hint)
            if field_type is None:
                message = (
                    f"Cannot derive a mapping type for {document_class.__name__}.{f.name} ({hint!r})"
                )
                logger.error(message)
                raise MappingError(message)
            fields.append(FieldDescriptor(f.name, field_type, f.name in keyword_fields))

        return cls(fields, document_class=document_class)

    def mappings(self) -> Dict[str, Any]:
        """Index mapping derived from the declared fields."""
        names = [f.name for f in self.fields]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise MappingError(f"Duplicate field declarations: {sorted(duplicates)}")
        return {"properties": {f.name: f.mapping() for f in self.fields}}

    def source_fields(self) -> List[str]:
        return [f.name for f in self.fields]

    def serialize(self, doc: T) -> Dict[str, Any]:
        try:
            return self._serializer(doc)
        except (TypeError, ValueError, AttributeError) as e:
            message = f"Failed to serialize {type(doc).__name__}: {e}"
            logger.error(message)
            raise SerializationError(message) from e

    def deserialize(self, source: Dict[str, Any]) -> T:
        try:
            return self._deserializer(source)
        except (TypeError, ValueError, KeyError) as e:
            message = f"Failed to deserialize document: {e}"
            logger.error(f"{message}. Source: {source}")
            raise SerializationError(message) from e
