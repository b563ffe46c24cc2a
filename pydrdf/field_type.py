import datetime
import decimal
import enum
import inspect
from typing import Any, Dict, List, Optional, Set, Type, TypeAlias, get_args, get_origin

import pydantic_numpy.typing as pnd
import strenum
from pydantic import BaseModel
from pydantic.fields import FieldInfo
from rdflib import URIRef, XSD

from .data_type import (
    JsonStringDatatype,
    NpArrayNdDatatype,
    PYTHON_DEFAULT_DATATYPES,
)

"""
pydrdf.field_type
=================
Utility helpers that map a *Python type annotation* (on a record field)
to a restricted enumeration :class:`FieldTypeCategory`. The category
decides the attribute's cardinality (single vs. collection), whether it
references another record, and the default datatype of its literals.

Supported annotation shapes
---------------------------

* Single values use ``typing.Optional[T]`` with a ``None`` default.
* Collections use the non-optional ``List[T]`` or ``Set[T]`` forms with
  an empty default; each element becomes its own triple and duplicates
  collapse in the store.
* ``Dict[str, x]`` fields are opaque JSON blobs stored as one literal.
* Every field must have a default, so that a record can be built from
  whatever subset of attributes the store holds.
"""

FieldInfoT: TypeAlias = FieldInfo
InnerType: TypeAlias = type

RESERVED_FIELD_NAMES = frozenset({"id", "subject"})

PYTHON_LITERAL_CLASSES = (
    str,
    float,
    int,
    bool,
    decimal.Decimal,
)
PND_ANNOTATIONS = frozenset(
    getattr(pnd, name) for name in dir(pnd) if not name.startswith("_")
)
COLLECTION_ORIGINS = (list, List, set, Set)


def is_record_class(value: Any) -> bool:
    # Imported lazily: schema imports this module.
    from .schema import RdfRecord

    return inspect.isclass(value) and issubclass(value, RdfRecord)


def is_optional(field_info: FieldInfoT) -> bool:
    """Return ``True`` if the annotation is a union containing ``NoneType``."""
    args = get_args(field_info.annotation)
    return any(arg is type(None) for arg in args)


def get_inner_type(field_info: FieldInfoT) -> InnerType:
    """
    Extract the "inner" type of ``Optional[T]``, ``List[T]`` or ``Set[T]``.

    Anything more complex (e.g. ``Dict[str, Any]``) returns the original
    annotation.
    """
    annotation = field_info.annotation
    args = get_args(annotation)

    if not args:
        raise AssertionError(f"Cannot extract inner type from {annotation}")

    if any(arg is type(None) for arg in args):
        non_none_types = [arg for arg in args if arg is not type(None)]
        if len(non_none_types) == 1:
            return non_none_types[0]
        raise AssertionError(f"Unexpected union in {annotation}")

    if len(args) == 1:
        return args[0]

    assert annotation is not None
    return annotation


class FieldTypeCategory(enum.StrEnum):
    """
    Allowed field types in pydrdf. Docstrings read:
        <field type = default>. <cardinality>. <default datatype>
    """

    OPTIONAL_PY_LITERAL = "OPTIONAL_PY_LITERAL"
    """
    Optional[x] = None, x = str, int, float, bool, Decimal. single. [xsd for x]
    """

    OPTIONAL_STR_ENUM = "OPTIONAL_STR_ENUM"
    """Optional[x] = None, x = StrEnum. single. [xsd:string]"""

    OPTIONAL_INT_ENUM = "OPTIONAL_INT_ENUM"
    """Optional[x] = None, x = IntEnum. single. [xsd:integer]"""

    OPTIONAL_DATETIME = "OPTIONAL_DATETIME"
    """Optional[x] = None, x = datetime or date. single. [xsd:dateTime / xsd:date]"""

    OPTIONAL_NPND_ARRAY = "OPTIONAL_NPND_ARRAY"
    """Optional[x] = None, x = pydantic-numpy array. single. [NpArrayNdDatatype]"""

    OPTIONAL_RECORD = "OPTIONAL_RECORD"
    """
    Optional[record_class] = None. single. [record_class rdf type]

    - The object of the triple is the related record's subject URI.
    """

    LIST_PY_LITERAL = "LIST_PY_LITERAL"
    """
    List[x] / Set[x] = empty, x = literal or enum. collection. [xsd for x]
    """

    LIST_RECORD = "LIST_RECORD"
    """List[record_class] / Set[record_class] = empty. collection. [record_class rdf type]"""

    PY_JSON = "PY_JSON"
    """
    Dict[str, x] = {}, x = JSON serializable object. single. [JsonStringDatatype]
    """

    RESERVED = "RESERVED"
    """Reserved names: ``id`` (identity condition) and ``subject``."""


def _is_literal_type(inner_type: Any) -> bool:
    if inner_type in PYTHON_LITERAL_CLASSES or inner_type in (
        datetime.datetime,
        datetime.date,
    ):
        return True
    return isinstance(inner_type, type) and issubclass(inner_type, enum.Enum)


def _enum_category(inner_type: type) -> FieldTypeCategory:
    if issubclass(inner_type, enum.StrEnum) or issubclass(inner_type, strenum.StrEnum):
        return FieldTypeCategory.OPTIONAL_STR_ENUM
    elif issubclass(inner_type, enum.IntEnum):
        return FieldTypeCategory.OPTIONAL_INT_ENUM
    raise TypeError(
        f"Enum type {inner_type} is not supported (only StrEnum and IntEnum)."
    )


def identify_field_type_category(
    field_info: FieldInfo, field_name: str | None = None
) -> FieldTypeCategory:
    """
    Map a Pydantic :class:`FieldInfo` to a :class:`FieldTypeCategory`.

    Raises
    ------
    TypeError
        If the annotation does not fall into one of the supported
        categories described in the module docstring.
    """
    if field_name and field_name in RESERVED_FIELD_NAMES:
        return FieldTypeCategory.RESERVED

    if is_optional(field_info):
        inner_type = get_inner_type(field_info)
        if is_record_class(inner_type):
            return FieldTypeCategory.OPTIONAL_RECORD
        elif inner_type in PYTHON_LITERAL_CLASSES:
            return FieldTypeCategory.OPTIONAL_PY_LITERAL
        elif inner_type in (datetime.datetime, datetime.date):
            return FieldTypeCategory.OPTIONAL_DATETIME
        elif inner_type in PND_ANNOTATIONS:
            return FieldTypeCategory.OPTIONAL_NPND_ARRAY
        elif isinstance(inner_type, type) and issubclass(inner_type, enum.Enum):
            return _enum_category(inner_type)
        else:
            raise TypeError(f"An optional type that is not allowed: {field_info}!")
    elif get_origin(field_info.annotation) in COLLECTION_ORIGINS:
        inner_type = get_inner_type(field_info)
        if is_record_class(inner_type):
            return FieldTypeCategory.LIST_RECORD
        elif _is_literal_type(inner_type):
            if isinstance(inner_type, type) and issubclass(inner_type, enum.Enum):
                _enum_category(inner_type)
            return FieldTypeCategory.LIST_PY_LITERAL
        raise TypeError(f"A collection element type that is not allowed: {field_info}!")
    elif get_origin(field_info.annotation) in (dict, Dict):
        key_type, value_type = get_args(field_info.annotation)
        assert key_type is str, "Dict key must be a str"
        return FieldTypeCategory.PY_JSON
    raise TypeError(f"A field type that is not allowed: {field_info}!")


def is_collection_category(category: FieldTypeCategory) -> bool:
    return category in (FieldTypeCategory.LIST_PY_LITERAL, FieldTypeCategory.LIST_RECORD)


def default_datatype(
    field_info: FieldInfo, category: FieldTypeCategory
) -> Optional[URIRef]:
    """
    Return the datatype implied by a field annotation.

    Record references return ``None``; their datatype is the related
    record's RDF type and is resolved by :mod:`pydrdf.schema`.
    """
    if category in (FieldTypeCategory.OPTIONAL_RECORD, FieldTypeCategory.LIST_RECORD):
        return None
    if category == FieldTypeCategory.PY_JSON:
        return JsonStringDatatype.iri
    if category == FieldTypeCategory.OPTIONAL_NPND_ARRAY:
        return NpArrayNdDatatype.iri

    inner_type = get_inner_type(field_info)
    if isinstance(inner_type, type) and issubclass(inner_type, enum.Enum):
        if issubclass(inner_type, enum.IntEnum):
            return XSD.integer
        return XSD.string
    # bool is a subclass of int, so look up the exact type
    return PYTHON_DEFAULT_DATATYPES[inner_type]


def validate_record_class(record_class: Type[BaseModel]) -> None:
    """
    Validate that *every* field in ``record_class`` is allowed.

    Raises
    ------
    TypeError
        If any field annotation violates :class:`FieldTypeCategory`, uses
        a reserved name, or has no default.
    """
    for field_name, field_info in record_class.model_fields.items():
        if field_name in RESERVED_FIELD_NAMES:
            raise TypeError(
                f"Field name '{field_name}' is reserved on {record_class.__name__}"
            )
        if field_info.is_required():
            raise TypeError(
                f"Field '{field_name}' on {record_class.__name__} must have a default"
            )
        identify_field_type_category(field_info, field_name)
