import threading
from typing import Any, ClassVar, Dict, Iterator, Optional, Tuple, Type, TypeVar, cast
from urllib.parse import urldefrag

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from rdflib import URIRef

from .data_type import register_datatype_wrapper
from .field_type import (
    FieldTypeCategory,
    default_datatype,
    get_inner_type,
    identify_field_type_category,
    is_collection_category,
    validate_record_class,
)

"""
pydrdf.schema
=============
Schema registry and the record base class.

* :class:`RdfRecord` – Pydantic base for every record type. It carries
  only *data* (attribute values, subject, dirty set, destroyed flag);
  persistence behaviour lives in :class:`pydrdf.persistence.PersistenceEngine`.
* :func:`rdf_property` – declares an attribute's predicate and datatype.
* :class:`RecordSchema` / :class:`Attribute` – the static table built
  once per record type and never mutated afterwards.
* :class:`SchemaRegistry` – process-wide cache of those tables plus the
  RDF type → record class lookup.
"""

IDENTITY_ATTRIBUTE = "id"

_RDF_PREDICATE_KEY = "rdf_predicate"
_RDF_DATATYPE_KEY = "rdf_datatype"


class SchemaError(LookupError):
    """Raised for undeclared attributes or an invalid record declaration."""


def rdf_property(
    predicate: Optional[str] = None,
    datatype: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """
    Declare a record attribute backed by ``predicate``.

    ``datatype`` overrides the datatype implied by the annotation. Any
    other keyword (``default``, ``default_factory``, ``description``...)
    is passed to :func:`pydantic.Field`.
    """
    extra: dict[str, Any] = {}
    if predicate is not None:
        extra[_RDF_PREDICATE_KEY] = str(predicate)
    if datatype is not None:
        extra[_RDF_DATATYPE_KEY] = str(datatype)
    if "default" not in kwargs and "default_factory" not in kwargs:
        kwargs["default"] = None
    return Field(json_schema_extra=extra, **kwargs)


class Attribute(BaseModel):
    """One row of a record type's attribute table."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    predicate: URIRef
    datatype: Optional[URIRef]
    collection: bool
    category: FieldTypeCategory
    record_class: Optional[type] = None

    @property
    def is_reference(self) -> bool:
        return self.record_class is not None


class RecordSchema(BaseModel):
    """
    Static description of a record type.

    ``types`` holds every RDF type the record declares itself an
    instance of (its own first, then inherited ones); ``rdf_type`` is the
    primary one used in query patterns.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    record_class: type
    rdf_type: URIRef
    types: Tuple[URIRef, ...]
    base_uri: str
    attributes: Dict[str, Attribute]

    def attribute(self, name: str) -> Attribute:
        try:
            return self.attributes[name]
        except KeyError as exc:
            raise SchemaError(
                f"'{name}' is not an attribute of {self.record_class.__name__}"
            ) from exc

    def subject_for(self, fragment: str) -> URIRef:
        return URIRef(f"{self.base_uri}#{fragment}")

    @staticmethod
    def fragment_of(subject: str) -> str:
        return urldefrag(str(subject)).fragment


# ──────────────────────────────────────────────────────────────────────
# RdfRecord
# ──────────────────────────────────────────────────────────────────────

R = TypeVar("R", bound="RdfRecord")


class RdfRecord(BaseModel):
    """
    Base class for every pydrdf record type.

    Class-level declarations
    ------------------------
    * ``__rdf_type__`` – the RDF type URI (or tuple of URIs) this record
      is an instance of. Types declared on parent record classes are
      inherited as ancestor types.
    * ``__base_uri__`` – base URI for generated subjects; defaults to the
      primary RDF type URI.
    * ``__rdf_vocab__`` – optional namespace; attributes without an
      explicit predicate map to ``<vocab><attribute name>``.

    Instance state
    --------------
    * ``subject`` – the record's URI, ``None`` until first saved.
    * ``changed`` – names of attributes assigned since the last
      load/save (the dirty set).
    * ``destroyed`` – terminal flag set by a successful destroy.
    """

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    __rdf_type__: ClassVar[str | Tuple[str, ...] | None] = None
    __base_uri__: ClassVar[Optional[str]] = None
    __rdf_vocab__: ClassVar[Optional[str]] = None

    _subject: Optional[URIRef] = PrivateAttr(default=None)
    _changed: set[str] = PrivateAttr(default_factory=set)
    _destroyed: bool = PrivateAttr(default=False)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        # Forward references to records declared later are checked when
        # the schema is first built instead.
        if cls.__pydantic_complete__:
            validate_record_class(cls)
        SchemaRegistry.register(cls)

    def model_post_init(self, __context: Any) -> None:
        self._changed = set(self.model_fields_set)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in type(self).model_fields:
            self._changed.add(name)
        super().__setattr__(name, value)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        return (
            isinstance(other, RdfRecord)
            and self._subject is not None
            and self._subject == other._subject
        )

    def __hash__(self) -> int:
        """
        Unsaved records hash by identity, saved ones by subject.

        The hash changes when ``save`` assigns a subject, so a new record
        put in a ``set`` (or used as a dict key) must be re-inserted after
        its first save.
        """
        if self._subject is None:
            return id(self)
        return hash(self._subject)

    def __repr_args__(self) -> Iterator[tuple[str | None, Any]]:
        yield "subject", self._subject
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, RdfRecord):
                value = value.subject
            elif isinstance(value, (list, set)):
                value = [v.subject if isinstance(v, RdfRecord) else v for v in value]
            yield name, value

    # ── identity ──────────────────────────────────────────────────────

    @property
    def subject(self) -> Optional[URIRef]:
        return self._subject

    @property
    def id(self) -> Optional[str]:
        """Fragment of the subject URI, ``None`` for an unsaved record."""
        if self._subject is None:
            return None
        return RecordSchema.fragment_of(self._subject)

    @property
    def changed(self) -> frozenset[str]:
        return frozenset(self._changed)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @classmethod
    def for_subject(cls: Type[R], subject: str) -> R:
        """Build a clean, unloaded record bound to ``subject``."""
        record = cls()
        record._subject = URIRef(subject)
        record._changed.clear()
        return record

    @classmethod
    def for_id(cls: Type[R], fragment: str) -> R:
        return cls.for_subject(schema_of(cls).subject_for(fragment))

    # ── state transitions used by the persistence engine ──────────────

    def mark_changed(self, name: str) -> None:
        """Flag ``name`` dirty, e.g. after mutating a collection in place."""
        schema_of(type(self)).attribute(name)
        self._changed.add(name)

    def _assign_subject(self, subject: URIRef) -> None:
        self._subject = subject

    def _mark_clean(self) -> None:
        self._changed.clear()

    def _mark_destroyed(self) -> None:
        self._destroyed = True
        self._changed.clear()

    def _load(self, data: Dict[str, Any]) -> None:
        """Replace attribute values with ``data`` and clear the dirty set."""
        validated = type(self).model_validate(data)
        for name in type(self).model_fields:
            self.__dict__[name] = validated.__dict__[name]
        self._changed.clear()


# ──────────────────────────────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────────────────────────────


def _as_type_tuple(declared: str | Tuple[str, ...] | None) -> Tuple[URIRef, ...]:
    if declared is None:
        return ()
    if isinstance(declared, str):
        return (URIRef(declared),)
    return tuple(URIRef(t) for t in declared)


class SchemaRegistry:
    """
    Process-wide registry of record types.

    * ``register`` is called for every :class:`RdfRecord` subclass at
      class creation. Classes declaring their own ``__rdf_type__`` become
      the native wrapper for that type in
      :data:`pydrdf.data_type.DATATYPE_WRAPPERS`.
    * ``schema_of`` builds the :class:`RecordSchema` on first use and
      caches it; later calls return the same object.
    """

    _lock = threading.Lock()
    _schemas: Dict[type, RecordSchema] = {}
    _classes_by_type: Dict[URIRef, type] = {}

    @classmethod
    def register(cls, record_class: Type[RdfRecord]) -> None:
        own_types = _as_type_tuple(record_class.__dict__.get("__rdf_type__"))
        with cls._lock:
            for rdf_type in own_types:
                cls._classes_by_type[rdf_type] = record_class
        for rdf_type in own_types:
            register_datatype_wrapper(rdf_type, record_class.for_subject)
            logger.debug("Registered record type {} → {}", rdf_type, record_class)

    @classmethod
    def record_class_for(cls, rdf_type: str) -> Optional[Type[RdfRecord]]:
        with cls._lock:
            return cls._classes_by_type.get(URIRef(rdf_type))

    @classmethod
    def schema_of(cls, record_class: Type[RdfRecord]) -> RecordSchema:
        with cls._lock:
            schema = cls._schemas.get(record_class)
        if schema is not None:
            return schema
        schema = cls._build(record_class)
        with cls._lock:
            return cls._schemas.setdefault(record_class, schema)

    @classmethod
    def clear_cache(cls) -> None:
        """
        Drop cached schemas; they are rebuilt on next use.

        Type → class registrations are kept since they are made once at
        class creation.
        """
        with cls._lock:
            cls._schemas.clear()

    @classmethod
    def _build(cls, record_class: Type[RdfRecord]) -> RecordSchema:
        if not (isinstance(record_class, type) and issubclass(record_class, RdfRecord)):
            raise SchemaError(f"{record_class!r} is not an RdfRecord subclass")
        if not record_class.__pydantic_complete__:
            record_class.model_rebuild()
        validate_record_class(record_class)

        types: list[URIRef] = []
        for klass in record_class.__mro__:
            if isinstance(klass, type) and issubclass(klass, RdfRecord):
                for t in _as_type_tuple(klass.__dict__.get("__rdf_type__")):
                    if t not in types:
                        types.append(t)
        primary = _as_type_tuple(record_class.__rdf_type__)
        if not primary:
            raise SchemaError(f"{record_class.__name__} declares no __rdf_type__")

        # subjects replace the base URI's fragment with the record id
        base_uri = urldefrag(record_class.__base_uri__ or str(primary[0])).url

        attributes: Dict[str, Attribute] = {}
        for name, field_info in record_class.model_fields.items():
            attributes[name] = cls._build_attribute(record_class, name, field_info)

        logger.debug(
            "Built schema for {}: type={} attributes={}",
            record_class.__name__,
            primary[0],
            list(attributes),
        )
        return RecordSchema(
            record_class=record_class,
            rdf_type=primary[0],
            types=tuple(types),
            base_uri=base_uri,
            attributes=attributes,
        )

    @classmethod
    def _build_attribute(
        cls, record_class: Type[RdfRecord], name: str, field_info: Any
    ) -> Attribute:
        extra = field_info.json_schema_extra
        extra = extra if isinstance(extra, dict) else {}
        category = identify_field_type_category(field_info, name)

        predicate = extra.get(_RDF_PREDICATE_KEY)
        if predicate is None:
            if not record_class.__rdf_vocab__:
                raise SchemaError(
                    f"No predicate for '{name}' on {record_class.__name__}; "
                    "use rdf_property(...) or declare __rdf_vocab__"
                )
            predicate = f"{record_class.__rdf_vocab__}{name}"

        related: Optional[type] = None
        if category in (FieldTypeCategory.OPTIONAL_RECORD, FieldTypeCategory.LIST_RECORD):
            related = get_inner_type(field_info)
            related_types = _as_type_tuple(cast(Any, related).__rdf_type__)
            if not related_types:
                raise SchemaError(
                    f"Related record {related.__name__} of '{name}' declares no __rdf_type__"
                )
            datatype: Optional[URIRef] = related_types[0]
        else:
            datatype = default_datatype(field_info, category)
        if _RDF_DATATYPE_KEY in extra:
            datatype = URIRef(extra[_RDF_DATATYPE_KEY])

        return Attribute(
            name=name,
            predicate=URIRef(predicate),
            datatype=datatype,
            collection=is_collection_category(category),
            category=category,
            record_class=related,
        )


def schema_of(record_class: Type[RdfRecord]) -> RecordSchema:
    """Return the (cached) schema of ``record_class``."""
    return SchemaRegistry.schema_of(record_class)
