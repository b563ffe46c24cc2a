import base64
import datetime
import decimal
import enum
import io
import json
from typing import Any, Callable, Final, Optional

import numpy as np
from loguru import logger
from rdflib import Literal, URIRef, XSD
from rdflib.term import Node, bind

"""
pydrdf.data_type
================
Type coercion between native Python values and typed RDF literals.

---------------------------------------------------------------------------
Coercion rationale
---------------------------------------------------------------------------
Every attribute of a record type declares an XML Schema datatype (or a
pydrdf custom datatype). Values cross the store boundary in two
directions:

• **Store phase** – :func:`to_literal` turns a native value into an
  :class:`rdflib.Literal` tagged with the *declared* datatype. A value
  whose natural datatype already matches is passed through; anything
  else is re-parsed from its string form. If the lexical form is
  ill-typed for the declared datatype the coercion yields ``None``:
  the value is *unrepresentable* and callers skip it instead of writing
  a corrupt literal.

• **Load phase** – :func:`from_literal` looks up the native wrapper
  registered for the declared datatype in :data:`DATATYPE_WRAPPERS`
  and rebuilds the Python value. Datatypes with no wrapper return the
  raw value unchanged. Record types register themselves here too (see
  :mod:`pydrdf.schema`), so a reference URI comes back as a record stub.

Namespace choice
----------------
Custom datatypes are minted in ``http://pydrdf.org/dtype#`` rather than
under the XML Schema namespace, keeping the extension clearly separate
from standard XSD datatypes.
"""

_PYDRDF_DTYPE_NS: Final[str] = "http://pydrdf.org/dtype#"


class DatatypeParserError(LookupError):
    """Raised when no parser is registered for a given custom datatype."""


def _bytes_to_b64(b: bytes) -> str:
    """Encode *bytes* to URL-safe Base64 without copying the buffer."""
    return base64.urlsafe_b64encode(memoryview(b)).decode()


def _b64_to_bytes(s: str) -> bytes:
    return base64.urlsafe_b64decode(s)


def _ndarray_to_bytes(arr: np.ndarray) -> bytes:
    """Compress an n-D array with ``np.savez_compressed``."""
    buf = io.BytesIO()
    np.savez_compressed(buf, arr=arr)
    return buf.getvalue()


def _bytes_to_ndarray(b: bytes) -> np.ndarray:
    with np.load(io.BytesIO(b), allow_pickle=False) as data:
        return data["arr"].copy()


# ──────────────────────────────────────────────────────────────────────────
# Custom Datatype: JSON string
# ──────────────────────────────────────────────────────────────────────────


class JsonStringDatatype:
    """
    Wraps an arbitrary JSON-serialisable Python object.

    Stored as an RDF literal with datatype IRI
    ``http://pydrdf.org/dtype#JsonString``. Used for ``Dict[str, x]``
    attributes, which are opaque blobs rather than multi-valued
    properties.
    """

    __slots__ = ("val",)
    iri: Final[URIRef] = URIRef(f"{_PYDRDF_DTYPE_NS}JsonString")

    def __init__(self, val):
        self.val = val


def _json_string_datatype_parser(s: str) -> JsonStringDatatype:
    return JsonStringDatatype(val=json.loads(s))


def _json_string_datatype_unparser(j: JsonStringDatatype) -> str:
    return json.dumps(j.val, sort_keys=True)


# ──────────────────────────────────────────────────────────────────────────
# Custom Datatype: n-D NumPy array
# ──────────────────────────────────────────────────────────────────────────


class NpArrayNdDatatype:
    """NumPy array of any dimensionality, stored compressed and Base64 encoded."""

    __slots__ = ("val",)
    iri: Final[URIRef] = URIRef(f"{_PYDRDF_DTYPE_NS}NpArrayNd")

    def __init__(self, val):
        self.val = val


def _np_array_nd_datatype_parser(s: str) -> NpArrayNdDatatype:
    return NpArrayNdDatatype(val=_bytes_to_ndarray(_b64_to_bytes(s)))


def _np_array_nd_datatype_unparser(j: NpArrayNdDatatype) -> str:
    return _bytes_to_b64(_ndarray_to_bytes(np.asarray(j.val)))


CUSTOM_DATA_TYPES = (
    JsonStringDatatype,
    NpArrayNdDatatype,
)

# Build parser lookup dict (avoids chained if/elif)
_PARSERS: dict[type, Callable[[str], Any]] = {
    JsonStringDatatype: _json_string_datatype_parser,
    NpArrayNdDatatype: _np_array_nd_datatype_parser,
}

_UNPARSERS: dict[type, Callable[[Any], str]] = {
    JsonStringDatatype: _json_string_datatype_unparser,
    NpArrayNdDatatype: _np_array_nd_datatype_unparser,
}

# Teach rdflib how to lexicalise and parse the custom datatypes, so
# ``Literal(JsonStringDatatype(...))`` carries the right datatype IRI and
# ill-formed lexical forms are flagged as ``ill_typed``.
for _dt_cls in CUSTOM_DATA_TYPES:
    bind(
        datatype=_dt_cls.iri,
        pythontype=_dt_cls,
        constructor=_PARSERS[_dt_cls],
        lexicalizer=_UNPARSERS[_dt_cls],
    )

CUSTOM_DATATYPE_TABLE: dict[URIRef, type] = {dt.iri: dt for dt in CUSTOM_DATA_TYPES}


def get_datatype_parser(datatype: type) -> Callable[[str], Any]:
    """
    Return the registered *parser* for a custom datatype class.

    Raises
    ------
    DatatypeParserError
        If no parser is registered for ``datatype``.
    """
    try:
        return _PARSERS[datatype]
    except KeyError as exc:
        raise DatatypeParserError(
            f"No parser registered for datatype {datatype!r}"
        ) from exc


# ──────────────────────────────────────────────────────────────────────────
# XML Schema tables
# ──────────────────────────────────────────────────────────────────────────

XSD_NATIVE_TABLE: dict[URIRef, type] = {
    XSD.string: str,
    XSD.integer: int,
    XSD.int: int,
    XSD.long: int,
    XSD.double: float,
    XSD.float: float,
    XSD.decimal: decimal.Decimal,
    XSD.boolean: bool,
    XSD.dateTime: datetime.datetime,
    XSD.date: datetime.date,
}

# Default datatype for an attribute annotated with a plain Python type.
PYTHON_DEFAULT_DATATYPES: dict[type, URIRef] = {
    str: XSD.string,
    int: XSD.integer,
    float: XSD.double,
    bool: XSD.boolean,
    decimal.Decimal: XSD.decimal,
    datetime.datetime: XSD.dateTime,
    datetime.date: XSD.date,
}


# ──────────────────────────────────────────────────────────────────────────
# Native wrapper registry
# ──────────────────────────────────────────────────────────────────────────

DATATYPE_WRAPPERS: dict[URIRef, Callable[[Any], Any]] = {}


def register_datatype_wrapper(datatype: str, wrapper: Callable[[Any], Any]) -> None:
    """
    Register the callable that rebuilds native values stored under
    ``datatype``. Re-registering a datatype replaces the previous wrapper.
    """
    DATATYPE_WRAPPERS[URIRef(datatype)] = wrapper


def get_datatype_wrapper(datatype: Optional[str]) -> Optional[Callable[[Any], Any]]:
    if datatype is None:
        return None
    return DATATYPE_WRAPPERS.get(URIRef(datatype))


def _xsd_wrapper(datatype: URIRef) -> Callable[[Any], Any]:
    def _wrap(value: Any) -> Any:
        return Literal(str(value), datatype=datatype).toPython()

    return _wrap


def _custom_wrapper(dt_cls: type) -> Callable[[Any], Any]:
    parser = get_datatype_parser(dt_cls)

    def _wrap(value: Any) -> Any:
        return parser(str(value)).val

    return _wrap


for _xsd_dt in XSD_NATIVE_TABLE:
    register_datatype_wrapper(_xsd_dt, _xsd_wrapper(_xsd_dt))
for _dt_iri, _dt_cls in CUSTOM_DATATYPE_TABLE.items():
    register_datatype_wrapper(_dt_iri, _custom_wrapper(_dt_cls))


# ──────────────────────────────────────────────────────────────────────────
# Coercion
# ──────────────────────────────────────────────────────────────────────────


def datatype_of(value: Any) -> Optional[URIRef]:
    """
    Return the natural datatype of ``value``, or ``None`` when the value
    has no natural RDF datatype (e.g. a ``dict``).
    """
    if isinstance(value, Literal):
        if value.datatype is not None:
            return value.datatype
        return None if value.language else XSD.string
    if isinstance(value, CUSTOM_DATA_TYPES):
        return value.iri
    if isinstance(value, str):
        return XSD.string
    return Literal(value).datatype


def to_literal(value: Any, datatype: Optional[str]) -> Optional[Literal]:
    """
    Coerce ``value`` into a literal of the declared ``datatype``.

    Returns ``None`` when the value cannot be represented faithfully.
    """
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        value = value.value
    if datatype is None:
        return value if isinstance(value, Literal) else Literal(value)
    datatype = URIRef(datatype)

    dt_cls = CUSTOM_DATATYPE_TABLE.get(datatype)
    if dt_cls is not None and not isinstance(value, (dt_cls, Literal)):
        value = dt_cls(value)

    if datatype_of(value) == datatype:
        if isinstance(value, Literal):
            return _canonical(value)
        return _canonical(Literal(value, datatype=datatype))

    lexical = str(value)
    candidate = Literal(lexical, datatype=datatype)
    if candidate.ill_typed:
        logger.debug("'{}' is not a valid lexical form for {}", lexical, datatype)
        return None
    return _canonical(candidate)


def _canonical(literal: Literal) -> Literal:
    # rdflib keeps a decimal's trailing zeros, so 1.5 and 1.50 would not match
    if literal.datatype == XSD.decimal and isinstance(literal.value, decimal.Decimal):
        return Literal(format(literal.value.normalize(), "f"), datatype=XSD.decimal)
    return literal


def from_literal(value: Any, datatype: Optional[str]) -> Any:
    """
    Rebuild a native value from a stored literal (or reference) value.

    ``value`` is the lexical form of a literal or a URI reference; the
    raw value is returned unchanged when ``datatype`` has no registered
    wrapper.
    """
    wrapper = get_datatype_wrapper(datatype)
    if wrapper is None:
        return value
    return wrapper(value)


def node_value(node: Node) -> Any:
    """Return what :func:`from_literal` expects for a stored object node."""
    if isinstance(node, Literal):
        return str(node)
    return node
