"""
Public API for the pydrdf package.

Most users will interact with:

* :class:`RdfRecord` and :func:`rdf_property` to declare record types.
* :class:`PersistenceEngine` bound to a :class:`Repository` to save,
  destroy, reload and find records.
* The query compiler and datatype helpers when integrating with another
  statement store or custom datatypes.
"""

from .data_type import (
    JsonStringDatatype,
    NpArrayNdDatatype,
    CUSTOM_DATA_TYPES,
    CUSTOM_DATATYPE_TABLE,
    XSD_NATIVE_TABLE,
    DatatypeParserError,
    datatype_of,
    to_literal,
    from_literal,
    register_datatype_wrapper,
    get_datatype_parser,
)
from .field_type import (
    FieldTypeCategory,
    identify_field_type_category,
    validate_record_class,
)
from .schema import (
    IDENTITY_ATTRIBUTE,
    Attribute,
    RdfRecord,
    RecordSchema,
    SchemaError,
    SchemaRegistry,
    rdf_property,
    schema_of,
)
from .query import (
    compile_find,
    compile_exists,
    compile_count,
)
from .persistence import (
    PersistenceEngine,
    RecordCursor,
    generate_fragment,
)
from .store import (
    Repository,
    RepositoryConfig,
    Statement,
    StatementStore,
)
from .version import __version__ as __version__

__all__ = [
    # data_type
    "JsonStringDatatype",
    "NpArrayNdDatatype",
    "CUSTOM_DATA_TYPES",
    "CUSTOM_DATATYPE_TABLE",
    "XSD_NATIVE_TABLE",
    "DatatypeParserError",
    "datatype_of",
    "to_literal",
    "from_literal",
    "register_datatype_wrapper",
    "get_datatype_parser",
    # field_type
    "FieldTypeCategory",
    "identify_field_type_category",
    "validate_record_class",
    # schema
    "IDENTITY_ATTRIBUTE",
    "Attribute",
    "RdfRecord",
    "RecordSchema",
    "SchemaError",
    "SchemaRegistry",
    "rdf_property",
    "schema_of",
    # query
    "compile_find",
    "compile_exists",
    "compile_count",
    # persistence
    "PersistenceEngine",
    "RecordCursor",
    "generate_fragment",
    # store
    "Repository",
    "RepositoryConfig",
    "Statement",
    "StatementStore",
    # version
    "__version__",
]
