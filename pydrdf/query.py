"""
pydrdf.query
============

Compile finder conditions into SPARQL query strings.

Every query shares one graph-pattern body::

    ?subject rdf:type <TypeURI> . <condition patterns>

* An ordinary attribute condition adds ``?subject <predicate> <node>``.
* The reserved ``id`` condition adds ``<base#id> rdf:type <TypeURI>``:
  the concrete subject (not ``?subject``) must carry the type.
* A collection value adds one pattern per element, all sharing
  ``?subject``, so the subject must match *every* listed value
  (intersection, not union).

Patterns are emitted in sorted attribute-name order so that the same
record type and condition set always compile to the same string. Only
conjunctive triple patterns are produced: no UNION, OPTIONAL or FILTER.
"""

from typing import Any, List, Mapping, Optional

from rdflib import Literal, URIRef
from rdflib.namespace import RDF
from rdflib.term import Node

from .data_type import to_literal
from .schema import IDENTITY_ATTRIBUTE, Attribute, RdfRecord, RecordSchema

SUBJECT_VAR = "?subject"
COUNT_VAR = "count"

Conditions = Mapping[str, Any]


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def value_to_node(value: Any, attribute: Attribute) -> Node:
    """
    Render a condition value as an RDF node for ``attribute``.

    Records become their subject URI; literals are coerced to the
    attribute's datatype, falling back to the value's natural datatype
    when the coercion fails (such a pattern simply matches nothing).
    """
    if isinstance(value, RdfRecord):
        if value.subject is None:
            raise ValueError(
                f"Cannot query '{attribute.name}' by an unsaved {type(value).__name__}"
            )
        return value.subject
    if isinstance(value, URIRef):
        return value
    literal = to_literal(value, attribute.datatype)
    if literal is None:
        literal = Literal(value)
    return literal


def resource_definition(schema: RecordSchema) -> str:
    return " ".join((SUBJECT_VAR, RDF.type.n3(), schema.rdf_type.n3()))


def _condition_patterns(schema: RecordSchema, name: str, value: Any) -> List[str]:
    if _is_collection(value):
        patterns: List[str] = []
        for item in value:
            patterns.extend(_condition_patterns(schema, name, item))
        if isinstance(value, (set, frozenset)):
            patterns.sort()
        return patterns

    if name == IDENTITY_ATTRIBUTE:
        subject = schema.subject_for(str(value))
        return [" ".join((subject.n3(), RDF.type.n3(), schema.rdf_type.n3()))]

    attribute = schema.attribute(name)
    node = value_to_node(value, attribute)
    return [" ".join((SUBJECT_VAR, attribute.predicate.n3(), node.n3()))]


def attributes_to_graph_pattern(schema: RecordSchema, conditions: Conditions) -> str:
    """Join the patterns of every condition with ``" . "``."""
    patterns: List[str] = []
    for name in sorted(conditions):
        patterns.extend(_condition_patterns(schema, name, conditions[name]))
    return " . ".join(patterns)


def graph_pattern(schema: RecordSchema, conditions: Optional[Conditions] = None) -> str:
    body = resource_definition(schema)
    pattern = attributes_to_graph_pattern(schema, conditions or {})
    if pattern:
        body = f"{body} . {pattern}"
    return body


def compile_find(
    schema: RecordSchema,
    conditions: Optional[Conditions] = None,
    limit: Optional[int] = None,
) -> str:
    q = f"SELECT {SUBJECT_VAR} WHERE {{ {graph_pattern(schema, conditions)} }}"
    if limit is not None:
        q += f" LIMIT {int(limit)}"
    return q


def compile_exists(schema: RecordSchema, conditions: Optional[Conditions] = None) -> str:
    return f"ASK {{ {graph_pattern(schema, conditions)} }}"


def compile_count(schema: RecordSchema, conditions: Optional[Conditions] = None) -> str:
    """
    Aggregate query; execute it with
    :data:`pydrdf.store.settings.AGGREGATE_QUERY_LANGUAGE`.
    """
    return (
        f"SELECT (COUNT({SUBJECT_VAR}) AS ?{COUNT_VAR}) "
        f"WHERE {{ {graph_pattern(schema, conditions)} }}"
    )
