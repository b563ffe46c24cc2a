"""
pydrdf.persistence
==================

Save, destroy, reload and find :class:`pydrdf.schema.RdfRecord`
instances through a statement store.

Lifecycle
---------

``NEW → PERSISTED → DESTROYED``. A record is *persisted* when it has a
subject and the store holds at least one ``(subject, rdf:type, *)``
statement for it. ``DESTROYED`` is terminal: ``save`` and ``destroy``
return ``False``.

Write policy
------------

Each attribute write deletes every ``(subject, predicate, *)`` statement
and then adds the new ones. The sequence is neither atomic nor rolled
back: store errors propagate as-is and leave whatever the earlier writes
produced. Values that cannot be coerced to the declared datatype are
skipped with a warning.

Cycles
------

Related records are saved before the statement pointing at them is
written. The chain of subjects currently being saved is threaded through
the recursion; a related record already in that chain (at minimum, the
parent that triggered the nested save) is skipped and counted as
success.
"""

from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
)
from uuid import uuid4

from loguru import logger
from rdflib import URIRef
from rdflib.namespace import RDF
from rdflib.term import Node

from .data_type import from_literal, node_value, to_literal
from .query import compile_count, compile_exists, compile_find
from .schema import Attribute, RdfRecord, RecordSchema, schema_of
from .store.repository import Statement, StatementStore
from .store.settings import AGGREGATE_QUERY_LANGUAGE

R = TypeVar("R", bound=RdfRecord)


def generate_fragment() -> str:
    return str(uuid4()).replace("-", "_")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, set, tuple, dict)):
        return len(value) == 0
    return False


class RecordCursor(Iterable[R]):
    """
    Lazy result of :meth:`PersistenceEngine.find_each`.

    Iterating runs the query; iterating again runs it again, so results
    are never cached.
    """

    def __init__(
        self,
        engine: "PersistenceEngine",
        record_class: Type[R],
        query: str,
    ):
        self._engine = engine
        self._record_class = record_class
        self.query = query

    def __iter__(self) -> Iterator[R]:
        return self._engine._iter_query(self._record_class, self.query)


class PersistenceEngine:
    """
    Persistence operations for every record type, bound to one store.

    Parameters
    ----------
    repository:
        The statement store (see :class:`pydrdf.store.StatementStore`).
    fragment_factory:
        Returns a fresh fragment for a new record's subject. Defaults to
        a UUID4 with underscores.
    """

    def __init__(
        self,
        repository: StatementStore,
        fragment_factory: Callable[[], str] = generate_fragment,
    ):
        self.repository = repository
        self.fragment_factory = fragment_factory

    # ── lifecycle predicates ─────────────────────────────────────────

    def is_persisted(self, record: RdfRecord) -> bool:
        return record.subject is not None and self.repository.statements.exists(
            subject=record.subject, predicate=RDF.type
        )

    def is_new_record(self, record: RdfRecord) -> bool:
        return not (record.destroyed or self.is_persisted(record))

    # ── save ─────────────────────────────────────────────────────────

    def save(self, record: RdfRecord) -> bool:
        """
        Write ``record`` to the store.

        New records get a subject and have every non-empty attribute
        written; persisted ones only their dirty attributes. Returns
        ``False`` on a destroyed record or when any write is refused; the
        dirty set is then left untouched.
        """
        return self._save(record, in_progress=())

    def _save(self, record: RdfRecord, in_progress: Tuple[URIRef, ...]) -> bool:
        if record.destroyed:
            logger.debug("Refusing to save destroyed record {}", record.subject)
            return False

        schema = schema_of(type(record))
        if record.subject is None:
            record._assign_subject(schema.subject_for(self.fragment_factory()))
            logger.debug("Generated subject {}", record.subject)

        subject = record.subject
        assert subject is not None
        in_progress = in_progress + (subject,)

        if self.is_new_record(record):
            names = [
                name
                for name in schema.attributes
                if not _is_blank(getattr(record, name))
            ]
        else:
            changed = record.changed
            names = [name for name in schema.attributes if name in changed]

        ok = all(
            self._store_attribute(record, schema.attribute(name), in_progress)
            for name in names
        ) and self._update_types(record, schema)

        if ok:
            record._mark_clean()
        return ok

    def _store_attribute(
        self,
        record: RdfRecord,
        attribute: Attribute,
        in_progress: Tuple[URIRef, ...],
    ) -> bool:
        statements = self.repository.statements
        subject = record.subject
        statements.delete_all(subject=subject, predicate=attribute.predicate)

        value = getattr(record, attribute.name)
        if value is None:
            return True

        items = value if attribute.collection else (value,)
        # dict keeps first-seen order while collapsing duplicates
        nodes: Dict[Node, None] = {}
        for item in items:
            if isinstance(item, RdfRecord):
                if not self._save_related(item, in_progress):
                    return False
                node: Optional[Node] = item.subject
            elif isinstance(item, URIRef):
                node = item
            else:
                node = to_literal(item, attribute.datatype)
                if node is None:
                    logger.warning(
                        "Skipping unrepresentable value {!r} of '{}' as {}",
                        item,
                        attribute.name,
                        attribute.datatype,
                    )
                    continue
            nodes[node] = None

        return all(
            statements.add(Statement(subject, attribute.predicate, node))
            for node in nodes
        )

    def _save_related(self, related: RdfRecord, in_progress: Tuple[URIRef, ...]) -> bool:
        if related.subject is not None and related.subject in in_progress:
            logger.debug(
                "Skipping cyclic save of {} (in progress: {})",
                related.subject,
                in_progress[-1],
            )
            return True
        if related.changed or self.is_new_record(related):
            return self._save(related, in_progress=in_progress)
        return True

    def _update_types(self, record: RdfRecord, schema: RecordSchema) -> bool:
        """Make the stored rdf:type set equal the declared type set."""
        statements = self.repository.statements
        missing = {
            Statement(record.subject, RDF.type, rdf_type): None for rdf_type in schema.types
        }
        deleting = []
        for statement in statements.all(subject=record.subject, predicate=RDF.type):
            if statement in missing:
                del missing[statement]
            else:
                deleting.append(statement)

        return all(statements.add(s) for s in missing) and all(
            statements.delete(s) for s in deleting
        )

    # ── destroy / reload ─────────────────────────────────────────────

    def destroy(self, record: RdfRecord) -> bool:
        """
        Delete every statement about a persisted record.

        Returns ``False`` (and changes nothing) for new or already
        destroyed records.
        """
        if record.destroyed or not self.is_persisted(record):
            return False
        removed = self.repository.statements.delete_all(subject=record.subject)
        record._mark_destroyed()
        logger.debug("Destroyed {} ({} statements)", record.subject, removed)
        return True

    def reload(self, record: R) -> R:
        """
        Re-read every attribute from the store, discarding local values
        and the dirty set. Records without a subject get defaults.
        """
        schema = schema_of(type(record))
        data = {
            name: self._retrieve_attribute(record, attribute)
            for name, attribute in schema.attributes.items()
        }
        record._load(data)
        return record

    def _retrieve_attribute(self, record: RdfRecord, attribute: Attribute) -> Any:
        statements = self.repository.statements
        if attribute.collection:
            if record.subject is None:
                return []
            return [
                from_literal(node_value(s.object), attribute.datatype)
                for s in statements.all(subject=record.subject, predicate=attribute.predicate)
            ]
        if record.subject is None:
            return None
        statement = statements.first(subject=record.subject, predicate=attribute.predicate)
        if statement is None:
            return None
        return from_literal(node_value(statement.object), attribute.datatype)

    # ── class-level operations ───────────────────────────────────────

    def create(self, record_class: Type[R], **attributes: Any) -> R:
        """Build and save a record; check :meth:`is_persisted` for the outcome."""
        record = record_class(**attributes)
        self.save(record)
        return record

    def find_each(
        self,
        record_class: Type[R],
        conditions: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        callback: Optional[Callable[[R], Any]] = None,
    ) -> Optional[RecordCursor[R]]:
        """
        Find records of ``record_class`` matching ``conditions``.

        With ``callback`` every loaded record is passed to it and
        ``None`` is returned; without it a :class:`RecordCursor` is
        returned for pull-based iteration.
        """
        q = compile_find(schema_of(record_class), conditions, limit=limit)
        cursor = RecordCursor(self, record_class, q)
        if callback is None:
            return cursor
        for record in cursor:
            callback(record)
        return None

    def _iter_query(self, record_class: Type[R], q: str) -> Iterator[R]:
        subjects = [row["subject"] for row in self.repository.query(q)]
        for subject in subjects:
            yield self.reload(record_class.for_subject(subject))

    def first(
        self,
        record_class: Type[R],
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> Optional[R]:
        cursor = self.find_each(record_class, conditions, limit=1)
        assert cursor is not None
        return next(iter(cursor), None)

    def find(self, record_class: Type[R], record_id: str) -> Optional[R]:
        """Load the record whose subject fragment is ``record_id``, if persisted."""
        record = record_class.for_id(record_id)
        if not self.is_persisted(record):
            return None
        return self.reload(record)

    def exists(
        self,
        record_class: Type[R],
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        result = self.repository.query(compile_exists(schema_of(record_class), conditions))
        return bool(result.askAnswer)

    def count(
        self,
        record_class: Type[R],
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> int:
        q = compile_count(schema_of(record_class), conditions)
        rows = list(self.repository.query(q, language=AGGREGATE_QUERY_LANGUAGE))
        if not rows or rows[0]["count"] is None:
            return 0
        return int(rows[0]["count"].toPython())

    def destroy_all(self, record_class: Type[R]) -> int:
        """
        Delete every statement of every subject typed as
        ``record_class``'s RDF type, ignoring in-memory record state.
        Returns the number of subjects removed.
        """
        schema = schema_of(record_class)
        statements = self.repository.statements
        subjects = {
            s.subject for s in statements.all(predicate=RDF.type, obj=schema.rdf_type)
        }
        for subject in subjects:
            statements.delete_all(subject=subject)
        logger.debug("Destroyed {} subjects of type {}", len(subjects), schema.rdf_type)
        return len(subjects)
