from typing import Any, Callable, Iterator, List, NamedTuple, Optional, Protocol

from loguru import logger
from rdflib import Graph, URIRef
from rdflib.query import Result
from rdflib.term import Node

from .settings import (
    DEFAULT_QUERY_LANGUAGE,
    RepositoryConfig,
    check_query_language,
)


class Statement(NamedTuple):
    """An immutable (subject, predicate, object) triple."""

    subject: Node
    predicate: Node
    object: Node


class StatementCollection:
    """
    Statement-level access to a graph.

    Pattern arguments (``subject``, ``predicate``, ``obj``) left as
    ``None`` are wildcards. Bulk operations materialise their matches
    before mutating so callers may delete while enumerating.
    """

    def __init__(self, graph: Graph):
        self._graph = graph

    def __iter__(self) -> Iterator[Statement]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._graph)

    def add(self, statement: Statement) -> bool:
        self._graph.add(tuple(statement))
        return True

    def delete(self, statement: Statement) -> bool:
        self._graph.remove(tuple(statement))
        return True

    def delete_all(
        self,
        subject: Optional[Node] = None,
        predicate: Optional[Node] = None,
        obj: Optional[Node] = None,
    ) -> int:
        """Remove every statement matching the pattern; return how many."""
        matches = self.all(subject=subject, predicate=predicate, obj=obj)
        for statement in matches:
            self._graph.remove(tuple(statement))
        return len(matches)

    def exists(
        self,
        subject: Optional[Node] = None,
        predicate: Optional[Node] = None,
        obj: Optional[Node] = None,
    ) -> bool:
        return (subject, predicate, obj) in self._graph

    def first(
        self,
        subject: Optional[Node] = None,
        predicate: Optional[Node] = None,
        obj: Optional[Node] = None,
    ) -> Optional[Statement]:
        for triple in self._graph.triples((subject, predicate, obj)):
            return Statement(*triple)
        return None

    def all(
        self,
        subject: Optional[Node] = None,
        predicate: Optional[Node] = None,
        obj: Optional[Node] = None,
    ) -> List[Statement]:
        return [
            Statement(*triple) for triple in self._graph.triples((subject, predicate, obj))
        ]

    def each(
        self,
        callback: Callable[[Statement], Any],
        subject: Optional[Node] = None,
        predicate: Optional[Node] = None,
        obj: Optional[Node] = None,
    ) -> None:
        for statement in self.all(subject=subject, predicate=predicate, obj=obj):
            callback(statement)


class StatementStore(Protocol):
    """What :class:`pydrdf.persistence.PersistenceEngine` needs from a store."""

    @property
    def statements(self) -> StatementCollection: ...

    def query(self, q: str, language: str = DEFAULT_QUERY_LANGUAGE) -> Result: ...


class Repository:
    """
    Statement repository backed by an :class:`rdflib.Graph`.

    Use:

    * :attr:`statements` for add / delete / pattern lookups.
    * :meth:`query` for SELECT / ASK queries; results are rdflib
      :class:`~rdflib.query.Result` objects (``row["subject"]`` for
      SELECT bindings, ``askAnswer`` for ASK).
    """

    def __init__(self, graph: Optional[Graph] = None):
        self.graph = graph if graph is not None else Graph()
        self._statements = StatementCollection(self.graph)

    @classmethod
    def from_config(cls, config: Optional[RepositoryConfig] = None) -> "Repository":
        """
        Open the store described by ``config`` (default: from environment).
        """
        config = config or RepositoryConfig.from_env()
        identifier = URIRef(config.identifier) if config.identifier else None
        graph = Graph(store=config.store_plugin, identifier=identifier)
        if config.name:
            graph.open(config.name, create=True)
        logger.debug(
            "Opened repository storage={} name={} identifier={}",
            config.store_plugin,
            config.name,
            config.identifier,
        )
        return cls(graph)

    @property
    def statements(self) -> StatementCollection:
        return self._statements

    def query(self, q: str, language: str = DEFAULT_QUERY_LANGUAGE) -> Result:
        """
        Execute a SPARQL query.

        rdflib evaluates every query with its SPARQL 1.1 engine; the
        ``language`` is validated so that callers keep requesting the
        aggregate-capable dialect where other stores need it.
        """
        check_query_language(language)
        logger.debug("[{}] {}", language, q)
        return self.graph.query(q)

    def close(self) -> None:
        self.graph.close()

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
