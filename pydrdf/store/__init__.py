"""
pydrdf.store
============

The statement repository the persistence engine writes through.

* :class:`Repository` – rdflib-backed store exposing
  :class:`StatementCollection` (add / delete / delete_all / exists /
  first / all / each) and SPARQL :meth:`Repository.query`.
* :class:`StatementStore` – the protocol any other store must satisfy.
* :class:`RepositoryConfig` – how to open a repository, from a
  database.yml style mapping or from ``PYDRDF_*`` environment variables.
"""

from .settings import (
    SPARQL_10,
    SPARQL_11,
    DEFAULT_QUERY_LANGUAGE,
    AGGREGATE_QUERY_LANGUAGE,
    DEFAULT_STORAGE,
    ENV_PYDRDF_STORAGE,
    ENV_PYDRDF_DATABASE,
    ENV_PYDRDF_GRAPH_IRI,
    REPOSITORY_OPTIONS_MAPPING,
    STORAGE_ALIASES,
    RepositoryConfig,
)
from .repository import (
    Statement,
    StatementCollection,
    StatementStore,
    Repository,
)

__all__ = [
    # settings
    "SPARQL_10",
    "SPARQL_11",
    "DEFAULT_QUERY_LANGUAGE",
    "AGGREGATE_QUERY_LANGUAGE",
    "DEFAULT_STORAGE",
    "ENV_PYDRDF_STORAGE",
    "ENV_PYDRDF_DATABASE",
    "ENV_PYDRDF_GRAPH_IRI",
    "REPOSITORY_OPTIONS_MAPPING",
    "STORAGE_ALIASES",
    "RepositoryConfig",
    # repository
    "Statement",
    "StatementCollection",
    "StatementStore",
    "Repository",
]
