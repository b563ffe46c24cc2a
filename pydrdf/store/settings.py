import os
from typing import Any, Final, Mapping, Optional

from pydantic import BaseModel

# ──────────────────────────────────────────────────────────────────────────
# Query languages
# ──────────────────────────────────────────────────────────────────────────

SPARQL_10: Final[str] = "sparql10"
SPARQL_11: Final[str] = "sparql"
QUERY_LANGUAGES: Final[frozenset[str]] = frozenset({SPARQL_10, SPARQL_11})

DEFAULT_QUERY_LANGUAGE: Final[str] = SPARQL_10
# SPARQL 1.0 has no COUNT, aggregates must ask for 1.1 explicitly.
AGGREGATE_QUERY_LANGUAGE: Final[str] = SPARQL_11

# ──────────────────────────────────────────────────────────────────────────
# Repository bootstrap
# ──────────────────────────────────────────────────────────────────────────

ENV_PYDRDF_STORAGE: Final[str] = "PYDRDF_STORAGE"
ENV_PYDRDF_DATABASE: Final[str] = "PYDRDF_DATABASE"
ENV_PYDRDF_GRAPH_IRI: Final[str] = "PYDRDF_GRAPH_IRI"

DEFAULT_STORAGE: Final[str] = "Memory"

# database.yml style keys → RepositoryConfig fields
REPOSITORY_OPTIONS_MAPPING: Final[dict[str, str]] = {
    "adapter": "storage",
    "database": "name",
}

# Friendly storage names → rdflib store plugin names
STORAGE_ALIASES: Final[dict[str, str]] = {
    "memory": "Memory",
    "simple_memory": "SimpleMemory",
    "berkeleydb": "BerkeleyDB",
    "bdb": "BerkeleyDB",
    "oxigraph": "Oxigraph",
}


def check_query_language(language: str) -> str:
    if language not in QUERY_LANGUAGES:
        raise ValueError(
            f"Unknown query language '{language}' "
            f"(expected one of {sorted(QUERY_LANGUAGES)})"
        )
    return language


class RepositoryConfig(BaseModel):
    """
    How to open the statement repository.

    * ``storage`` – rdflib store plugin name (aliases in
      :data:`STORAGE_ALIASES` are accepted).
    * ``name`` – store location handed to ``Graph.open`` for persistent
      stores; ``None`` for in-memory stores.
    * ``identifier`` – IRI of the graph, ``None`` for a fresh blank one.
    """

    storage: str = DEFAULT_STORAGE
    name: Optional[str] = None
    identifier: Optional[str] = None

    @property
    def store_plugin(self) -> str:
        return STORAGE_ALIASES.get(self.storage.lower(), self.storage)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "RepositoryConfig":
        """
        Build a config from a loosely-keyed mapping, e.g. a database.yml
        section (``{"adapter": "memory", "database": "db/graph"}``).
        Unknown keys are ignored.
        """
        remapped = {
            REPOSITORY_OPTIONS_MAPPING.get(str(k), str(k)): v for k, v in options.items()
        }
        fields = {k: v for k, v in remapped.items() if k in cls.model_fields}
        return cls(**fields)

    @classmethod
    def from_env(cls) -> "RepositoryConfig":
        return cls(
            storage=os.getenv(ENV_PYDRDF_STORAGE, DEFAULT_STORAGE),
            name=os.getenv(ENV_PYDRDF_DATABASE) or None,
            identifier=os.getenv(ENV_PYDRDF_GRAPH_IRI) or None,
        )
