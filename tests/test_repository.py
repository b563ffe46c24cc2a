import pytest
from rdflib import Graph, Literal, URIRef
from rdflib.namespace import RDF

from pydrdf import Repository, RepositoryConfig, Statement
from pydrdf.store import (
    AGGREGATE_QUERY_LANGUAGE,
    DEFAULT_QUERY_LANGUAGE,
    ENV_PYDRDF_DATABASE,
    ENV_PYDRDF_GRAPH_IRI,
    ENV_PYDRDF_STORAGE,
    SPARQL_10,
    SPARQL_11,
)
from tests.fixtures.people_schema import EX

ADA = URIRef("http://example.org/people#ada")
BOB = URIRef("http://example.org/people#bob")


@pytest.fixture
def filled(repository):
    statements = repository.statements
    statements.add(Statement(ADA, RDF.type, EX.Person))
    statements.add(Statement(ADA, EX.name, Literal("Ada")))
    statements.add(Statement(ADA, EX.tag, Literal("math")))
    statements.add(Statement(ADA, EX.tag, Literal("logic")))
    statements.add(Statement(BOB, RDF.type, EX.Person))
    return repository


# ──────────────────────────────────────────────────────────────────────
# Statements
# ──────────────────────────────────────────────────────────────────────


def test_add_is_idempotent(filled):
    statements = filled.statements
    assert len(statements) == 5
    assert statements.add(Statement(ADA, EX.tag, Literal("math")))
    assert len(statements) == 5


def test_pattern_lookups(filled):
    statements = filled.statements
    assert statements.exists(subject=ADA, predicate=EX.name)
    assert not statements.exists(subject=BOB, predicate=EX.name)
    assert statements.exists()

    assert statements.first(subject=ADA, predicate=EX.name) == Statement(
        ADA, EX.name, Literal("Ada")
    )
    assert statements.first(subject=BOB, predicate=EX.name) is None

    typed = statements.all(predicate=RDF.type, obj=EX.Person)
    assert {s.subject for s in typed} == {ADA, BOB}
    assert len(statements.all(subject=ADA)) == 4


def test_each_visits_matches(filled):
    seen = []
    filled.statements.each(seen.append, subject=ADA, predicate=EX.tag)
    assert {s.object for s in seen} == {Literal("math"), Literal("logic")}


def test_delete_and_delete_all(filled):
    statements = filled.statements
    assert statements.delete(Statement(ADA, EX.name, Literal("Ada")))
    assert not statements.exists(subject=ADA, predicate=EX.name)

    assert statements.delete_all(subject=ADA, predicate=EX.tag) == 2
    assert statements.delete_all(subject=ADA, predicate=EX.tag) == 0
    assert len(statements) == 2


def test_delete_while_iterating(filled):
    statements = filled.statements
    for statement in statements:
        statements.delete(statement)
    assert len(statements) == 0


# ──────────────────────────────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────────────────────────────


def test_select_and_ask(filled):
    q = f"SELECT ?subject WHERE {{ ?subject {RDF.type.n3()} {EX.Person.n3()} }}"
    assert {row["subject"] for row in filled.query(q)} == {ADA, BOB}

    ask = f"ASK {{ {ADA.n3()} {EX.name.n3()} ?o }}"
    assert filled.query(ask).askAnswer is True


def test_query_languages(filled):
    assert DEFAULT_QUERY_LANGUAGE == SPARQL_10
    assert AGGREGATE_QUERY_LANGUAGE == SPARQL_11

    q = (
        f"SELECT (COUNT(?subject) AS ?count) "
        f"WHERE {{ ?subject {RDF.type.n3()} {EX.Person.n3()} }}"
    )
    rows = list(filled.query(q, language=AGGREGATE_QUERY_LANGUAGE))
    assert rows[0]["count"].toPython() == 2

    with pytest.raises(ValueError, match="query language"):
        filled.query(q, language="sql")


# ──────────────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────────────


def test_config_defaults():
    config = RepositoryConfig()
    assert config.storage == "Memory"
    assert config.store_plugin == "Memory"
    assert config.name is None
    assert config.identifier is None


def test_config_from_options():
    config = RepositoryConfig.from_options(
        {"adapter": "bdb", "database": "db/graph", "pool": 5}
    )
    assert config.storage == "bdb"
    assert config.store_plugin == "BerkeleyDB"
    assert config.name == "db/graph"


def test_config_unknown_storage_is_passed_through():
    assert RepositoryConfig(storage="SPARQLStore").store_plugin == "SPARQLStore"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv(ENV_PYDRDF_STORAGE, "simple_memory")
    monkeypatch.setenv(ENV_PYDRDF_GRAPH_IRI, "http://example.org/graph")
    monkeypatch.delenv(ENV_PYDRDF_DATABASE, raising=False)

    config = RepositoryConfig.from_env()
    assert config.store_plugin == "SimpleMemory"
    assert config.name is None
    assert config.identifier == "http://example.org/graph"


def test_repository_from_config():
    config = RepositoryConfig(storage="memory", identifier="http://example.org/graph")
    with Repository.from_config(config) as repo:
        assert isinstance(repo.graph, Graph)
        assert repo.graph.identifier == URIRef("http://example.org/graph")
        repo.statements.add(Statement(ADA, RDF.type, EX.Person))
        assert repo.statements.exists(subject=ADA)


def test_repository_from_env(monkeypatch):
    monkeypatch.delenv(ENV_PYDRDF_STORAGE, raising=False)
    monkeypatch.delenv(ENV_PYDRDF_DATABASE, raising=False)
    monkeypatch.delenv(ENV_PYDRDF_GRAPH_IRI, raising=False)
    with Repository.from_config() as repo:
        assert len(repo.statements) == 0
