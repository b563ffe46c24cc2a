import pytest

try:
    from dotenv import load_dotenv
    from pathlib import Path

    # Load test-time environment variables (e.g. PYDRDF_STORAGE)
    load_dotenv(Path(__file__).with_name(".env"), override=True)
except ImportError:
    # Tests run fine without python-dotenv; every setting has a default.
    pass

# Register shared fixtures from the `tests/fixtures` package.
# - people_schema: record types and sample records.
# - store_fixtures: in-memory repository + persistence engine.
pytest_plugins = [
    "tests.fixtures.people_schema",
    "tests.fixtures.store_fixtures",
]


@pytest.fixture(scope="function", autouse=True)
def clear_schema_cache():
    """
    Rebuild schemas per test so a record class declared inside one test
    cannot leak a cached table into another.
    """
    from pydrdf.schema import SchemaRegistry

    SchemaRegistry.clear_cache()
    yield
    SchemaRegistry.clear_cache()
