"""Shared fixtures: the pet/user/group metadata and a migrated SQLite adapter."""

from pathlib import Path

import pytest

from crudforge.metadata.loader import MetadataLoader
from crudforge.persistence.sqlite import SQLiteAdapter
from crudforge.validation import register_builtin_rules

METADATA_PATH = Path(__file__).resolve().parents[2] / "metadata"


@pytest.fixture(autouse=True)
def builtin_rules():
    """Rule tags are process-wide; make sure the built-ins are present."""
    register_builtin_rules()


@pytest.fixture
def metadata_path():
    return METADATA_PATH


@pytest.fixture
def loader():
    loader = MetadataLoader(METADATA_PATH)
    loader.load_all()
    return loader


@pytest.fixture
def adapter(loader):
    """In-memory SQLite adapter with tables for every entity kind."""
    adapter = SQLiteAdapter(":memory:")
    adapter.connect()
    for name in loader.list_entities():
        adapter.initialize_entity(loader.get_entity(name))
    yield adapter
    adapter.close()
