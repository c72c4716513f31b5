"""Tests for PersistenceAdapter Protocol and DatabaseConfig."""

from pathlib import Path

import pytest

from crudforge.persistence import ConstraintError, NotFoundError, StorageError
from crudforge.persistence.adapter import PersistenceAdapter
from crudforge.persistence.config import DatabaseConfig, create_adapter
from crudforge.persistence.sqlite import SQLiteAdapter


class TestPersistenceAdapterProtocol:
    """Verify SQLiteAdapter satisfies the PersistenceAdapter protocol."""

    def test_sqlite_adapter_is_instance(self):
        adapter = SQLiteAdapter(":memory:")
        assert isinstance(adapter, PersistenceAdapter)

    def test_sqlite_adapter_has_all_methods(self):
        """Verify all Protocol methods exist on SQLiteAdapter."""
        required_methods = [
            "connect",
            "close",
            "initialize_entity",
            "create",
            "fetch",
            "update",
            "delete",
            "list",
        ]
        adapter = SQLiteAdapter(":memory:")
        for method_name in required_methods:
            assert hasattr(adapter, method_name), f"Missing method: {method_name}"
            assert callable(getattr(adapter, method_name))

    def test_sqlite_adapter_has_conn_attribute(self):
        adapter = SQLiteAdapter(":memory:")
        # Before connect, conn is None
        assert adapter.conn is None
        adapter.connect()
        assert adapter.conn is not None
        adapter.close()
        assert adapter.conn is None

    def test_foreign_keys_enforced(self):
        adapter = SQLiteAdapter(":memory:")
        adapter.connect()
        assert adapter.conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        adapter.close()


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(NotFoundError, StorageError)
        assert issubclass(ConstraintError, StorageError)

    def test_not_found_message(self):
        error = NotFoundError("pet", 3)
        assert str(error) == "pet not found"
        assert error.id == 3

    def test_constraint_without_field(self):
        assert ConstraintError("referenced entity does not exist").to_errors() == (
            "referenced entity does not exist"
        )


class TestDatabaseConfig:
    """Test DatabaseConfig creation from environment."""

    def test_from_env_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:////var/lib/app.db")
        monkeypatch.delenv("CRUDFORGE_DB_PATH", raising=False)
        config = DatabaseConfig.from_env()
        assert config.url == "sqlite:////var/lib/app.db"
        assert config.sqlite_path == "/var/lib/app.db"

    def test_from_env_crudforge_db_path(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("CRUDFORGE_DB_PATH", "/tmp/test.db")
        config = DatabaseConfig.from_env()
        assert config.url == "sqlite:////tmp/test.db"
        assert config.is_sqlite

    def test_from_env_default_with_base_path(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("CRUDFORGE_DB_PATH", raising=False)
        config = DatabaseConfig.from_env(Path("/project"))
        assert config.url == "sqlite:////project/data/crudforge.db"

    def test_from_env_default_without_base_path(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("CRUDFORGE_DB_PATH", raising=False)
        config = DatabaseConfig.from_env()
        assert config.url == "sqlite:///crudforge.db"

    def test_database_url_takes_precedence(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///a.db")
        monkeypatch.setenv("CRUDFORGE_DB_PATH", "/tmp/b.db")
        assert DatabaseConfig.from_env().url == "sqlite:///a.db"

    def test_memory_path(self):
        config = DatabaseConfig(url="sqlite:///")
        assert config.sqlite_path == ":memory:"
        assert config.is_memory

    def test_for_path(self, tmp_path):
        config = DatabaseConfig.for_path(tmp_path / "app.db")
        assert config.url == f"sqlite:///{tmp_path / 'app.db'}"
        assert config.sqlite_path == str(tmp_path / "app.db")
        assert not config.is_memory


class TestCreateAdapter:
    def test_sqlite(self):
        adapter = create_adapter(DatabaseConfig(url="sqlite:///test.db"))
        assert isinstance(adapter, SQLiteAdapter)
        assert adapter.db_path == "test.db"

    def test_creates_database_directory(self, tmp_path):
        db_path = tmp_path / "data" / "nested" / "app.db"
        adapter = create_adapter(DatabaseConfig.for_path(db_path))
        assert db_path.parent.is_dir()
        assert adapter.db_path == str(db_path)

    def test_memory_database_creates_nothing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        create_adapter(DatabaseConfig(url="sqlite:///"))
        assert list(tmp_path.iterdir()) == []

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="Unsupported database URL scheme"):
            create_adapter(DatabaseConfig(url="postgresql://localhost/db"))
