"""Tests for crudforge CLI commands."""

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from crudforge.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def in_backend_dir(monkeypatch):
    """Ensure CWD is the backend directory for metadata resolution."""
    backend_dir = Path(__file__).parent.parent
    monkeypatch.chdir(backend_dir)
    monkeypatch.delenv("CRUDFORGE_METADATA_PATH", raising=False)


@pytest.fixture
def broken_metadata(tmp_path, monkeypatch):
    entities = tmp_path / "entities"
    entities.mkdir()
    (entities / "widget.yaml").write_text(
        yaml.dump(
            {
                "entity": "Widget",
                "fields": [{"name": "label", "validate": "required"}],
                "edges": [{"name": "maker", "target": "Maker", "unique": True}],
            }
        )
    )
    monkeypatch.setenv("CRUDFORGE_METADATA_PATH", str(tmp_path))
    return tmp_path


class TestMetadataValidate:
    def test_validate_succeeds(self, runner, in_backend_dir):
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 0
        assert "All metadata is valid" in result.output

    def test_validate_shows_entities(self, runner, in_backend_dir):
        result = runner.invoke(cli, ["metadata", "validate"])
        assert "Pet (2 fields, 1 edges, prefix: /pets)" in result.output
        assert "User" in result.output
        assert "Group" in result.output

    def test_validate_single_file(self, runner, in_backend_dir):
        path = Path(__file__).resolve().parents[2] / "metadata" / "entities" / "pet.yaml"
        result = runner.invoke(cli, ["metadata", "validate", "--path", str(path)])
        assert result.exit_code == 0
        assert "Loaded" not in result.output

    def test_validate_reports_descriptor_errors(self, runner, broken_metadata):
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 1
        assert "unknown entity 'Maker'" in result.output

    def test_validate_reports_schema_errors(self, runner, tmp_path, monkeypatch):
        (tmp_path / "entities").mkdir()
        (tmp_path / "entities" / "bad.yaml").write_text("fields: []\n")
        monkeypatch.setenv("CRUDFORGE_METADATA_PATH", str(tmp_path))
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 1
        assert "schema error(s) found" in result.output

    def test_validate_missing_directory(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("CRUDFORGE_METADATA_PATH", str(tmp_path / "nope"))
        result = runner.invoke(cli, ["metadata", "validate"])
        assert result.exit_code == 1


class TestRoutes:
    def test_routes_lists_every_entity(self, runner, in_backend_dir):
        result = runner.invoke(cli, ["routes"])
        assert result.exit_code == 0
        for name in ("Group", "Pet", "User"):
            assert name in result.output
        assert "/pets/{id}" in result.output
        assert "PATCH" in result.output

    def test_routes_respect_metadata(self, runner, tmp_path, monkeypatch):
        (tmp_path / "entities").mkdir()
        (tmp_path / "entities" / "log.yaml").write_text(
            yaml.dump({"entity": "Log", "fields": [{"name": "line"}], "routes": ["list"]})
        )
        monkeypatch.setenv("CRUDFORGE_METADATA_PATH", str(tmp_path))
        result = runner.invoke(cli, ["routes"])
        assert result.exit_code == 0
        assert "GET" in result.output
        assert "POST" not in result.output
        assert "{id}" not in result.output


class TestServe:
    def test_serve_runs_uvicorn_factory(self, runner, monkeypatch):
        calls = {}

        def fake_run(app, **kwargs):
            calls["app"] = app
            calls.update(kwargs)

        monkeypatch.setattr("uvicorn.run", fake_run)
        monkeypatch.setenv("CRUDFORGE_PORT", "9001")
        result = runner.invoke(cli, ["serve", "--log-level", "warning"])
        assert result.exit_code == 0
        assert calls["app"] == "crudforge.api:create_app"
        assert calls["factory"] is True
        assert calls["port"] == 9001
        assert calls["log_level"] == "warning"
