"""FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from crudforge.api.handler import CrudHandler
from crudforge.api.routes import create_entity_router
from crudforge.metadata.loader import MetadataLoader
from crudforge.metadata.validator import validate_metadata_dir
from crudforge.persistence import DatabaseConfig, PersistenceAdapter, create_adapter
from crudforge.validation import Validator, register_builtin_rules

logger = logging.getLogger(__name__)


def resolve_base_path() -> Path:
    """Repository root: the parent of ``backend/`` when started from there."""
    cwd = Path.cwd()
    if cwd.name == "backend":
        return cwd.parent
    return cwd


def resolve_metadata_path(base_path: Path) -> Path:
    env_path = os.environ.get("CRUDFORGE_METADATA_PATH")
    if env_path:
        return Path(env_path)
    return base_path / "metadata"


def _log_schema_issues(metadata_path: Path) -> None:
    """Warn about JSON Schema findings without blocking startup."""
    issues = validate_metadata_dir(metadata_path)
    if not issues:
        return
    for issue in issues:
        logger.warning("Metadata schema issue: %s", issue)
    logger.warning(
        "Metadata validation: %d issue(s). "
        "Run 'crudforge metadata validate' for details.",
        len(issues),
    )


def load_metadata(metadata_path: Path) -> MetadataLoader:
    """Resolve all entity descriptors; invariant violations abort startup."""
    _log_schema_issues(metadata_path)
    loader = MetadataLoader(metadata_path)
    loader.load_all()
    return loader


def create_app(
    metadata_path: Path | None = None,
    adapter: PersistenceAdapter | None = None,
    db_config: DatabaseConfig | None = None,
    loader: MetadataLoader | None = None,
) -> FastAPI:
    """Build the application: one handler set and one router per entity kind.

    Args:
        metadata_path: Metadata root (defaults to CRUDFORGE_METADATA_PATH or
            ``<base>/metadata``). Ignored when ``loader`` is given.
        adapter: Persistence adapter (defaults to one built from db_config)
        db_config: Database configuration (defaults to the environment)
        loader: Already-resolved descriptors
    """
    register_builtin_rules()
    base_path = resolve_base_path()

    if loader is None:
        loader = load_metadata(metadata_path or resolve_metadata_path(base_path))

    if adapter is None:
        adapter = create_adapter(db_config or DatabaseConfig.from_env(base_path))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect and create tables on startup, close on shutdown."""
        adapter.connect()
        for entity_name in loader.list_entities():
            adapter.initialize_entity(loader.get_entity(entity_name))
        logger.info("Serving %d entity kind(s)", len(loader.list_entities()))
        yield
        adapter.close()

    app = FastAPI(title="crudforge API", lifespan=lifespan)
    app.state.metadata_loader = loader
    app.state.adapter = adapter

    validator = Validator()
    for entity_name in loader.list_entities():
        handler = CrudHandler(loader.get_entity(entity_name), loader, adapter, validator)
        app.include_router(create_entity_router(handler))

    return app
