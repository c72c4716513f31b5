"""Persistence layer - data access port, errors and database adapters."""

from crudforge.persistence.adapter import Entity, PersistenceAdapter
from crudforge.persistence.config import DatabaseConfig, create_adapter
from crudforge.persistence.errors import (
    ConstraintError,
    NotFoundError,
    NotSingularError,
    StorageError,
)

__all__ = [
    "ConstraintError",
    "DatabaseConfig",
    "Entity",
    "NotFoundError",
    "NotSingularError",
    "PersistenceAdapter",
    "StorageError",
    "create_adapter",
]
