"""PersistenceAdapter Protocol: the data access port used by CRUD handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from crudforge.core.payload import MutationPayload
from crudforge.metadata.loader import EntityDescriptor


@dataclass
class Entity:
    """A persisted entity as read back from storage.

    Attributes:
        kind: Entity name (descriptor name)
        id: Unique integer identifier
        fields: Column values keyed by field name
        edges: Eager-loaded relations only. A unique edge maps to an Entity
            or None, a plural edge to a list ordered by id.
    """

    kind: str
    id: int
    fields: dict[str, Any] = field(default_factory=dict)
    edges: dict[str, Entity | list[Entity] | None] = field(default_factory=dict)


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Interface all persistence adapters must implement.

    Every method addresses one entity kind. Failures are reported with the
    exceptions in crudforge.persistence.errors: NotFoundError,
    NotSingularError, ConstraintError, and StorageError for everything else.
    Adapters provide their own concurrency safety.
    """

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def initialize_entity(self, entity: EntityDescriptor) -> None: ...

    def create(self, entity: EntityDescriptor, payload: MutationPayload) -> int: ...

    def fetch(
        self,
        entity: EntityDescriptor,
        id: int,
        eager: frozenset[str] = frozenset(),
    ) -> Entity: ...

    def update(
        self, entity: EntityDescriptor, id: int, payload: MutationPayload
    ) -> Entity: ...

    def delete(self, entity: EntityDescriptor, id: int) -> None: ...

    def list(
        self,
        entity: EntityDescriptor,
        page: int = 1,
        per_page: int = 30,
        filters: dict[str, Any] | None = None,
        eager: frozenset[str] = frozenset(),
    ) -> list[Entity]: ...
