"""Group-filtered rendering of persisted entities."""

from typing import Any

from crudforge.metadata.loader import EntityDescriptor, MetadataLoader
from crudforge.persistence.adapter import Entity

_SCALARS = (str, int, float, bool, type(None))


class SerializationFault(Exception):
    """An entity could not be rendered as JSON."""


def serialize(
    entity: Entity,
    registry: MetadataLoader,
    groups: frozenset[str],
) -> dict[str, Any]:
    """Render an entity as a JSON-ready dict.

    Output order is ``id``, the included fields in descriptor order, then an
    ``edges`` object holding every edge of the kind. An edge that is grouped
    out, or was not loaded, renders as the empty placeholder ``{}``. Nested
    entities are rendered with the same groups.

    Raises:
        SerializationFault: A value is not a JSON scalar, the kind is
            unknown, or the loaded graph contains a cycle
    """
    return _render(entity, registry, groups, frozenset())


def _render(
    entity: Entity,
    registry: MetadataLoader,
    groups: frozenset[str],
    path: frozenset[tuple[str, int]],
) -> dict[str, Any]:
    key = (entity.kind, entity.id)
    if key in path:
        raise SerializationFault(f"cycle at {entity.kind} {entity.id}")
    path = path | {key}

    descriptor = registry.get_entity(entity.kind)
    if descriptor is None:
        raise SerializationFault(f"unknown entity kind '{entity.kind}'")

    out: dict[str, Any] = {"id": entity.id}
    for field in descriptor.fields:
        if not field.is_included(groups):
            continue
        value = entity.fields.get(field.name)
        if not isinstance(value, _SCALARS):
            raise SerializationFault(
                f"{entity.kind}.{field.name} holds a non-JSON value of type "
                f"{type(value).__name__}"
            )
        out[field.name] = value

    out["edges"] = _render_edges(entity, descriptor, registry, groups, path)
    return out


def _render_edges(
    entity: Entity,
    descriptor: EntityDescriptor,
    registry: MetadataLoader,
    groups: frozenset[str],
    path: frozenset[tuple[str, int]],
) -> dict[str, Any]:
    edges: dict[str, Any] = {}
    for edge in descriptor.edges:
        if not edge.is_included(groups) or edge.name not in entity.edges:
            edges[edge.name] = {}
            continue
        related = entity.edges[edge.name]
        if related is None:
            edges[edge.name] = None
        elif isinstance(related, list):
            edges[edge.name] = [_render(r, registry, groups, path) for r in related]
        else:
            edges[edge.name] = _render(related, registry, groups, path)
    return edges
