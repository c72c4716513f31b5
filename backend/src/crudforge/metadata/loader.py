"""Load and resolve entity descriptors from YAML files."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from crudforge.core.operation import Operation
from crudforge.core.types import is_known_type, to_snake

RESERVED_NAMES = ("id", "edges")

ROUTE_NAMES = tuple(op.value for op in Operation)


@dataclass(frozen=True)
class RuleSet:
    """Validation rule strings per write operation."""

    create: str = ""
    update: str = ""

    def for_operation(self, operation: Operation) -> str:
        if operation == Operation.CREATE:
            return self.create
        if operation == Operation.UPDATE:
            return self.update
        return ""


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: str
    nullable: bool = False
    default: Any = None
    values: tuple[str, ...] = ()  # allowed values for enum fields
    rules: RuleSet = field(default_factory=RuleSet)
    groups: frozenset[str] = frozenset()

    def is_included(self, groups: frozenset[str]) -> bool:
        """Ungrouped fields are always emitted."""
        return not self.groups or bool(self.groups & groups)


@dataclass(frozen=True)
class EdgeDescriptor:
    """A named relation to another entity kind.

    Exactly one storage mapping applies:
    - column: unique edge owning a foreign-key column on this entity's table
    - through: plural edge owning a join table
    - inverse: edge stored by the target's edge of that name
    """

    name: str
    target: str
    unique: bool = False
    required: bool = False
    column: str | None = None
    through: str | None = None
    inverse: str | None = None
    rules: RuleSet = field(default_factory=RuleSet)
    groups: frozenset[str] = frozenset()

    def is_included(self, groups: frozenset[str]) -> bool:
        """Edges are excluded unless explicitly grouped in."""
        return bool(self.groups & groups)


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    plural_name: str
    fields: tuple[FieldDescriptor, ...]
    edges: tuple[EdgeDescriptor, ...] = ()
    operation_groups: dict[Operation, frozenset[str]] = field(default_factory=dict)
    routes: tuple[str, ...] = ROUTE_NAMES
    prefix: str = ""

    @property
    def table(self) -> str:
        return to_snake(self.name)

    @property
    def label(self) -> str:
        """Lower-case name used in log and error messages (``pet``)."""
        return to_snake(self.name).replace("_", " ")

    def get_field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_edge(self, name: str) -> EdgeDescriptor | None:
        for e in self.edges:
            if e.name == name:
                return e
        return None

    def groups_for(self, operation: Operation) -> frozenset[str]:
        """Active serialization groups for an operation."""
        return self.operation_groups.get(operation, frozenset({self.table}))

    def eager_for(self, groups: frozenset[str]) -> frozenset[str]:
        """Edges that must be eager-loaded to render the given groups."""
        return frozenset(e.name for e in self.edges if e.is_included(groups))


class MetadataLoader:
    """Loads entity descriptors from YAML files.

    Descriptors are resolved once at start-up and never mutated afterwards;
    the loader doubles as the lookup table used to resolve edge targets.
    """

    def __init__(self, metadata_path: Path | None = None):
        self.metadata_path = metadata_path
        self.entities: dict[str, EntityDescriptor] = {}

    def load_all(self) -> None:
        """Load all entity files under ``<metadata_path>/entities``."""
        documents = []
        if self.metadata_path is not None:
            entities_path = self.metadata_path / "entities"
            if entities_path.exists():
                for yaml_file in sorted(entities_path.glob("*.yaml")):
                    with open(yaml_file) as f:
                        data = yaml.safe_load(f)
                        if data and "entity" in data:
                            documents.append(data)
        self.load_documents(documents)

    def load_documents(self, documents: list[dict]) -> None:
        """Resolve already-parsed entity documents.

        Raises:
            ValueError: If a document violates a descriptor invariant
        """
        for data in documents:
            entity = self._resolve_entity(data)
            if entity.name in self.entities:
                raise ValueError(f"Duplicate entity '{entity.name}'")
            self.entities[entity.name] = entity
        self._validate_edges()
        self._validate_prefixes()

    def _resolve_entity(self, data: dict) -> EntityDescriptor:
        """Resolve an entity definition, applying entity-level rules and groups."""
        name = data["entity"]
        plural_name = data.get("pluralName", name + "s")

        field_data = [dict(f) for f in data.get("fields", [])]
        edge_data = [dict(e) for e in data.get("edges", [])]
        members = {d["name"]: d for d in field_data + edge_data}

        if len(members) != len(field_data) + len(edge_data):
            raise ValueError(f"Entity '{name}' declares a field or edge name twice")
        for reserved in RESERVED_NAMES:
            if reserved in members:
                raise ValueError(f"Entity '{name}' uses reserved name '{reserved}'")

        # Entity-level validation map: member name -> rule for both operations
        for member_name, rule in (data.get("validation") or {}).items():
            if member_name not in members:
                raise ValueError(
                    f"Entity '{name}' validation references unknown field '{member_name}'"
                )
            if "validate" in members[member_name]:
                raise ValueError(
                    f"Entity '{name}' declares validation for '{member_name}' twice"
                )
            members[member_name]["validate"] = rule

        # Entity-level group map: tag -> member names
        for tag, member_names in (data.get("groups") or {}).items():
            for member_name in member_names:
                if member_name not in members:
                    raise ValueError(
                        f"Entity '{name}' group '{tag}' references unknown field '{member_name}'"
                    )
                members[member_name].setdefault("groups", [])
                members[member_name]["groups"] = list(members[member_name]["groups"]) + [tag]

        fields = tuple(self._resolve_field(name, f) for f in field_data)
        edges = tuple(self._resolve_edge(name, e) for e in edge_data)

        operation_groups: dict[Operation, frozenset[str]] = {}
        for op_name, op_config in (data.get("operations") or {}).items():
            if op_name not in ROUTE_NAMES:
                raise ValueError(f"Entity '{name}' has unknown operation '{op_name}'")
            groups = (op_config or {}).get("groups")
            if groups is not None:
                operation_groups[Operation(op_name)] = frozenset(groups)

        routes = tuple(data.get("routes", ROUTE_NAMES))
        for route in routes:
            if route not in ROUTE_NAMES:
                raise ValueError(f"Entity '{name}' has unknown route '{route}'")

        prefix = data.get("prefix") or "/" + to_snake(plural_name)
        if not prefix.startswith("/") or prefix == "/":
            raise ValueError(f"Entity '{name}' prefix must be a non-root path: '{prefix}'")

        return EntityDescriptor(
            name=name,
            plural_name=plural_name,
            fields=fields,
            edges=edges,
            operation_groups=operation_groups,
            routes=routes,
            prefix=prefix.rstrip("/"),
        )

    def _resolve_rules(self, data: dict) -> RuleSet:
        common = data.get("validate", "")
        return RuleSet(
            create=data.get("validateCreate", common),
            update=data.get("validateUpdate", common),
        )

    def _resolve_field(self, entity_name: str, data: dict) -> FieldDescriptor:
        """Convert field dict to FieldDescriptor."""
        name = data["name"]
        field_type = data.get("type", "string")
        if not is_known_type(field_type):
            raise ValueError(
                f"Entity '{entity_name}' field '{name}' has unknown type '{field_type}'"
            )

        values = tuple(data.get("values", ()))
        if field_type == "enum" and not values:
            raise ValueError(f"Entity '{entity_name}' enum field '{name}' has no values")

        return FieldDescriptor(
            name=name,
            type=field_type,
            nullable=data.get("nullable", False),
            default=data.get("default"),
            values=values,
            rules=self._resolve_rules(data),
            groups=frozenset(data.get("groups", ())),
        )

    def _resolve_edge(self, entity_name: str, data: dict) -> EdgeDescriptor:
        """Convert edge dict to EdgeDescriptor, defaulting its storage mapping."""
        name = data["name"]
        unique = data.get("unique", False)
        inverse = data.get("inverse")
        column = data.get("column")
        through = data.get("through")

        if sum(x is not None for x in (inverse, column, through)) > 1:
            raise ValueError(
                f"Entity '{entity_name}' edge '{name}' declares more than one storage mapping"
            )
        if inverse is None and column is None and through is None:
            if unique:
                column = f"{to_snake(name)}_id"
            else:
                through = f"{to_snake(entity_name)}_{to_snake(name)}"
        if column is not None and not unique:
            raise ValueError(
                f"Entity '{entity_name}' edge '{name}' stores a column but is not unique"
            )
        if through is not None and unique:
            raise ValueError(
                f"Entity '{entity_name}' edge '{name}' uses a join table but is unique"
            )

        return EdgeDescriptor(
            name=name,
            target=data["target"],
            unique=unique,
            required=data.get("required", False),
            column=column,
            through=through,
            inverse=inverse,
            rules=self._resolve_rules(data),
            groups=frozenset(data.get("groups", ())),
        )

    def _validate_edges(self) -> None:
        """Check edge targets and inverse references across all entities."""
        for entity in self.entities.values():
            for edge in entity.edges:
                target = self.entities.get(edge.target)
                if target is None:
                    raise ValueError(
                        f"Edge '{entity.name}.{edge.name}' targets unknown entity '{edge.target}'"
                    )
                if edge.through is not None and target.name == entity.name:
                    raise ValueError(
                        f"Edge '{entity.name}.{edge.name}' cannot join an entity to itself"
                    )
                if edge.inverse is None:
                    continue
                owner = target.get_edge(edge.inverse)
                if owner is None:
                    raise ValueError(
                        f"Edge '{entity.name}.{edge.name}' is the inverse of unknown "
                        f"edge '{target.name}.{edge.inverse}'"
                    )
                if owner.target != entity.name or owner.inverse is not None:
                    raise ValueError(
                        f"Edge '{target.name}.{owner.name}' cannot own the storage of "
                        f"'{entity.name}.{edge.name}'"
                    )
                if owner.through is not None and edge.unique:
                    raise ValueError(
                        f"Edge '{entity.name}.{edge.name}' inverts a join table but is unique"
                    )

    def _validate_prefixes(self) -> None:
        seen: dict[str, str] = {}
        for entity in self.entities.values():
            if entity.prefix in seen:
                raise ValueError(
                    f"Duplicate prefix '{entity.prefix}' used by both "
                    f"'{seen[entity.prefix]}' and '{entity.name}'"
                )
            seen[entity.prefix] = entity.name

    def get_entity(self, name: str) -> EntityDescriptor | None:
        """Get a resolved entity by name."""
        return self.entities.get(name)

    def list_entities(self) -> list[str]:
        """List all entity names."""
        return list(self.entities.keys())
