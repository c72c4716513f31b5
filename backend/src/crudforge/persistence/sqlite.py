"""SQLite persistence adapter."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from crudforge.core.payload import MutationPayload
from crudforge.core.types import NOW_DEFAULT, get_field_type, get_storage_type, to_snake
from crudforge.metadata.loader import EdgeDescriptor, EntityDescriptor, FieldDescriptor
from crudforge.persistence.adapter import Entity
from crudforge.persistence.errors import (
    ConstraintError,
    NotFoundError,
    NotSingularError,
    StorageError,
)


def _q(name: str) -> str:
    """Return a double-quoted identifier.

    Quoting keeps entity tables such as ``group`` clear of reserved words.
    """
    return f'"{name}"'


def _join_columns(owner: str, edge: EdgeDescriptor) -> tuple[str, str]:
    """Column names of a join table: (owner side, target side)."""
    return f"{to_snake(owner)}_id", f"{to_snake(edge.target)}_id"


def _default_clause(field: FieldDescriptor) -> str:
    """Storage-side DEFAULT for a field, or an empty string."""
    default = field.default
    if default is None:
        return ""
    if field.type == "time" and default == "now":
        return f" DEFAULT {NOW_DEFAULT}"
    if isinstance(default, bool):
        return f" DEFAULT {int(default)}"
    if isinstance(default, (int, float)):
        return f" DEFAULT {default!r}"
    escaped = str(default).replace("'", "''")
    return f" DEFAULT '{escaped}'"


class SQLiteAdapter:
    """SQLite persistence adapter.

    One connection is shared by all requests; a re-entrant lock serialises
    access to it. Each write runs in its own transaction.
    """

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None
        self.entities: dict[str, EntityDescriptor] = {}
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Establish database connection with foreign keys enforced."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_entity(self, entity: EntityDescriptor) -> None:
        """Create the entity table and the join tables it owns."""
        if not self.conn:
            raise StorageError("Database not connected")

        self.entities[entity.name] = entity

        columns = ["id INTEGER PRIMARY KEY AUTOINCREMENT"]
        for field in entity.fields:
            col_def = f"{_q(field.name)} {get_storage_type(field.type)}"
            if not field.nullable:
                col_def += " NOT NULL"
            col_def += _default_clause(field)
            columns.append(col_def)
        for edge in entity.edges:
            if edge.column:
                col_def = f"{_q(edge.column)} INTEGER"
                if edge.required:
                    col_def += " NOT NULL"
                col_def += f" REFERENCES {_q(to_snake(edge.target))}(id)"
                col_def += " ON DELETE RESTRICT" if edge.required else " ON DELETE SET NULL"
                columns.append(col_def)

        with self._lock:
            self.conn.execute(
                f"CREATE TABLE IF NOT EXISTS {_q(entity.table)} ({', '.join(columns)})"
            )
            for edge in entity.edges:
                if edge.through:
                    owner_col, target_col = _join_columns(entity.name, edge)
                    self.conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {_q(edge.through)} ("
                        f"{_q(owner_col)} INTEGER NOT NULL REFERENCES "
                        f"{_q(entity.table)}(id) ON DELETE CASCADE, "
                        f"{_q(target_col)} INTEGER NOT NULL REFERENCES "
                        f"{_q(to_snake(edge.target))}(id) ON DELETE CASCADE, "
                        f"PRIMARY KEY ({_q(owner_col)}, {_q(target_col)}))"
                    )
            self.conn.commit()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, entity: EntityDescriptor, payload: MutationPayload) -> int:
        """Insert a new row and its edges.

        Absent fields fall back to the column defaults.

        Returns:
            The generated identifier
        """
        with self._lock, self._translate_errors():
            with self.conn:
                columns, values = self._column_values(entity, payload)
                table = _q(entity.table)
                if columns:
                    placeholders = ", ".join("?" for _ in columns)
                    sql = (
                        f"INSERT INTO {table} ({', '.join(_q(c) for c in columns)}) "
                        f"VALUES ({placeholders})"
                    )
                else:
                    sql = f"INSERT INTO {table} DEFAULT VALUES"
                cursor = self.conn.execute(sql, values)
                new_id = cursor.lastrowid
                self._write_edges(entity, new_id, payload)
        return new_id

    def fetch(
        self,
        entity: EntityDescriptor,
        id: int,
        eager: frozenset[str] = frozenset(),
    ) -> Entity:
        """Fetch a single row by ID, eager-loading the named edges."""
        with self._lock, self._translate_errors():
            rows = self.conn.execute(
                f"SELECT * FROM {_q(entity.table)} WHERE id = ? LIMIT 2", [id]
            ).fetchall()
            if not rows:
                raise NotFoundError(entity.label, id)
            if len(rows) > 1:
                raise NotSingularError(entity.label, id)
            record = self._to_entity(entity, rows[0])
            self._load_edges(entity, [(record, rows[0])], eager)
        return record

    def update(self, entity: EntityDescriptor, id: int, payload: MutationPayload) -> Entity:
        """Overwrite the present fields and edges of an existing row."""
        with self._lock, self._translate_errors():
            with self.conn:
                table = _q(entity.table)
                exists = self.conn.execute(
                    f"SELECT 1 FROM {table} WHERE id = ?", [id]
                ).fetchone()
                if not exists:
                    raise NotFoundError(entity.label, id)

                columns, values = self._column_values(entity, payload)
                if columns:
                    set_clause = ", ".join(f"{_q(c)} = ?" for c in columns)
                    self.conn.execute(
                        f"UPDATE {table} SET {set_clause} WHERE id = ?", values + [id]
                    )
                self._write_edges(entity, id, payload)
            return self.fetch(entity, id)

    def delete(self, entity: EntityDescriptor, id: int) -> None:
        """Delete a row.

        Join rows cascade and optional references are set to null.

        Raises:
            NotFoundError: No row has this id
            ConstraintError: Rows still reference it through a required edge
        """
        with self._lock, self._translate_errors():
            with self.conn:
                self._check_required_references(entity, id)
                cursor = self.conn.execute(
                    f"DELETE FROM {_q(entity.table)} WHERE id = ?", [id]
                )
            if cursor.rowcount == 0:
                raise NotFoundError(entity.label, id)

    def list(
        self,
        entity: EntityDescriptor,
        page: int = 1,
        per_page: int = 30,
        filters: dict[str, Any] | None = None,
        eager: frozenset[str] = frozenset(),
    ) -> list[Entity]:
        """List rows ordered by ID with equality filters and pagination."""
        where_parts = []
        where_values: list[Any] = []
        for name, value in (filters or {}).items():
            field = entity.get_field(name)
            if field is None:
                raise StorageError(f"Cannot filter {entity.name} by unknown field '{name}'")
            where_parts.append(f"{_q(name)} = ?")
            where_values.append(get_field_type(field.type).to_storage(value))

        where_clause = f" WHERE {' AND '.join(where_parts)}" if where_parts else ""
        sql = (
            f"SELECT * FROM {_q(entity.table)}{where_clause} "
            f"ORDER BY id LIMIT ? OFFSET ?"
        )

        with self._lock, self._translate_errors():
            rows = self.conn.execute(
                sql, where_values + [per_page, (page - 1) * per_page]
            ).fetchall()
            pairs = [(self._to_entity(entity, row), row) for row in rows]
            self._load_edges(entity, pairs, eager)
        return [record for record, _ in pairs]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Map sqlite3 failures onto the adapter's typed errors."""
        if not self.conn:
            raise StorageError("Database not connected")
        try:
            yield
        except sqlite3.IntegrityError as e:
            if "FOREIGN KEY" in str(e):
                raise ConstraintError("referenced entity does not exist") from e
            raise StorageError(str(e)) from e
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        except OverflowError as e:
            # Python int beyond the 64-bit INTEGER range
            raise StorageError(str(e)) from e

    def _column_values(
        self, entity: EntityDescriptor, payload: MutationPayload
    ) -> tuple[list[str], list[Any]]:
        """Columns and values for the present fields and FK-owning edges."""
        columns: list[str] = []
        values: list[Any] = []
        for field in entity.fields:
            if payload.is_present(field.name):
                columns.append(field.name)
                values.append(get_field_type(field.type).to_storage(payload.get(field.name)))
        for edge in entity.edges:
            if edge.column and payload.is_present(edge.name):
                target_id = payload.get(edge.name)
                if target_id is not None:
                    self._check_targets(edge, [target_id])
                columns.append(edge.column)
                values.append(target_id)
        return columns, values

    def _write_edges(self, entity: EntityDescriptor, id: int, payload: MutationPayload) -> None:
        """Replace the present join-table and inverse edges of a row."""
        for edge in entity.edges:
            if edge.column or not payload.is_present(edge.name):
                continue
            value = payload.get(edge.name)
            if value is None:
                target_ids: list[int] = []
            elif isinstance(value, list):
                target_ids = list(dict.fromkeys(value))
            else:
                target_ids = [value]
            self._check_targets(edge, target_ids)

            if edge.through:
                owner_col, target_col = _join_columns(entity.name, edge)
                self._replace_join_rows(edge.through, owner_col, target_col, id, target_ids)
                continue

            target = self.entities[edge.target]
            owner_edge = target.get_edge(edge.inverse)
            if owner_edge.column:
                target_table = _q(target.table)
                column = _q(owner_edge.column)
                detached = [
                    row["id"]
                    for row in self.conn.execute(
                        f"SELECT id FROM {target_table} WHERE {column} = ?", [id]
                    )
                    if row["id"] not in target_ids
                ]
                if detached and owner_edge.required:
                    raise ConstraintError(
                        f"{target.label} {detached[0]} requires {owner_edge.name}",
                        field=edge.name,
                    )
                if detached:
                    placeholders = ", ".join("?" for _ in detached)
                    self.conn.execute(
                        f"UPDATE {target_table} SET {column} = NULL "
                        f"WHERE id IN ({placeholders})",
                        detached,
                    )
                if target_ids:
                    placeholders = ", ".join("?" for _ in target_ids)
                    self.conn.execute(
                        f"UPDATE {target_table} SET {column} = ? WHERE id IN ({placeholders})",
                        [id] + target_ids,
                    )
            else:
                # This entity is the target side of the owner's join table
                other_col, this_col = _join_columns(target.name, owner_edge)
                self._replace_join_rows(owner_edge.through, this_col, other_col, id, target_ids)

    def _replace_join_rows(
        self, table: str, this_col: str, other_col: str, id: int, other_ids: list[int]
    ) -> None:
        self.conn.execute(f"DELETE FROM {_q(table)} WHERE {_q(this_col)} = ?", [id])
        self.conn.executemany(
            f"INSERT INTO {_q(table)} ({_q(this_col)}, {_q(other_col)}) VALUES (?, ?)",
            [(id, other_id) for other_id in other_ids],
        )

    def _check_targets(self, edge: EdgeDescriptor, target_ids: list[int]) -> None:
        """Raise ConstraintError naming the edge if any target row is missing."""
        if not target_ids:
            return
        target = self.entities[edge.target]
        placeholders = ", ".join("?" for _ in target_ids)
        found = {
            row["id"]
            for row in self.conn.execute(
                f"SELECT id FROM {_q(target.table)} WHERE id IN ({placeholders})",
                target_ids,
            )
        }
        for target_id in target_ids:
            if target_id not in found:
                raise ConstraintError(
                    f"{target.label} {target_id} does not exist", field=edge.name
                )

    def _check_required_references(self, entity: EntityDescriptor, id: int) -> None:
        """Raise ConstraintError if a required FK edge of another kind points at this row."""
        for other in self.entities.values():
            for edge in other.edges:
                if not (edge.column and edge.required and edge.target == entity.name):
                    continue
                row = self.conn.execute(
                    f"SELECT id FROM {_q(other.table)} WHERE {_q(edge.column)} = ? LIMIT 1",
                    [id],
                ).fetchone()
                if row is None:
                    continue
                # Attribute the error to the inverse edge when this kind declares one
                inverse = next(
                    (e.name for e in entity.edges
                     if e.target == other.name and e.inverse == edge.name),
                    None,
                )
                raise ConstraintError(
                    f"{entity.label} {id} is still the {edge.name} of {other.label} {row['id']}",
                    field=inverse,
                )

    def _to_entity(self, entity: EntityDescriptor, row: sqlite3.Row) -> Entity:
        return Entity(
            kind=entity.name,
            id=row["id"],
            fields={
                f.name: get_field_type(f.type).from_storage(row[f.name])
                for f in entity.fields
            },
        )

    def _load_edges(
        self,
        entity: EntityDescriptor,
        pairs: list[tuple[Entity, sqlite3.Row]],
        eager: frozenset[str],
    ) -> None:
        """Attach the named edges to each record, one query per edge."""
        for name in eager:
            if entity.get_edge(name) is None:
                raise StorageError(f"Cannot eager-load unknown edge '{entity.name}.{name}'")
        if not pairs:
            return

        ids = [record.id for record, _ in pairs]
        placeholders = ", ".join("?" for _ in ids)

        for edge in entity.edges:
            if edge.name not in eager:
                continue
            target = self.entities[edge.target]
            target_table = _q(target.table)

            if edge.column:
                fk_ids = list({row[edge.column] for _, row in pairs if row[edge.column] is not None})
                by_id: dict[int, Entity] = {}
                if fk_ids:
                    fk_placeholders = ", ".join("?" for _ in fk_ids)
                    for row in self.conn.execute(
                        f"SELECT * FROM {target_table} WHERE id IN ({fk_placeholders})", fk_ids
                    ):
                        by_id[row["id"]] = self._to_entity(target, row)
                for record, row in pairs:
                    record.edges[edge.name] = by_id.get(row[edge.column])
                continue

            if edge.through:
                owner_col, target_col = _join_columns(entity.name, edge)
                sql = (
                    f"SELECT j.{_q(owner_col)} AS _parent, t.* FROM {target_table} t "
                    f"JOIN {_q(edge.through)} j ON j.{_q(target_col)} = t.id "
                    f"WHERE j.{_q(owner_col)} IN ({placeholders}) ORDER BY t.id"
                )
            else:
                owner_edge = target.get_edge(edge.inverse)
                if owner_edge.column:
                    sql = (
                        f"SELECT t.{_q(owner_edge.column)} AS _parent, t.* FROM {target_table} t "
                        f"WHERE t.{_q(owner_edge.column)} IN ({placeholders}) ORDER BY t.id"
                    )
                else:
                    other_col, this_col = _join_columns(target.name, owner_edge)
                    sql = (
                        f"SELECT j.{_q(this_col)} AS _parent, t.* FROM {target_table} t "
                        f"JOIN {_q(owner_edge.through)} j ON j.{_q(other_col)} = t.id "
                        f"WHERE j.{_q(this_col)} IN ({placeholders}) ORDER BY t.id"
                    )

            grouped: dict[int, list[Entity]] = {id: [] for id in ids}
            for row in self.conn.execute(sql, ids):
                grouped[row["_parent"]].append(self._to_entity(target, row))
            for record, _ in pairs:
                related = grouped[record.id]
                if edge.unique:
                    record.edges[edge.name] = related[0] if related else None
                else:
                    record.edges[edge.name] = related
