"""CRUD operation names shared by metadata, validation and routing."""

from enum import Enum


class Operation(Enum):
    """The operation a request performs on an entity."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


WRITE_OPERATIONS = (Operation.CREATE, Operation.UPDATE)
