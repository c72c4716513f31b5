"""Typed outcomes reported by persistence adapters."""


class StorageError(Exception):
    """Unexpected failure of the backing store. Detail is never sent to clients."""


class NotFoundError(StorageError):
    """No row matched the identifier."""

    def __init__(self, entity: str, id: int):
        self.entity = entity
        self.id = id
        super().__init__(f"{entity} not found")


class NotSingularError(StorageError):
    """More than one row matched an identifier expected to be unique."""

    def __init__(self, entity: str, id: int):
        self.entity = entity
        self.id = id
        super().__init__(f"{entity} not singular")


class ConstraintError(StorageError):
    """A referential-integrity violation caused by the request payload.

    Attributes:
        field: The edge whose reference did not resolve, if known
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_errors(self) -> str | dict[str, str]:
        """Client-facing error value: field-attributed when the edge is known."""
        if self.field:
            return {self.field: str(self)}
        return str(self)
