"""Tri-state mutation payload decoded from a request body."""

from dataclasses import dataclass, field
from typing import Any


class _Absent:
    """Marker for a key the client did not send."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


@dataclass(frozen=True)
class MutationPayload:
    """Decoded request body for one entity kind.

    Each field or edge is in one of three states:
    - absent: the key is missing from ``values`` (``get`` returns ``ABSENT``)
    - cleared: present with ``None``
    - set: present with a value

    Attributes:
        entity: Name of the entity kind the payload targets
        values: Present keys only, in descriptor order
    """

    entity: str
    values: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        return self.values.get(name, ABSENT)

    def is_present(self, name: str) -> bool:
        return name in self.values

    def is_cleared(self, name: str) -> bool:
        return name in self.values and self.values[name] is None

    def __bool__(self) -> bool:
        return bool(self.values)
