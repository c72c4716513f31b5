"""Field type registry with storage, decoding and query defaults."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

# SQLite INTEGER range
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _parse_int(raw: str) -> int:
    value = int(raw)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValueError(f"integer {raw!r} out of range")
    return value


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes"):
        return True
    if lowered in ("0", "false", "no"):
        return False
    raise ValueError(f"invalid boolean {raw!r}")


def _parse_time(raw: str) -> str:
    return _time_to_storage(datetime.fromisoformat(raw.replace("Z", "+00:00")))


def _time_to_storage(value: Any) -> Any:
    """Store times in UTC with a ``Z`` suffix, the format of NOW_DEFAULT.

    Naive datetimes are taken to be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return value


def _bool_from_storage(value: Any) -> Any:
    if value is None:
        return None
    return bool(value)


def _identity(value: Any) -> Any:
    return value


@dataclass(frozen=True)
class FieldType:
    """Storage and wire behaviour of one field type.

    Attributes:
        name: Type name as written in entity metadata
        storage_type: SQLite column affinity
        python_type: Type the request decoder accepts for the field
        parse_query: Converts a query-string value into a filter value
        to_storage: Converts a decoded value into a column value
        from_storage: Converts a column value into a serializable value
    """

    name: str
    storage_type: str
    python_type: type
    parse_query: Callable[[str], Any]
    to_storage: Callable[[Any], Any] = _identity
    from_storage: Callable[[Any], Any] = _identity


# Built-in field types
FIELD_TYPES: dict[str, FieldType] = {
    "int": FieldType(
        name="int",
        storage_type="INTEGER",
        python_type=int,
        parse_query=_parse_int,
    ),
    "float": FieldType(
        name="float",
        storage_type="REAL",
        python_type=float,
        parse_query=float,
    ),
    "string": FieldType(
        name="string",
        storage_type="TEXT",
        python_type=str,
        parse_query=str,
    ),
    "text": FieldType(
        name="text",
        storage_type="TEXT",
        python_type=str,
        parse_query=str,
    ),
    "enum": FieldType(
        name="enum",
        storage_type="TEXT",
        python_type=str,
        parse_query=str,
    ),
    "bool": FieldType(
        name="bool",
        storage_type="INTEGER",  # 0/1
        python_type=bool,
        parse_query=_parse_bool,
        to_storage=_identity,
        from_storage=_bool_from_storage,
    ),
    "time": FieldType(
        name="time",
        storage_type="TEXT",  # ISO format
        python_type=datetime,
        parse_query=_parse_time,
        to_storage=_time_to_storage,
    ),
}

# Storage-side default expressions accepted for `default: now`
NOW_DEFAULT = "(strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))"


def is_known_type(type_name: str) -> bool:
    return type_name in FIELD_TYPES


def get_field_type(type_name: str) -> FieldType:
    """Get field type definition.

    Raises:
        ValueError: If the type is not registered
    """
    if type_name not in FIELD_TYPES:
        raise ValueError(
            f"Unknown field type '{type_name}'. "
            f"Available types: {', '.join(sorted(FIELD_TYPES))}"
        )
    return FIELD_TYPES[type_name]


def get_storage_type(type_name: str) -> str:
    """Get SQLite storage type for a field type."""
    return get_field_type(type_name).storage_type


def to_snake(name: str) -> str:
    """Convert an entity name to snake_case (``GroupMember`` -> ``group_member``)."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)
