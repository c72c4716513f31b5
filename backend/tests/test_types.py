"""Tests for field types and the tri-state payload."""

from datetime import datetime, timedelta, timezone

import pytest

from crudforge.core.payload import ABSENT, MutationPayload
from crudforge.core.types import (
    INT64_MAX,
    NOW_DEFAULT,
    get_field_type,
    get_storage_type,
    is_known_type,
    to_snake,
)


class TestFieldTypes:
    def test_storage_types(self):
        assert get_storage_type("int") == "INTEGER"
        assert get_storage_type("bool") == "INTEGER"
        assert get_storage_type("time") == "TEXT"

    def test_unknown_type(self):
        assert not is_known_type("money")
        with pytest.raises(ValueError, match="Unknown field type 'money'"):
            get_field_type("money")

    @pytest.mark.parametrize(
        "type_name,raw,expected",
        [
            ("int", "42", 42),
            ("float", "1.5", 1.5),
            ("bool", "true", True),
            ("bool", "0", False),
            ("string", "Kuro", "Kuro"),
        ],
    )
    def test_parse_query(self, type_name, raw, expected):
        assert get_field_type(type_name).parse_query(raw) == expected

    @pytest.mark.parametrize("type_name,raw", [("int", "x"), ("bool", "maybe"), ("time", "yesterday")])
    def test_parse_query_rejects(self, type_name, raw):
        with pytest.raises(ValueError):
            get_field_type(type_name).parse_query(raw)

    def test_time_round_trip_through_storage(self):
        time = get_field_type("time")
        stored = time.to_storage(datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc))
        assert stored == "2024-05-01T10:00:00Z"
        assert time.parse_query("2024-05-01T10:00:00Z") == stored

    def test_time_storage_is_utc_with_z(self):
        time = get_field_type("time")
        plus_two = timezone(timedelta(hours=2))
        assert time.to_storage(datetime(2024, 5, 1, 12, 0, tzinfo=plus_two)) == "2024-05-01T10:00:00Z"
        assert time.to_storage(datetime(2024, 5, 1, 10, 0)) == "2024-05-01T10:00:00Z"
        assert time.parse_query("2024-05-01T10:00:00+00:00") == "2024-05-01T10:00:00Z"
        assert "%SZ" in NOW_DEFAULT

    def test_int_query_limited_to_64_bits(self):
        assert get_field_type("int").parse_query(str(INT64_MAX)) == INT64_MAX
        with pytest.raises(ValueError, match="out of range"):
            get_field_type("int").parse_query(str(INT64_MAX + 1))

    def test_bool_from_storage(self):
        assert get_field_type("bool").from_storage(1) is True
        assert get_field_type("bool").from_storage(None) is None


def test_to_snake():
    assert to_snake("Pet") == "pet"
    assert to_snake("GroupMember") == "group_member"
    assert to_snake("createdAt") == "created_at"


class TestMutationPayload:
    def test_three_states(self):
        payload = MutationPayload("User", {"name": "Ann", "email": None})
        assert payload.get("name") == "Ann"
        assert payload.is_cleared("email")
        assert payload.get("age") is ABSENT
        assert not payload.is_present("age")

    def test_absent_is_falsy_singleton(self):
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"
        assert type(ABSENT)() is ABSENT

    def test_truthiness(self):
        assert not MutationPayload("User")
        assert MutationPayload("User", {"name": None})
