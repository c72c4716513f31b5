"""Tests for entity descriptor loading and invariants."""

import pytest

from crudforge.core.operation import Operation
from crudforge.metadata.loader import MetadataLoader


def load(*documents):
    loader = MetadataLoader()
    loader.load_documents(list(documents))
    return loader


def owner_doc(**overrides):
    doc = {"entity": "Owner", "fields": [{"name": "name", "type": "string"}]}
    doc.update(overrides)
    return doc


class TestShippedMetadata:
    def test_loads_all_entities(self, loader):
        assert sorted(loader.list_entities()) == ["Group", "Pet", "User"]

    def test_pet_descriptor(self, loader):
        pet = loader.get_entity("Pet")
        assert pet.prefix == "/pets"
        assert [f.name for f in pet.fields] == ["name", "age"]
        assert pet.get_field("age").rules.for_operation(Operation.CREATE) == "required,gt=0"
        assert pet.get_field("age").rules.for_operation(Operation.UPDATE) == "required,gt=0"
        assert pet.get_field("name").rules.for_operation(Operation.UPDATE) == ""

    def test_owner_edge_storage(self, loader):
        owner = loader.get_entity("Pet").get_edge("owner")
        assert owner.target == "User"
        assert owner.unique and owner.required
        assert owner.column == "owner_id"

    def test_inverse_and_join_edges(self, loader):
        user = loader.get_entity("User")
        assert user.get_edge("pets").inverse == "owner"
        assert user.get_edge("groups").inverse == "users"
        assert loader.get_entity("Group").get_edge("users").through == "group_users"

    def test_default_groups_are_entity_table(self, loader):
        pet = loader.get_entity("Pet")
        assert pet.groups_for(Operation.CREATE) == frozenset({"pet"})
        assert pet.eager_for(pet.groups_for(Operation.READ)) == frozenset()

    def test_operation_groups_drive_eager_edges(self, loader):
        user = loader.get_entity("User")
        groups = user.groups_for(Operation.READ)
        assert "user:detail" in groups
        assert user.eager_for(groups) == frozenset({"pets", "groups"})


class TestDefaults:
    def test_prefix_from_plural_name(self):
        loader = load(owner_doc(pluralName="PetOwners"))
        assert loader.get_entity("Owner").prefix == "/pet_owners"

    def test_prefix_trailing_slash_removed(self):
        loader = load(owner_doc(prefix="/owners/"))
        assert loader.get_entity("Owner").prefix == "/owners"

    def test_routes_default_to_all(self):
        entity = load(owner_doc()).get_entity("Owner")
        assert entity.routes == ("create", "read", "update", "delete", "list")

    def test_unique_edge_defaults_to_column(self):
        loader = load(
            owner_doc(),
            {"entity": "Cat", "fields": [], "edges": [{"name": "owner", "target": "Owner", "unique": True}]},
        )
        assert loader.get_entity("Cat").get_edge("owner").column == "owner_id"

    def test_plural_edge_defaults_to_join_table(self):
        loader = load(
            owner_doc(edges=[{"name": "cats", "target": "Cat"}]),
            {"entity": "Cat", "fields": []},
        )
        assert loader.get_entity("Owner").get_edge("cats").through == "owner_cats"

    def test_entity_level_validation_and_groups(self):
        loader = load(
            owner_doc(
                validation={"name": "required"},
                groups={"owner:detail": ["name"]},
            )
        )
        name = loader.get_entity("Owner").get_field("name")
        assert name.rules.for_operation(Operation.CREATE) == "required"
        assert name.groups == frozenset({"owner:detail"})


class TestInvariants:
    def test_unknown_validation_member(self):
        with pytest.raises(ValueError, match="unknown field 'nickname'"):
            load(owner_doc(validation={"nickname": "required"}))

    def test_unknown_group_member(self):
        with pytest.raises(ValueError, match="unknown field 'nickname'"):
            load(owner_doc(groups={"owner": ["nickname"]}))

    def test_duplicate_member_names(self):
        with pytest.raises(ValueError, match="twice"):
            load(
                owner_doc(
                    fields=[{"name": "name"}],
                    edges=[{"name": "name", "target": "Owner", "unique": True}],
                )
            )

    def test_reserved_id(self):
        with pytest.raises(ValueError, match="reserved name 'id'"):
            load(owner_doc(fields=[{"name": "id", "type": "int"}]))

    def test_unknown_field_type(self):
        with pytest.raises(ValueError, match="unknown type 'money'"):
            load(owner_doc(fields=[{"name": "balance", "type": "money"}]))

    def test_enum_without_values(self):
        with pytest.raises(ValueError, match="no values"):
            load(owner_doc(fields=[{"name": "kind", "type": "enum"}]))

    def test_unknown_edge_target(self):
        with pytest.raises(ValueError, match="unknown entity 'Ghost'"):
            load(owner_doc(edges=[{"name": "ghost", "target": "Ghost", "unique": True}]))

    def test_unknown_inverse(self):
        with pytest.raises(ValueError, match="inverse of unknown edge"):
            load(
                owner_doc(edges=[{"name": "cats", "target": "Cat", "inverse": "owner"}]),
                {"entity": "Cat", "fields": []},
            )

    def test_column_on_plural_edge(self):
        with pytest.raises(ValueError, match="not unique"):
            load(owner_doc(edges=[{"name": "cats", "target": "Owner", "column": "cat_id"}]))

    def test_unknown_operation(self):
        with pytest.raises(ValueError, match="unknown operation 'purge'"):
            load(owner_doc(operations={"purge": {"groups": ["owner"]}}))

    def test_unknown_route(self):
        with pytest.raises(ValueError, match="unknown route 'purge'"):
            load(owner_doc(routes=["read", "purge"]))

    def test_duplicate_prefix(self):
        with pytest.raises(ValueError, match="Duplicate prefix"):
            load(owner_doc(prefix="/things"), {"entity": "Cat", "fields": [], "prefix": "/things"})

    def test_duplicate_entity(self):
        with pytest.raises(ValueError, match="Duplicate entity"):
            load(owner_doc(), owner_doc())
