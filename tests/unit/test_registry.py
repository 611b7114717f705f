"""
Unit tests for the model registry.

Tests get-or-register memoization, loose argument classification and
model deletion.
"""

import pytest

from mdb_connection.connection import Connection, get_default_connection
from mdb_connection.model import Model
from mdb_connection.registry import (
    classify_model_args,
    collection_name_of,
    create_model,
    delete_models,
    model,
    model_names,
    resolve_targets,
)
from mdb_connection.schema import create_schema, create_sub_schema


@pytest.fixture
def user_schema():
    return create_schema({"name": {"type": str, "index": True}})


@pytest.mark.unit
class TestClassifyModelArgs:
    def test_any_order(self, user_schema):
        connection = Connection()
        for args in [
            ("User", user_schema, connection),
            (connection, "User", user_schema),
            (user_schema, connection, "User"),
        ]:
            bound = classify_model_args(args)
            assert bound.name == "User"
            assert bound.schema is user_schema
            assert bound.connection is connection

    def test_none_ignored(self):
        assert classify_model_args([None, "User", None]) == ("User", None, None)

    def test_rejects_unknown(self):
        with pytest.raises(TypeError):
            classify_model_args([42])


@pytest.mark.unit
class TestModel:
    def test_register_then_get(self, user_schema):
        registered = model("User", user_schema)
        assert isinstance(registered, Model)
        assert registered.connection is get_default_connection()
        assert model("User") is registered

    def test_existing_model_wins_over_new_schema(self, user_schema):
        registered = model("User", user_schema)
        other = create_schema({"email": str})
        assert model("User", other) is registered
        assert registered.schema is user_schema

    def test_unknown_without_schema_is_none(self):
        assert model("Missing") is None

    def test_generated_name(self, user_schema):
        registered = model(user_schema)
        assert registered.model_name
        assert model(registered.model_name) is registered

    def test_keywords_win(self, user_schema):
        connection = Connection()
        registered = model("Ignored", name="User", schema=user_schema, connection=connection)
        assert registered.model_name == "User"
        assert registered.connection is connection
        assert model("User") is None

    def test_models_are_per_connection(self, user_schema):
        first, second = Connection(), Connection()
        a = model("User", user_schema, first)
        b = model(second, user_schema, "User")
        assert a is not b
        assert model("User", first) is a
        assert model("User", second) is b

    def test_registration_failure_is_none(self, caplog):
        embedded = create_sub_schema({"street": str})
        assert model("Address", embedded) is None
        assert model_names() == []
        assert "Could not register model 'Address'" in caplog.text

    def test_static_shadowing_attribute_is_none(self):
        schema = create_schema({}).static("collection", lambda self: None)
        assert model("Broken", schema) is None

    def test_statics_are_bound(self):
        schema = create_schema({}).static("describe", lambda self: f"model {self.model_name}")
        registered = model("Thing", schema)
        assert registered.describe() == "model Thing"


@pytest.mark.unit
class TestModelNames:
    def test_sorted(self, user_schema):
        model("Zebra", user_schema)
        model("Apple", user_schema)
        assert model_names() == ["Apple", "Zebra"]

    def test_per_connection(self, user_schema):
        connection = Connection()
        model("Edge", user_schema, connection)
        assert model_names(connection) == ["Edge"]
        assert model_names() == []


@pytest.mark.unit
class TestDeleteModels:
    def test_delete_by_name(self, user_schema):
        model("A", user_schema)
        model("B", user_schema)
        assert delete_models("A") == ["A"]
        assert model_names() == ["B"]
        assert model("A") is None

    def test_delete_all(self, user_schema):
        model("A", user_schema)
        model("B", user_schema)
        assert delete_models() == ["A", "B"]
        assert model_names() == []

    def test_delete_unknown_is_noop(self, user_schema):
        model("A", user_schema)
        assert delete_models("Nope") == []
        assert model_names() == ["A"]

    def test_delete_by_model_uses_its_connection(self, user_schema):
        connection = Connection()
        registered = model("A", user_schema, connection)
        model("A", user_schema)
        assert delete_models(registered) == ["A"]
        assert model_names(connection) == []
        assert model_names() == ["A"]

    def test_explicit_connection(self, user_schema):
        connection = Connection()
        model("A", user_schema, connection)
        model("B", user_schema, connection)
        assert delete_models(connection, "B", "B") == ["B"]
        assert model_names(connection) == ["A"]

    def test_reregister_after_delete(self, user_schema):
        first = model("A", user_schema)
        delete_models("A")
        second = model("A", user_schema)
        assert second is not first


@pytest.mark.unit
class TestResolveTargets:
    def test_defaults(self):
        targets = resolve_targets([])
        assert targets.connection is get_default_connection()
        assert targets.names == []

    def test_dedupes_preserving_order(self):
        assert resolve_targets(["b", "a", "b"]).names == ["b", "a"]

    def test_rejects_second_connection(self):
        with pytest.raises(TypeError):
            resolve_targets([Connection(), Connection()])

    def test_rejects_unknown(self):
        with pytest.raises(TypeError):
            resolve_targets([3.14])


@pytest.mark.unit
class TestCreateModel:
    def test_create_model(self):
        registered = create_model(
            {"name": {"type": str, "unique": True}}, {"model_name": "Person", "auto_index": False}
        )
        assert registered.model_name == "Person"
        assert registered.collection_name == "people"
        assert registered.auto_index is False
        assert "model_name" not in registered.schema.options
        assert model("Person") is registered

    def test_invalid_definition_is_none(self):
        assert create_model({"age": {"type": int, "index": "up"}}, {"model_name": "Bad"}) is None
        assert model_names() == []

    def test_on_connection(self):
        connection = Connection()
        registered = create_model({}, {"model_name": "Edge"}, connection=connection)
        assert registered.connection is connection
        assert model_names(connection) == ["Edge"]


@pytest.mark.unit
class TestCollectionNameOf:
    def test_model(self, user_schema):
        assert collection_name_of(model("Category", user_schema)) == "categories"

    def test_explicit_collection(self):
        schema = create_schema({}, {"collection": "folks"})
        model("User", schema)
        assert collection_name_of("User") == "folks"

    def test_unregistered_name(self):
        assert collection_name_of("Edge") == "edges"
