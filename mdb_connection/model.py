"""
Models: schemas bound to a name and a connection.

A ``Model`` gives access to the collection backing its schema and carries
the index operations used by the maintenance layer (create, clean and
synchronize the declared indexes).

This module is part of MDB_CONNECTION.
"""

import logging
import re
import types
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import CollectionInvalid
from pymongo.results import DeleteResult

from .connection import Connection
from .constants import ID_INDEX_NAME
from .exceptions import NotConnectedError, RegistrationError
from .schema import Schema

logger = logging.getLogger(__name__)

# Index options compared when deciding whether a live index matches its declaration
_COMPARED_INDEX_OPTIONS = ("unique", "sparse", "expireAfterSeconds", "partialFilterExpression")

_UNCOUNTABLES = frozenset(
    {
        "advice", "energy", "excretion", "digestion", "cooperation", "health",
        "justice", "labour", "machinery", "equipment", "information", "pollution",
        "sewage", "paper", "money", "species", "series", "rain", "rice", "fish",
        "sheep", "moose", "deer", "news", "expertise", "status", "media",
    }
)  # fmt: skip

_PLURAL_RULES = [
    (re.compile(r"(m)an$", re.I), r"\1en"),
    (re.compile(r"(pe)rson$", re.I), r"\1ople"),
    (re.compile(r"(child)$", re.I), r"\1ren"),
    (re.compile(r"^(ox)$", re.I), r"\1en"),
    (re.compile(r"(ax|test)is$", re.I), r"\1es"),
    (re.compile(r"(octop|vir)us$", re.I), r"\1i"),
    (re.compile(r"(alias|status)$", re.I), r"\1es"),
    (re.compile(r"(bu)s$", re.I), r"\1ses"),
    (re.compile(r"(buffal|tomat|potat)o$", re.I), r"\1oes"),
    (re.compile(r"([ti])um$", re.I), r"\1a"),
    (re.compile(r"sis$", re.I), "ses"),
    (re.compile(r"(?:([^f])fe|([lr])f)$", re.I), r"\1\2ves"),
    (re.compile(r"(hive)$", re.I), r"\1s"),
    (re.compile(r"([^aeiouy]|qu)y$", re.I), r"\1ies"),
    (re.compile(r"(x|ch|ss|sh)$", re.I), r"\1es"),
    (re.compile(r"(matr|vert|ind)ix|ex$", re.I), r"\1ices"),
    (re.compile(r"([ml])ouse$", re.I), r"\1ice"),
    (re.compile(r"(quiz)$", re.I), r"\1zes"),
    (re.compile(r"s$", re.I), "s"),
    (re.compile(r"([^a-z])$", re.I), r"\1"),
    (re.compile(r"$"), "s"),
]


def pluralize(name: str) -> str:
    """
    Derive a collection name from a model name.

    The name is lower-cased and pluralized with simple English rules
    ("Edge" -> "edges", "Person" -> "people", "Category" -> "categories").
    """
    name = name.lower()
    if name in _UNCOUNTABLES:
        return name
    for pattern, replacement in _PLURAL_RULES:
        if pattern.search(name):
            return pattern.sub(replacement, name, count=1)
    return name


def _index_matches(live: dict[str, Any], declared: dict[str, Any]) -> bool:
    if dict(live.get("key", {})) != dict(declared["key"]):
        return False
    return all(live.get(opt) == declared.get(opt) for opt in _COMPARED_INDEX_OPTIONS)


class Model:
    """
    A schema bound to a name on a connection.

    Attributes:
        model_name: Registered name
        schema: Schema backing the model
        connection: Connection the model is registered on
        collection_name: Name of the backing collection
        auto_index: Whether declared indexes are built when the connection opens
    """

    def __init__(self, model_name: str, schema: Schema, connection: Connection) -> None:
        if not model_name:
            raise RegistrationError("Model name must not be empty")
        if schema.is_embedded:
            raise RegistrationError(
                "Embedded schemas cannot back a model", model_name=model_name
            )

        self.model_name = model_name
        self.schema = schema
        self.connection = connection
        self.collection_name: str = schema.options.get("collection") or pluralize(model_name)
        self.auto_index: bool = schema.options.get("auto_index", True)

        for static_name, fn in schema.statics.items():
            if hasattr(type(self), static_name) or static_name in vars(self):
                raise RegistrationError(
                    f"Static '{static_name}' shadows a model attribute", model_name=model_name
                )
            setattr(self, static_name, types.MethodType(fn, self))

    def __repr__(self) -> str:
        return (
            f"Model(model_name={self.model_name!r}, collection={self.collection_name!r}, "
            f"connection={self.connection.id})"
        )

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """
        The motor database of the model's connection.

        Raises:
            NotConnectedError: If the connection has no live client
        """
        if self.connection.db is None:
            raise NotConnectedError(
                f"Model '{self.model_name}' has no open connection",
                context={"model_name": self.model_name, "connection_id": self.connection.id},
            )
        return self.connection.db

    @property
    def collection(self) -> AsyncIOMotorCollection:
        """The backing motor collection (raises NotConnectedError while disconnected)."""
        return self.database[self.collection_name]

    async def create_collection(self) -> AsyncIOMotorCollection:
        """Create the backing collection if it does not exist yet."""
        try:
            await self.database.create_collection(self.collection_name)
        except CollectionInvalid:
            logger.debug(f"Collection '{self.collection_name}' already exists")
        return self.collection

    async def list_indexes(self) -> list[dict[str, Any]]:
        """Indexes currently present on the backing collection."""
        cursor = self.collection.list_indexes()
        return await cursor.to_list(length=None)

    async def delete_many(self, filter: dict[str, Any] | None = None) -> DeleteResult:
        """Delete every document matching ``filter`` (all documents by default)."""
        return await self.collection.delete_many(filter or {})

    async def create_indexes(self) -> list[str]:
        """
        Create the declared indexes.

        Returns:
            Names of the declared indexes
        """
        index_models = self.schema.index_models()
        if not index_models:
            return []
        names = await self.collection.create_indexes(index_models)
        logger.info(f"Created indexes {names} on '{self.collection_name}'")
        return names

    async def clean_indexes(self) -> list[str]:
        """
        Drop every index except ``_id_``.

        Returns:
            Names of the dropped indexes
        """
        names = [idx["name"] for idx in await self.list_indexes() if idx["name"] != ID_INDEX_NAME]
        if names:
            await self.collection.drop_indexes()
            logger.info(f"Dropped indexes {names} on '{self.collection_name}'")
        return names

    async def sync_indexes(self) -> list[str]:
        """
        Reconcile the live indexes with the declared ones.

        Live indexes that are not declared, or whose keys/options differ from
        the declaration of the same name, are dropped; declared indexes are
        then created.

        Returns:
            Names of the dropped indexes

        Raises:
            OperationFailure: If the server rejects an index operation
        """
        index_models = self.schema.index_models()
        declared = {model.document["name"]: model.document for model in index_models}

        dropped = []
        for live in await self.list_indexes():
            name = live["name"]
            if name == ID_INDEX_NAME:
                continue
            if name in declared and _index_matches(live, declared[name]):
                continue
            await self.collection.drop_index(name)
            dropped.append(name)

        if index_models:
            await self.collection.create_indexes(index_models)

        logger.info(
            f"Synced indexes of '{self.collection_name}': declared={list(declared)}, "
            f"dropped={dropped}"
        )
        return dropped


def is_model(value: Any) -> bool:
    """Check whether a value is a Model."""
    return isinstance(value, Model)
