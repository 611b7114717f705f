"""
Schema definitions.

A ``Schema`` is a declarative description of a document: a mapping of field
name to descriptor, a set of options and the secondary indexes the
collection should carry. It is independent of any connection; binding it to
a name on a connection produces a ``Model`` (see ``mdb_connection.registry``).

A field descriptor is one of:

- a Python type (``str``, ``int``, ``datetime`` ...),
- a dict with a ``type`` key and constraints (``index``, ``unique``,
  ``sparse``, ``expires``, ``required``, ``default`` ...),
- a dict without ``type``: a nested definition,
- a ``Schema``: an embedded document,
- a one-element list of any of the above: an array.

Two option presets exist: ``SCHEMA_OPTIONS`` for root documents and
``SUB_SCHEMA_OPTIONS`` for embedded documents. Embedded schemas never carry
their own ``_id``.

This module is part of MDB_CONNECTION.
"""

import copy
import logging
from collections.abc import Callable, Mapping
from typing import Any

from jsonschema import Draft7Validator
from pymongo import ASCENDING, IndexModel

from .constants import SCHEMA_OPTIONS, SUB_SCHEMA_OPTIONS
from .exceptions import SchemaDefinitionError

logger = logging.getLogger(__name__)

IndexKeys = list[tuple[str, Any]]

_INDEX_DIRECTION = {
    "anyOf": [
        {"type": "boolean"},
        {"enum": [1, -1]},
        {"enum": ["text", "2d", "2dsphere", "hashed"]},
    ]
}

FIELD_DESCRIPTOR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "index": _INDEX_DIRECTION,
        "unique": {"type": "boolean"},
        "sparse": {"type": "boolean"},
        "required": {"type": "boolean"},
        "expires": {"type": "integer", "minimum": 0},
    },
}

SCHEMA_OPTIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "_id": {"type": "boolean"},
        "id": {"type": "boolean"},
        "timestamps": {"type": ["boolean", "object"]},
        "to_json": {"type": "object"},
        "to_object": {"type": "object"},
        "emit_index_errors": {"type": "boolean"},
        "auto_index": {"type": "boolean"},
        "collection": {"type": "string", "minLength": 1},
    },
}

_descriptor_validator = Draft7Validator(FIELD_DESCRIPTOR_SCHEMA)
_options_validator = Draft7Validator(SCHEMA_OPTIONS_SCHEMA)


def _raise_first_error(validator: Draft7Validator, instance: Any, where: str) -> None:
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    if errors:
        error = errors[0]
        path = ".".join(str(p) for p in error.path)
        error_path = f"{where}.{path}" if path else where
        raise SchemaDefinitionError(f"Invalid {where}: {error.message}", error_path=error_path)


def normalize_keys(keys: str | Mapping[str, Any] | list[tuple[str, Any]]) -> IndexKeys:
    """
    Normalize index keys to a list of (field, direction) tuples.

    Args:
        keys: A field name, a mapping of field to direction or a list of tuples

    Returns:
        List of (field_name, direction) tuples
    """
    if isinstance(keys, str):
        return [(keys, ASCENDING)]
    if isinstance(keys, Mapping):
        return list(keys.items())
    return [tuple(pair) for pair in keys]


class Schema:
    """
    Declarative document schema.

    Attributes:
        definition: Mapping of field name to descriptor
        options: Schema options (preset merged with caller options)
        statics: Callables attached to every model built from this schema
    """

    def __init__(
        self,
        definition: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        self.definition: dict[str, Any] = dict(definition or {})
        self.options: dict[str, Any] = copy.deepcopy(dict(options or {}))
        self.statics: dict[str, Callable[..., Any]] = {}
        self.plugins: list[Callable[..., Any]] = []
        self._indexes: list[tuple[IndexKeys, dict[str, Any]]] = []

        _raise_first_error(_options_validator, self.options, "schema options")
        self._validate_definition(self.definition, prefix="")

    def __repr__(self) -> str:
        return f"Schema(fields={sorted(self.definition)}, indexes={len(self.indexes())})"

    @property
    def is_embedded(self) -> bool:
        """Whether documents of this schema live inside another document."""
        return self.options.get("_id") is False

    def _validate_definition(self, definition: Mapping[str, Any], prefix: str) -> None:
        for name, descriptor in definition.items():
            if not isinstance(name, str) or not name:
                raise SchemaDefinitionError(
                    f"Field names must be non-empty strings, got {name!r}", error_path=prefix
                )
            self._validate_descriptor(descriptor, f"{prefix}{name}")

    def _validate_descriptor(self, descriptor: Any, path: str) -> None:
        if isinstance(descriptor, Schema) or isinstance(descriptor, type):
            return
        if isinstance(descriptor, list):
            if len(descriptor) > 1:
                raise SchemaDefinitionError(
                    "Array fields take a single element descriptor", error_path=path
                )
            if descriptor:
                self._validate_descriptor(descriptor[0], path)
            return
        if isinstance(descriptor, Mapping):
            if "type" in descriptor:
                _raise_first_error(_descriptor_validator, dict(descriptor), f"field '{path}'")
                self._validate_descriptor(descriptor["type"], path)
            else:
                self._validate_definition(descriptor, prefix=f"{path}.")
            return
        if callable(descriptor):
            return
        raise SchemaDefinitionError(
            f"Unsupported descriptor {descriptor!r} for field '{path}'", error_path=path
        )

    def path(self, name: str) -> Any:
        """
        Look up the descriptor of a (dotted) field path.

        Args:
            name: Field name, e.g. "address.city"

        Returns:
            The descriptor, or None if the path is not defined
        """
        node: Any = self.definition
        for part in name.split("."):
            if isinstance(node, Schema):
                node = node.definition
            elif isinstance(node, Mapping) and "type" in node and isinstance(node["type"], Schema):
                node = node["type"].definition
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def index(
        self, keys: str | Mapping[str, Any] | list[tuple[str, Any]], **options: Any
    ) -> "Schema":
        """
        Declare a (compound) index.

        Args:
            keys: Index keys
            **options: Index options passed to the server (unique, sparse,
                name, expireAfterSeconds ...)

        Returns:
            The schema, for chaining
        """
        self._indexes.append((normalize_keys(keys), dict(options)))
        return self

    def static(self, name: str, fn: Callable[..., Any]) -> "Schema":
        """Attach a callable to every model built from this schema."""
        self.statics[name] = fn
        return self

    def plugin(self, fn: Callable[..., Any], **options: Any) -> "Schema":
        """
        Apply a plugin.

        A plugin is a callable receiving the schema (and any options) that
        adds fields, indexes or statics to it.
        """
        if options:
            fn(self, **options)
        else:
            fn(self)
        self.plugins.append(fn)
        return self

    def _field_indexes(
        self, definition: Mapping[str, Any], prefix: str = ""
    ) -> list[tuple[IndexKeys, dict[str, Any]]]:
        found: list[tuple[IndexKeys, dict[str, Any]]] = []
        for name, descriptor in definition.items():
            path = f"{prefix}{name}"
            if isinstance(descriptor, list):
                descriptor = descriptor[0] if descriptor else None
            if isinstance(descriptor, Schema):
                found.extend(
                    ([(f"{path}.{k}", d) for k, d in keys], opts)
                    for keys, opts in descriptor.indexes()
                )
            elif isinstance(descriptor, Mapping) and "type" in descriptor:
                if isinstance(descriptor["type"], Schema):
                    found.extend(
                        ([(f"{path}.{k}", d) for k, d in keys], opts)
                        for keys, opts in descriptor["type"].indexes()
                    )
                    continue
                index = descriptor.get("index")
                unique = descriptor.get("unique", False)
                expires = descriptor.get("expires")
                if not (index or unique or expires is not None):
                    continue
                direction = ASCENDING if index in (None, True, False) else index
                options: dict[str, Any] = {}
                if unique:
                    options["unique"] = True
                if descriptor.get("sparse"):
                    options["sparse"] = True
                if expires is not None:
                    options["expireAfterSeconds"] = expires
                found.append(([(path, direction)], options))
            elif isinstance(descriptor, Mapping):
                found.extend(self._field_indexes(descriptor, prefix=f"{path}."))
        return found

    def indexes(self) -> list[tuple[IndexKeys, dict[str, Any]]]:
        """
        All declared indexes: field-level flags first, then explicit ones.

        Returns:
            List of (keys, options) tuples
        """
        return self._field_indexes(self.definition) + [
            (list(keys), dict(options)) for keys, options in self._indexes
        ]

    def index_models(self) -> list[IndexModel]:
        """Declared indexes as pymongo IndexModel instances."""
        return [IndexModel(keys, **options) for keys, options in self.indexes()]


def _apply_plugins(schema: Schema, plugins: tuple[Callable[..., Any], ...]) -> Schema:
    for plugin in plugins:
        schema.plugin(plugin)
    return schema


def create_schema(
    definition: Mapping[str, Any],
    options: Mapping[str, Any] | None = None,
    *plugins: Callable[..., Any],
) -> Schema:
    """
    Create a root document schema with the default root options.

    Args:
        definition: Field definitions
        options: Options overriding SCHEMA_OPTIONS
        *plugins: Plugins applied in order

    Returns:
        The schema

    Raises:
        SchemaDefinitionError: If the definition or options are malformed
    """
    merged = {**copy.deepcopy(SCHEMA_OPTIONS), "_id": True, **dict(options or {})}
    return _apply_plugins(Schema(definition, merged), plugins)


def create_sub_schema(
    definition: Mapping[str, Any],
    options: Mapping[str, Any] | None = None,
    *plugins: Callable[..., Any],
) -> Schema:
    """
    Create an embedded document schema with the default embedded options.

    Embedded schemas never carry an ``_id``, whatever the options say.

    Args:
        definition: Field definitions
        options: Options overriding SUB_SCHEMA_OPTIONS
        *plugins: Plugins applied in order

    Returns:
        The schema
    """
    merged = {**copy.deepcopy(SUB_SCHEMA_OPTIONS), **dict(options or {}), "_id": False}
    return _apply_plugins(Schema(definition, merged), plugins)


def is_schema(value: Any) -> bool:
    """Check whether a value is a Schema."""
    return isinstance(value, Schema)
