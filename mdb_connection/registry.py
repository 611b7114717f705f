"""
Model registry.

Get-or-register memoization of models per connection. Arguments of
``model`` and ``delete_models`` may come in any order: each one is
classified by capability (connection, schema, model, name) before dispatch.

At most one model exists per (connection, name). Registering a name twice
returns the existing model; registration failures are logged and surface as
``None`` rather than raising.

This module is part of MDB_CONNECTION.

Usage:
    from mdb_connection.registry import model, create_model

    User = create_model({"name": {"type": str, "index": True}}, {"model_name": "User"})
    assert model("User") is User
"""

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any, NamedTuple

from .connection import Connection, get_default_connection, is_connection
from .exceptions import RegistrationError, SchemaDefinitionError
from .model import Model, is_model, pluralize
from .schema import Schema, create_schema, is_schema

logger = logging.getLogger(__name__)


class ModelArgs(NamedTuple):
    """Positional arguments of ``model`` bound to their roles."""

    name: str | None
    schema: Schema | None
    connection: Connection | None


class Targets(NamedTuple):
    """A connection and the model names an operation applies to."""

    connection: Connection
    names: list[str]


def classify_model_args(args: Iterable[Any]) -> ModelArgs:
    """
    Bind loosely ordered arguments to name, schema and connection.

    Each argument is tested, in order, for being a connection, a schema and a
    string. ``None`` arguments are ignored; the first match of each role wins.

    Raises:
        TypeError: If an argument fits no role
    """
    name = schema = connection = None
    for arg in args:
        if arg is None:
            continue
        if is_connection(arg):
            connection = connection or arg
        elif is_schema(arg):
            schema = schema or arg
        elif isinstance(arg, str):
            name = name or arg
        else:
            raise TypeError(
                f"Expected a model name, a Schema or a Connection, got {type(arg).__name__}"
            )
    return ModelArgs(name, schema, connection)


def resolve_targets(args: Iterable[Any]) -> Targets:
    """
    Resolve an optional leading connection and a list of names or models.

    The connection is the explicit one, else the connection of the first
    model given, else the default connection. Duplicate names are dropped,
    keeping the first occurrence. Order is otherwise preserved.

    Raises:
        TypeError: If an argument is neither a connection, a name nor a model
    """
    connection: Connection | None = None
    names: list[str] = []
    for arg in args:
        if arg is None:
            continue
        if is_connection(arg) and connection is None:
            connection = arg
            continue
        if is_model(arg):
            connection = connection or arg.connection
            name = arg.model_name
        elif isinstance(arg, str):
            name = arg
        else:
            raise TypeError(
                f"Expected a model name, a Model or a Connection, got {type(arg).__name__}"
            )
        if name not in names:
            names.append(name)
    return Targets(connection or get_default_connection(), names)


def model(
    *args: Any,
    name: str | None = None,
    schema: Schema | None = None,
    connection: Connection | None = None,
) -> Model | None:
    """
    Get a registered model, or register it.

    Positional arguments may hold the name, the schema and the connection in
    any order; keyword arguments take precedence over them. A missing name
    gets a generated unique one and a missing connection means the default
    connection.

    If a model with the resolved name exists on the connection it is
    returned unchanged and the schema is ignored. Otherwise the schema is
    registered under the name. Without a schema, or if registration fails,
    None is returned.

    Returns:
        The model, or None when it is not available

    Raises:
        TypeError: If a positional argument fits no role
    """
    bound = classify_model_args(args)
    name = name or bound.name or str(uuid.uuid4())
    schema = schema or bound.schema
    connection = connection or bound.connection or get_default_connection()

    with connection.models_lock:
        existing = connection.models.get(name)
        if existing is not None:
            return existing
        if schema is None:
            return None
        try:
            registered = Model(name, schema, connection)
        except (RegistrationError, TypeError, ValueError) as e:
            logger.warning(
                f"Could not register model '{name}' on connection {connection.id}: {e}",
                exc_info=True,
            )
            return None
        connection.models[name] = registered

    logger.debug(f"Registered model '{name}' on connection {connection.id}")
    return registered


def model_names(connection: Connection | None = None) -> list[str]:
    """
    Names of the models registered on a connection.

    Args:
        connection: Connection to inspect (default connection if None)

    Returns:
        Deduplicated, sorted model names
    """
    return (connection or get_default_connection()).model_names()


def delete_models(*args: Any) -> list[str]:
    """
    Delete registered models.

    Accepts an optional leading connection followed by names and/or models.
    Without names, every model of the connection is deleted. Deleting an
    unknown name is a no-op.

    Returns:
        Names of the models actually deleted
    """
    connection, names = resolve_targets(args)
    if not names:
        names = connection.model_names()

    deleted = []
    with connection.models_lock:
        for name in names:
            try:
                del connection.models[name]
            except KeyError:
                logger.debug(f"Model '{name}' not registered on connection {connection.id}")
                continue
            deleted.append(name)

    if deleted:
        logger.debug(f"Deleted models {deleted} from connection {connection.id}")
    return deleted


def create_model(
    definition: Mapping[str, Any],
    options: Mapping[str, Any] | None = None,
    *plugins: Callable[..., Any],
    connection: Connection | None = None,
) -> Model | None:
    """
    Create a root schema and register it as a model.

    Args:
        definition: Field definitions
        options: Schema options, plus ``model_name`` (generated if missing)
        *plugins: Schema plugins applied in order
        connection: Connection to register on (default connection if None)

    Returns:
        The model, or None if the definition is invalid or registration fails
    """
    options = dict(options or {})
    model_name = options.pop("model_name", None)
    try:
        schema = create_schema(definition, options, *plugins)
    except SchemaDefinitionError as e:
        logger.warning(f"Could not create schema for model '{model_name}': {e}")
        return None
    return model(model_name, schema, connection)


def collection_name_of(model_or_name: Model | str, connection: Connection | None = None) -> str:
    """
    Collection name of a model.

    Registered models report their own collection; unregistered names are
    lower-cased and pluralized.

    Args:
        model_or_name: Model or model name
        connection: Connection to look the name up on (default if None)
    """
    if is_model(model_or_name):
        return model_or_name.collection_name
    registered = (connection or get_default_connection()).models.get(model_or_name)
    if registered is not None:
        return registered.collection_name
    return pluralize(model_or_name)
