"""
Maintenance operations built on the registry and the connection manager.

- ``clear``: delete every document of the given (or all) models' collections
- ``sync_indexes``: reconcile declared indexes with the live database
- ``drop``: delete the database, then disconnect

Data operations on a connection that is not connected are silent no-ops.

This module is part of MDB_CONNECTION.
"""

import asyncio
import logging
import time
from typing import Any

from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from .connection import Connection, disconnect, get_default_connection, is_connected
from .constants import INDEX_REBUILD_ERROR_CODES, INDEX_REBUILD_ERROR_NAMES
from .exceptions import MaintenanceError, MongoDBConnectionError
from .model import Model
from .observability import connection_context, get_logger, log_operation, record_operation
from .registry import resolve_targets

logger = logging.getLogger(__name__)
contextual_logger = get_logger(__name__)


def is_index_rebuild_error(error: BaseException) -> bool:
    """
    Check whether a server error calls for an index rebuild.

    Matches NamespaceExists (48), IndexOptionsConflict (85) and
    IndexKeySpecsConflict (86), by code or by code name.
    """
    if not isinstance(error, OperationFailure):
        return False
    if error.code in INDEX_REBUILD_ERROR_CODES:
        return True
    details = error.details or {}
    return details.get("codeName") in INDEX_REBUILD_ERROR_NAMES


async def clear(*args: Any) -> list[str]:
    """
    Delete all documents of the given models' collections.

    Accepts an optional leading connection followed by model names and/or
    models; without names every model of the connection is cleared (in
    sorted name order). Names that are not registered are skipped. Models
    are cleared one after the other; the first failure stops the sequence.

    Returns:
        Names of the models cleared (empty when not connected)

    Raises:
        MaintenanceError: If deleting documents fails
    """
    start_time = time.time()
    connection, names = resolve_targets(args)
    if not names:
        names = connection.model_names()

    if not is_connected(connection):
        logger.debug(f"Skipping clear: connection {connection.id} is not connected")
        return []

    cleared = []
    for name in names:
        target = connection.models.get(name)
        if target is None:
            logger.debug(f"Skipping clear of unknown model '{name}'")
            continue
        with connection_context(connection.id, db_name=connection.name, model_name=name):
            try:
                result = await target.delete_many({})
            except PyMongoError as e:
                duration_ms = (time.time() - start_time) * 1000
                record_operation(
                    "maintenance.clear", duration_ms, success=False, model_name=name
                )
                contextual_logger.error(f"Failed to clear model '{name}': {e}", exc_info=True)
                raise MaintenanceError(
                    f"Failed to clear model '{name}': {e}",
                    operation="clear",
                    model_name=name,
                ) from e
        logger.debug(
            f"Cleared '{target.collection_name}' ({getattr(result, 'deleted_count', '?')} docs)"
        )
        cleared.append(name)

    duration_ms = (time.time() - start_time) * 1000
    record_operation("maintenance.clear", duration_ms, success=True)
    log_operation(logger, "maintenance.clear", duration_ms=duration_ms, models=cleared)
    return cleared


async def _sync_model_indexes(target: Model) -> None:
    try:
        await target.sync_indexes()
        return
    except OperationFailure as e:
        if not is_index_rebuild_error(e):
            raise MaintenanceError(
                f"Failed to sync indexes of model '{target.model_name}': {e}",
                operation="sync_indexes",
                model_name=target.model_name,
            ) from e
        contextual_logger.warning(
            f"Index conflict on '{target.collection_name}' "
            f"({(e.details or {}).get('codeName', e.code)}); rebuilding all indexes"
        )
    except ConnectionFailure as e:
        raise MaintenanceError(
            f"Failed to sync indexes of model '{target.model_name}': {e}",
            operation="sync_indexes",
            model_name=target.model_name,
        ) from e

    try:
        await target.clean_indexes()
        await target.create_indexes()
    except PyMongoError as e:
        raise MaintenanceError(
            f"Failed to rebuild indexes of model '{target.model_name}': {e}",
            operation="sync_indexes",
            model_name=target.model_name,
        ) from e


async def sync_indexes(connection: Connection | None = None) -> list[str]:
    """
    Reconcile the declared indexes of every model with the database.

    Models are synced concurrently. A model whose sync hits an index
    conflict has all its indexes dropped and recreated. The first failure
    is raised; syncs already done are kept.

    Args:
        connection: Connection whose models are synced (default if None)

    Returns:
        Names of the models synced (empty when not connected)

    Raises:
        MaintenanceError: If syncing any model fails
    """
    start_time = time.time()
    connection = connection or get_default_connection()
    if not is_connected(connection):
        logger.debug(f"Skipping index sync: connection {connection.id} is not connected")
        return []

    names = connection.model_names()
    targets = [connection.models[name] for name in names if name in connection.models]

    success = False
    try:
        with connection_context(connection.id, db_name=connection.name):
            await asyncio.gather(*(_sync_model_indexes(target) for target in targets))
        success = True
    finally:
        duration_ms = (time.time() - start_time) * 1000
        record_operation("maintenance.sync_indexes", duration_ms, success=success)

    log_operation(logger, "maintenance.sync_indexes", duration_ms=duration_ms, models=names)
    return names


async def drop(connection: Connection | None = None) -> None:
    """
    Delete the connection's database, then disconnect.

    When the connection is not connected only the disconnect happens. The
    connection always ends up disconnected, even if the drop fails.

    Args:
        connection: Connection to drop (default if None)

    Raises:
        MaintenanceError: If dropping the database fails
    """
    start_time = time.time()
    connection = connection or get_default_connection()

    success = False
    try:
        if is_connected(connection):
            try:
                await connection.drop_database()
            except (PyMongoError, MongoDBConnectionError) as e:
                logger.error(f"Failed to drop database '{connection.name}': {e}", exc_info=True)
                raise MaintenanceError(
                    f"Failed to drop database '{connection.name}': {e}",
                    operation="drop",
                    context={"db_name": connection.name},
                ) from e
        success = True
    finally:
        await disconnect(connection)
        duration_ms = (time.time() - start_time) * 1000
        record_operation("maintenance.drop", duration_ms, success=success)