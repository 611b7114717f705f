"""
Connection management for MDB_CONNECTION.

A ``Connection`` is a handle to a live or pending MongoDB connection. It
wraps a motor client, tracks the connection's ready state and owns the
models registered on it.

A process-wide ``ConnectionHolder`` keeps the default connection (created
lazily, disconnected, so models can be registered before connecting) and
every connection opened through ``connect``. Tests reset it with
``reset_holder()``.

This module is part of MDB_CONNECTION.

Usage:
    from mdb_connection.connection import connect, disconnect

    connection = await connect("mongodb://localhost/app")
    ...
    await disconnect()
"""

import asyncio
import itertools
import logging
import threading
import time
from enum import IntEnum
from typing import Any

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCommandCursor,
    AsyncIOMotorCursor,
    AsyncIOMotorDatabase,
    AsyncIOMotorLatentCommandCursor,
)
from pymongo.errors import ConfigurationError as DriverConfigurationError
from pymongo.errors import (
    ConnectionFailure,
    InvalidOperation,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from .config import ConnectionConfig
from .constants import DEFAULT_CONNECTION_DATABASE
from .debug import command_logger
from .exceptions import ConnectError, MongoDBConnectionError
from .observability import connection_context, record_operation
from .observability import get_logger as get_contextual_logger
from .uri import parse_uri

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class ReadyState(IntEnum):
    """Lifecycle phase of a connection."""

    DISCONNECTED = 0
    CONNECTED = 1
    CONNECTING = 2
    DISCONNECTING = 3


class Connection:
    """
    Handle to a MongoDB connection.

    Attributes:
        id: Process-unique identifier
        uri: Connection string the handle was opened with
        host: First seed host
        port: Port of the first seed host
        name: Database name
        ready_state: Current ReadyState
        client: Motor client, None while disconnected
        db: Motor database, None while disconnected
        models: Registered models by name
    """

    _ids = itertools.count(1)

    def __init__(self) -> None:
        self.id: int = next(Connection._ids)
        self.uri: str | None = None
        self.host: str | None = None
        self.port: int | None = None
        self.name: str | None = None
        self.ready_state: ReadyState = ReadyState.DISCONNECTED
        self.client: AsyncIOMotorClient | None = None
        self.db: AsyncIOMotorDatabase | None = None
        self.models: dict[str, Any] = {}
        # Guards check-then-register on ``models``
        self.models_lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"Connection(id={self.id}, host={self.host!r}, port={self.port}, "
            f"name={self.name!r}, ready_state={self.ready_state.name})"
        )

    def model_names(self) -> list[str]:
        """Deduplicated, sorted names of the registered models."""
        return sorted(set(self.models))

    async def open(
        self,
        uri: str,
        config: ConnectionConfig | None = None,
        **client_options: Any,
    ) -> "Connection":
        """
        Open the connection.

        The handle moves to CONNECTING, the server is pinged, and on success
        the handle is CONNECTED. Models registered with ``auto_index`` get
        their declared indexes built.

        Args:
            uri: Connection string
            config: Connection configuration (defaults from the environment)
            **client_options: Extra keyword options for AsyncIOMotorClient

        Returns:
            The connection

        Raises:
            InvalidUriError: If the connection string is malformed
            ConnectError: If the server cannot be reached
        """
        start_time = time.time()
        config = config or ConnectionConfig()
        parsed = parse_uri(uri)

        self.uri = uri
        self.host = parsed.host
        self.port = parsed.port
        self.name = parsed.database or DEFAULT_CONNECTION_DATABASE
        self.ready_state = ReadyState.CONNECTING

        with connection_context(self.id, db_name=self.name):
            await self._start(uri, config, start_time, **client_options)
        return self

    async def _start(
        self, uri: str, config: ConnectionConfig, start_time: float, **client_options: Any
    ) -> None:
        options = {
            "serverSelectionTimeoutMS": config.server_selection_timeout_ms,
            "appname": config.client_appname,
            "event_listeners": [command_logger],
            **client_options,
        }

        contextual_logger.info(
            "Opening MongoDB connection",
            extra={"connection_id": self.id, "host": self.host, "db_name": self.name},
        )

        client = None
        try:
            client = AsyncIOMotorClient(uri, **options)
            await client.admin.command("ping")
        except (
            ConnectionFailure,
            ServerSelectionTimeoutError,
            DriverConfigurationError,
            OperationFailure,
        ) as e:
            if client is not None:
                client.close()
            self.ready_state = ReadyState.DISCONNECTED
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.open", duration_ms, success=False, db_name=self.name)
            contextual_logger.error(
                "MongoDB connection failed",
                extra={
                    "connection_id": self.id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise ConnectError(
                f"Failed to connect to MongoDB: {e}",
                mongo_uri=uri,
                db_name=self.name,
                context={"error_type": type(e).__name__},
            ) from e

        self.client = client
        self.db = client[self.name]
        self.ready_state = ReadyState.CONNECTED

        await self._build_auto_indexes()

        duration_ms = (time.time() - start_time) * 1000
        record_operation("connection.open", duration_ms, success=True, db_name=self.name)
        contextual_logger.info(
            "MongoDB connection opened",
            extra={
                "connection_id": self.id,
                "db_name": self.name,
                "duration_ms": round(duration_ms, 2),
            },
        )

    async def _build_auto_indexes(self) -> None:
        for model in list(self.models.values()):
            if not model.auto_index:
                continue
            try:
                await model.create_indexes()
            except (OperationFailure, ConnectionFailure) as e:
                # Index build errors never fail the connection itself
                logger.error(
                    f"Failed to build indexes for model '{model.model_name}': {e}",
                    exc_info=True,
                )

    async def close(self) -> None:
        """
        Close the connection.

        Idempotent: closing a disconnected handle is a no-op.

        Raises:
            MongoDBConnectionError: If the driver fails to close the client
                (the handle still ends up DISCONNECTED)
        """
        if self.ready_state == ReadyState.DISCONNECTED and self.client is None:
            return

        self.ready_state = ReadyState.DISCONNECTING
        client, self.client, self.db = self.client, None, None
        try:
            if client is not None:
                client.close()
        except (InvalidOperation, RuntimeError) as e:
            logger.warning(f"Error closing MongoDB connection {self.id}: {e}")
            raise MongoDBConnectionError(
                f"Failed to close connection: {e}", context={"connection_id": self.id}
            ) from e
        finally:
            self.ready_state = ReadyState.DISCONNECTED
        logger.info(f"MongoDB connection {self.id} closed")

    async def drop_database(self) -> None:
        """Delete the connection's whole database."""
        if self.client is None:
            raise ConnectError("Connection is not open", db_name=self.name)
        await self.client.drop_database(self.name)
        logger.info(f"Dropped database '{self.name}'")


class ConnectionHolder:
    """
    Process-wide holder of the default connection and of every connection
    opened through ``connect``.
    """

    def __init__(self) -> None:
        self._default: Connection | None = None
        self._connections: list[Connection] = []
        self._lock = threading.Lock()
        self._connect_lock: asyncio.Lock | None = None
        self._connect_loop: asyncio.AbstractEventLoop | None = None

    @property
    def default(self) -> Connection:
        """The default connection, created disconnected on first access."""
        if self._default is None:
            with self._lock:
                if self._default is None:
                    self._default = Connection()
                    self._connections.append(self._default)
        return self._default

    @property
    def connect_lock(self) -> asyncio.Lock:
        """
        Lock coalescing concurrent get-or-create connects.

        An asyncio lock belongs to one event loop, so a new lock is made
        whenever the running loop differs from the one the last lock served.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._connect_lock is None or self._connect_loop is not loop:
                self._connect_lock = asyncio.Lock()
                self._connect_loop = loop
            return self._connect_lock

    @property
    def connections(self) -> list[Connection]:
        """Snapshot of the tracked connections, default first."""
        with self._lock:
            return list(self._connections)

    def track(self, connection: Connection) -> None:
        with self._lock:
            if connection not in self._connections:
                self._connections.append(connection)

    def untrack(self, connection: Connection) -> None:
        with self._lock:
            if connection is not self._default and connection in self._connections:
                self._connections.remove(connection)


_holder = ConnectionHolder()


def get_holder() -> ConnectionHolder:
    """Return the process-wide connection holder."""
    return _holder


def reset_holder() -> ConnectionHolder:
    """
    Replace the process-wide holder with a fresh one.

    Open connections of the previous holder are not closed.

    Returns:
        The new holder
    """
    global _holder
    _holder = ConnectionHolder()
    return _holder


def get_default_connection() -> Connection:
    """Return the default connection (possibly disconnected)."""
    return _holder.default


def is_connection(value: Any) -> bool:
    """Check whether a value is a Connection."""
    return isinstance(value, Connection)


def is_connected(value: Any) -> bool:
    """Check whether a value is a Connection in the CONNECTED state."""
    return is_connection(value) and value.ready_state == ReadyState.CONNECTED


def is_query(value: Any) -> bool:
    """Check whether a value is a find cursor (``collection.find(...)``)."""
    return isinstance(value, AsyncIOMotorCursor)


def is_aggregate(value: Any) -> bool:
    """
    Check whether a value is an aggregation cursor.

    ``collection.aggregate(...)`` returns a latent command cursor that only
    sends the command on first iteration; both that and an already started
    command cursor count.
    """
    return isinstance(value, (AsyncIOMotorLatentCommandCursor, AsyncIOMotorCommandCursor))


async def connect(
    uri: str | None = None,
    *,
    force_new: bool = False,
    config: ConnectionConfig | None = None,
    **client_options: Any,
) -> Connection:
    """
    Open a connection.

    The connection string is resolved as: explicit ``uri`` > MONGODB_URI >
    MONGODB_URL > ``mongodb://localhost/{app-name}-{environment}``.

    With ``force_new=False`` (get-or-create) the default connection is used:
    concurrent callers are coalesced, an already connected default on the
    same URI is returned as is, and a default connected elsewhere is
    reopened on the new URI (its registered models are kept).

    With ``force_new=True`` a fresh, non-default connection is always
    opened. It is tracked so that ``disconnect()`` closes it.

    Args:
        uri: Connection string
        force_new: Always dial a new connection
        config: Connection configuration (defaults from the environment)
        **client_options: Extra keyword options for AsyncIOMotorClient

    Returns:
        The connected Connection

    Raises:
        InvalidUriError: If the connection string is malformed
        ConfigurationError: If the configuration is invalid
        ConnectError: If the server cannot be reached
    """
    config = config or ConnectionConfig()
    config.validate()
    resolved = config.resolve_uri(uri)
    parse_uri(resolved)

    holder = get_holder()

    if force_new:
        connection = Connection()
        holder.track(connection)
        try:
            return await connection.open(resolved, config, **client_options)
        except ConnectError:
            holder.untrack(connection)
            raise

    async with holder.connect_lock:
        connection = holder.default
        if connection.ready_state == ReadyState.CONNECTED and connection.uri == resolved:
            logger.debug(f"Reusing default connection {connection.id}")
            return connection
        if connection.ready_state != ReadyState.DISCONNECTED:
            logger.info(
                f"Default connection {connection.id} moves from {connection.uri} to {resolved}"
            )
            await connection.close()
        return await connection.open(resolved, config, **client_options)


async def disconnect(connection: Connection | None = None) -> None:
    """
    Close a connection, or every tracked connection when none is given.

    Idempotent against already closed connections. When closing all, every
    connection is attempted and the first failure is raised afterwards.

    Args:
        connection: Connection to close

    Raises:
        MongoDBConnectionError: If the driver fails to close a client
    """
    start_time = time.time()
    holder = get_holder()

    targets = [connection] if connection is not None else holder.connections
    first_error: MongoDBConnectionError | None = None
    for target in targets:
        try:
            await target.close()
        except MongoDBConnectionError as e:
            first_error = first_error or e
        finally:
            holder.untrack(target)

    duration_ms = (time.time() - start_time) * 1000
    record_operation("connection.disconnect", duration_ms, success=first_error is None)
    if first_error is not None:
        raise first_error
