"""
MDB_CONNECTION - MongoDB connection and model manager

Connection-string parsing and building, connection lifecycle, a memoizing
model registry and maintenance operations (clear, index sync, drop) on top
of motor.
"""

from .config import ConnectionConfig
from .connection import (
    Connection,
    ConnectionHolder,
    ReadyState,
    connect,
    disconnect,
    get_default_connection,
    get_holder,
    is_aggregate,
    is_connected,
    is_connection,
    is_query,
    reset_holder,
)
from .constants import SCHEMA_OPTIONS, SUB_SCHEMA_OPTIONS
from .debug import disable_debug, enable_debug, is_debug_enabled
from .exceptions import (
    ConfigurationError,
    ConnectError,
    InvalidUriError,
    MaintenanceError,
    MongoDBConnectionError,
    NotConnectedError,
    RegistrationError,
    SchemaDefinitionError,
)
from .loader import load_models
from .maintenance import clear, drop, sync_indexes
from .model import Model, is_model
from .registry import collection_name_of, create_model, delete_models, model, model_names
from .schema import Schema, create_schema, create_sub_schema, is_schema
from .uri import HostPort, ParsedUri, UriAuth, build_uri, parse_uri

__version__ = "0.2.0"

__all__ = [
    # URI
    "parse_uri",
    "build_uri",
    "ParsedUri",
    "HostPort",
    "UriAuth",
    # Connection
    "Connection",
    "ConnectionConfig",
    "ConnectionHolder",
    "ReadyState",
    "connect",
    "disconnect",
    "get_default_connection",
    "get_holder",
    "reset_holder",
    "is_connection",
    "is_connected",
    "is_query",
    "is_aggregate",
    # Schema & models
    "SCHEMA_OPTIONS",
    "SUB_SCHEMA_OPTIONS",
    "Schema",
    "create_schema",
    "create_sub_schema",
    "is_schema",
    "Model",
    "is_model",
    "model",
    "model_names",
    "create_model",
    "delete_models",
    "collection_name_of",
    "load_models",
    # Maintenance
    "clear",
    "sync_indexes",
    "drop",
    # Debug
    "enable_debug",
    "disable_debug",
    "is_debug_enabled",
    # Errors
    "MongoDBConnectionError",
    "InvalidUriError",
    "ConfigurationError",
    "ConnectError",
    "NotConnectedError",
    "SchemaDefinitionError",
    "RegistrationError",
    "MaintenanceError",
]
