"""
Constants for MDB_CONNECTION.

This module contains the shared defaults used when resolving connection
strings, opening connections and building schemas.
"""

from typing import Any, Final

# ============================================================================
# URI CONSTANTS
# ============================================================================

MONGODB_SCHEME: Final[str] = "mongodb"
"""Scheme of a standard connection string."""

MONGODB_SRV_SCHEME: Final[str] = "mongodb+srv"
"""Scheme of a DNS seed list connection string."""

SUPPORTED_SCHEMES: Final[tuple[str, ...]] = (MONGODB_SCHEME, MONGODB_SRV_SCHEME)
"""Schemes accepted by the URI parser."""

DEFAULT_HOST: Final[str] = "127.0.0.1"
"""Host used by the URI builder when none is given."""

DEFAULT_PORT: Final[int] = 27017
"""Port used by the URI builder and parser when none is given."""

DEFAULT_DATABASE: Final[str] = "admin"
"""Database used by the URI builder when none is given."""

DEFAULT_CONNECTION_DATABASE: Final[str] = "test"
"""Database selected by a connection whose URI names none."""

DEFAULT_URI_HOST: Final[str] = "localhost"
"""Host of the URI derived from the application name and environment."""

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

URI_ENV_VARS: Final[tuple[str, ...]] = ("MONGODB_URI", "MONGODB_URL")
"""Environment variables holding the default connection string, in precedence order."""

APP_NAME_ENV_VAR: Final[str] = "APP_NAME"
"""Environment variable naming the application (used in the derived database name)."""

APP_ENV_VARS: Final[tuple[str, ...]] = ("APP_ENV", "PYTHON_ENV")
"""Environment variables naming the execution environment, in precedence order."""

DEFAULT_APP_ENV: Final[str] = "development"
"""Execution environment used when none is configured."""

# ============================================================================
# DRIVER CONSTANTS
# ============================================================================

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_CLIENT_APPNAME: Final[str] = "mdb-connection"
"""Application name reported to the server by connections."""

# Server error codes that make index synchronization fall back to a rebuild
NAMESPACE_EXISTS_CODE: Final[int] = 48
INDEX_OPTIONS_CONFLICT_CODE: Final[int] = 85
INDEX_KEY_SPECS_CONFLICT_CODE: Final[int] = 86

INDEX_REBUILD_ERROR_CODES: Final[frozenset[int]] = frozenset(
    {NAMESPACE_EXISTS_CODE, INDEX_OPTIONS_CONFLICT_CODE, INDEX_KEY_SPECS_CONFLICT_CODE}
)
INDEX_REBUILD_ERROR_NAMES: Final[frozenset[str]] = frozenset(
    {"NamespaceExists", "IndexOptionsConflict", "IndexKeySpecsConflict"}
)

ID_INDEX_NAME: Final[str] = "_id_"
"""Name of the index MongoDB creates on every collection."""

# ============================================================================
# SCHEMA CONSTANTS
# ============================================================================

SCHEMA_OPTIONS: Final[dict[str, Any]] = {
    "id": False,
    "timestamps": True,
    "to_json": {"getters": True},
    "to_object": {"getters": True},
    "emit_index_errors": True,
}
"""Default options of root document schemas."""

SUB_SCHEMA_OPTIONS: Final[dict[str, Any]] = {
    "_id": False,
    "id": False,
    "timestamps": False,
    "emit_index_errors": True,
}
"""Default options of embedded document schemas."""

DEFAULT_MODEL_FILE_SUFFIX: Final[str] = "_model"
"""File name suffix identifying model modules for the loader."""

LOADER_EXCLUDED_DIRS: Final[tuple[str, ...]] = (
    "__pycache__",
    "node_modules",
    "venv",
    "site-packages",
)
"""Directories the model loader never descends into."""
