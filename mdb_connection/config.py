"""
Configuration management for MDB_CONNECTION.

Connection settings come from explicit arguments first and from the
environment otherwise. When no connection string is configured at all, one
is derived from the application name and the execution environment, e.g.
``mongodb://localhost/billing-test``.
"""

import os
import re
from pathlib import Path

from .constants import (
    APP_ENV_VARS,
    APP_NAME_ENV_VAR,
    DEFAULT_APP_ENV,
    DEFAULT_CLIENT_APPNAME,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    DEFAULT_URI_HOST,
    URI_ENV_VARS,
)
from .exceptions import ConfigurationError

_NAME_CLEANUP = re.compile(r"[^A-Za-z0-9_-]+")


def env_uri() -> str | None:
    """
    Return the connection string configured in the environment.

    ``MONGODB_URI`` takes precedence over ``MONGODB_URL``; empty values are
    ignored.

    Returns:
        The first non-empty connection string, or None
    """
    for var in URI_ENV_VARS:
        value = os.getenv(var, "").strip()
        if value:
            return value
    return None


def _first_env(names: tuple[str, ...], default: str) -> str:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return default


class ConnectionConfig:
    """
    Connection configuration.

    Example:
        # Using environment variables
        config = ConnectionConfig()
        uri = config.resolve_uri()

        # Or overriding pieces directly
        config = ConnectionConfig(app_name="billing", environment="test")
        config.default_uri  # 'mongodb://localhost/billing-test'
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        app_name: str | None = None,
        environment: str | None = None,
        server_selection_timeout_ms: int | None = None,
        client_appname: str | None = None,
    ):
        """
        Initialize configuration.

        Args:
            mongo_uri: Connection string (defaults to MONGODB_URI / MONGODB_URL)
            app_name: Application name (defaults to APP_NAME or the current
                directory name)
            environment: Execution environment (defaults to APP_ENV /
                PYTHON_ENV or "development")
            server_selection_timeout_ms: Server selection timeout in ms
                (defaults to MONGODB_SERVER_SELECTION_TIMEOUT_MS or 5000)
            client_appname: Application name reported to the server
                (defaults to MONGODB_APPNAME or "mdb-connection")
        """
        self.mongo_uri = mongo_uri or env_uri()
        self.app_name = app_name or os.getenv(APP_NAME_ENV_VAR) or Path.cwd().name
        self.environment = environment or _first_env(APP_ENV_VARS, DEFAULT_APP_ENV)
        self.client_appname = client_appname or os.getenv(
            "MONGODB_APPNAME", DEFAULT_CLIENT_APPNAME
        )

        timeout = server_selection_timeout_ms
        if timeout is None:
            raw = os.getenv(
                "MONGODB_SERVER_SELECTION_TIMEOUT_MS", str(DEFAULT_SERVER_SELECTION_TIMEOUT_MS)
            )
            try:
                timeout = int(raw)
            except ValueError as e:
                raise ConfigurationError(
                    "MONGODB_SERVER_SELECTION_TIMEOUT_MS must be an integer",
                    config_key="MONGODB_SERVER_SELECTION_TIMEOUT_MS",
                    config_value=raw,
                ) from e
        self.server_selection_timeout_ms = timeout

    @property
    def default_database(self) -> str:
        """Database name derived from the application name and environment."""
        app_name = _NAME_CLEANUP.sub("-", self.app_name).strip("-") or "app"
        return f"{app_name}-{self.environment}"

    @property
    def default_uri(self) -> str:
        """Connection string used when none is configured."""
        return f"mongodb://{DEFAULT_URI_HOST}/{self.default_database}"

    def resolve_uri(self, uri: str | None = None) -> str:
        """
        Resolve the connection string to use.

        Precedence: explicit argument, configured/environment URI, derived
        default.

        Args:
            uri: Explicit connection string

        Returns:
            The connection string
        """
        if uri:
            return uri
        if self.mongo_uri:
            return self.mongo_uri
        return self.default_uri

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If a configuration value is invalid
        """
        if not self.environment:
            raise ConfigurationError("environment must not be empty", config_key="environment")

        if self.server_selection_timeout_ms < 1:
            raise ConfigurationError(
                f"server_selection_timeout_ms must be >= 1, got "
                f"{self.server_selection_timeout_ms}",
                config_key="server_selection_timeout_ms",
                config_value=self.server_selection_timeout_ms,
            )
