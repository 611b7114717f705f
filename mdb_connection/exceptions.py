"""
Custom exceptions for MDB_CONNECTION.

These exceptions provide specific error types while maintaining
compatibility with RuntimeError.
"""

from typing import Any, Dict, Optional


class MongoDBConnectionError(RuntimeError):
    """
    Base exception for MDB_CONNECTION errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (model_name,
                 operation, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class InvalidUriError(MongoDBConnectionError, ValueError):
    """
    Raised when a connection string is missing or malformed.

    Attributes:
        message: Error message
        uri: The offending connection string (if available)
    """

    def __init__(
        self,
        message: str,
        uri: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if uri:
            context["uri"] = uri
        super().__init__(message, context=context)
        self.uri = uri


class ConfigurationError(MongoDBConnectionError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class ConnectError(MongoDBConnectionError):
    """
    Raised when a connection cannot be established.

    Attributes:
        message: Error message
        mongo_uri: MongoDB connection URI (if available)
        db_name: Database name (if available)
    """

    def __init__(
        self,
        message: str,
        mongo_uri: Optional[str] = None,
        db_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if mongo_uri:
            context["mongo_uri"] = mongo_uri
        if db_name:
            context["db_name"] = db_name
        super().__init__(message, context=context)
        self.mongo_uri = mongo_uri
        self.db_name = db_name


class NotConnectedError(MongoDBConnectionError):
    """Raised when a live client is required but the connection is closed."""


class SchemaDefinitionError(MongoDBConnectionError, ValueError):
    """
    Raised when a schema definition or its options are malformed.

    Attributes:
        message: Error message
        error_path: JSON path of the offending entry (if available)
    """

    def __init__(
        self,
        message: str,
        error_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if error_path:
            context["error_path"] = error_path
        super().__init__(message, context=context)
        self.error_path = error_path


class RegistrationError(MongoDBConnectionError):
    """
    Raised when a model cannot be registered on a connection.

    The registry converts this error into a ``None`` result; it only
    propagates from the ``Model`` constructor.

    Attributes:
        message: Error message
        model_name: Name of the model being registered
    """

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if model_name:
            context["model_name"] = model_name
        super().__init__(message, context=context)
        self.model_name = model_name


class MaintenanceError(MongoDBConnectionError):
    """
    Raised when clear, index synchronization or drop fails.

    Attributes:
        message: Error message
        operation: Maintenance operation that failed
        model_name: Model being processed when the failure happened (if any)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        model_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if operation:
            context["operation"] = operation
        if model_name:
            context["model_name"] = model_name
        super().__init__(message, context=context)
        self.operation = operation
        self.model_name = model_name
