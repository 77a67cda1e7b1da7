"""Custom exceptions for the configuration store."""


class StateStoreError(Exception):
    """Base exception for configuration store errors."""


class AppConfigNotFoundError(StateStoreError):
    """No stored application config matches the query."""
