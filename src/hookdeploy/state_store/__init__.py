"""Configuration store - persisted application configs."""

from hookdeploy.state_store.database import Database
from hookdeploy.state_store.exceptions import AppConfigNotFoundError, StateStoreError
from hookdeploy.state_store.models import AppConfigRecord
from hookdeploy.state_store.store import AppConfigStore

__all__ = [
    "AppConfigNotFoundError",
    "AppConfigRecord",
    "AppConfigStore",
    "Database",
    "StateStoreError",
]
