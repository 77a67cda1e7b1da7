"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

import secrets
from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from hookdeploy.config import Settings
from hookdeploy.worker import Worker

# Global instances (initialized on app startup)
_settings: Settings | None = None
_worker: Worker | None = None


def init_settings(settings: Settings) -> Settings:
    global _settings  # noqa: PLW0603
    _settings = settings
    return _settings


def get_settings() -> Settings:
    """Dependency that provides the module settings."""
    if _settings is None:
        raise RuntimeError("Settings not initialized. Call init_settings() first.")
    return _settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def init_worker(worker: Worker) -> Worker:
    """Initialize the global Worker instance."""
    global _worker  # noqa: PLW0603
    _worker = worker
    return _worker


def close_worker() -> None:
    """Release the global Worker instance and its store."""
    global _worker  # noqa: PLW0603
    if _worker is not None and _worker.store is not None:
        _worker.store.close()
    _worker = None


def get_worker() -> Generator[Worker, None, None]:
    """Dependency that provides the Worker instance."""
    if _worker is None:
        raise RuntimeError("Worker not initialized. Call init_worker() first.")
    yield _worker


WorkerDep = Annotated[Worker, Depends(get_worker)]

_basic = HTTPBasic(auto_error=False)


def require_auth(
    settings: SettingsDep,
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic)],
) -> None:
    """Check basic auth credentials when a management password is configured."""
    if not settings.auth_password:
        return
    if credentials is not None:
        name_ok = secrets.compare_digest(
            credentials.username.encode(), settings.auth_name.encode()
        )
        password_ok = secrets.compare_digest(
            credentials.password.encode(), settings.auth_password.encode()
        )
        if name_ok and password_ok:
            return
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Basic"},
    )
