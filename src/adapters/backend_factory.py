"""Backend adapter factory — creates the right adapter based on config."""

from __future__ import annotations

from src.config import settings
from src.ports.persistence_port import PersistencePort


def create_backend(token: str | None = None) -> PersistencePort:
    """Return the persistence adapter matching the BACKEND setting.

    Args:
        token: Per-user bearer token. Defaults to settings.API_TOKEN.
    """
    backend = settings.BACKEND.lower()

    if backend == "rest":
        from src.adapters.rest_backend import RestBackendAdapter

        return RestBackendAdapter(token=token)

    raise ValueError(f"Unknown BACKEND: {backend!r}")
