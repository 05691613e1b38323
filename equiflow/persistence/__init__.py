"""Persistence layer for equiflow routines."""

from __future__ import annotations

from typing import Optional

from ..config import EquiflowConfig, load_config
from .http import HttpRoutineRepository
from .inmemory import InMemoryRoutineRepository
from .repository import HorseDirectory, RoutineRepository

_repository_instance: RoutineRepository | None = None


def get_repository(
    backend: Optional[str] = None, config: Optional[EquiflowConfig] = None
) -> RoutineRepository:
    """Factory function to obtain a routine repository.

    The backend is selected from ``backend`` when given, otherwise from the
    loaded configuration (which honours ``EQUIFLOW_BACKEND`` and
    ``EQUIFLOW_API_URL``). Without any configuration an in-memory repository
    is returned.
    """

    global _repository_instance
    if _repository_instance is not None and backend is None and config is None:
        return _repository_instance

    config = config or load_config()
    backend = backend or config.backend

    if backend == "inmemory":
        _repository_instance = InMemoryRoutineRepository()
    elif backend == "http":
        _repository_instance = HttpRoutineRepository(
            config.api.base_url,
            token=config.api.token,
            timeout=config.api.timeout,
        )
    else:
        raise ValueError(f"Unsupported repository backend: {backend}")

    return _repository_instance


__all__ = [
    "HorseDirectory",
    "HttpRoutineRepository",
    "InMemoryRoutineRepository",
    "RoutineRepository",
    "get_repository",
]
