from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class ApiConfig(BaseModel):
    """Connection settings for the stable management API."""

    base_url: str = "http://localhost:5003"
    token: Optional[str] = None
    timeout: float = 30.0


class MessagesConfig(BaseModel):
    """User-facing texts shown when an operation fails or a reason is blank."""

    default_skip_reason: str = "Skipped"
    default_cancel_reason: str = "Cancelled by user"
    load_failed: str = "Could not load the routine"
    submit_failed: str = "Could not save the step"
    finalize_failed: str = "Could not complete the routine"
    cancel_failed: str = "Could not cancel the routine"
    restart_failed: str = "Could not restart the routine"


class EquiflowConfig(BaseModel):
    """Top-level configuration model."""

    backend: Literal["inmemory", "http"] = "inmemory"
    api: ApiConfig = ApiConfig()
    messages: MessagesConfig = MessagesConfig()


def load_config(path: Optional[str] = None) -> EquiflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to EQUIFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("EQUIFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = EquiflowConfig(**data)
    else:
        config = EquiflowConfig()

    env_backend = os.getenv("EQUIFLOW_BACKEND")
    if env_backend:
        config.backend = env_backend  # type: ignore[assignment]
    env_url = os.getenv("EQUIFLOW_API_URL")
    if env_url:
        config.api.base_url = env_url
        if not env_backend:
            config.backend = "http"
    env_token = os.getenv("EQUIFLOW_API_TOKEN")
    if env_token:
        config.api.token = env_token
    return config
