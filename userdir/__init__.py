"""Browser interface and API client for a REST user directory."""

from __future__ import annotations

from typing import Any

from .client import UserDirectoryClient, UserDirectoryError
from .config import Settings, load_settings


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the directory web application."""

    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Settings",
    "UserDirectoryClient",
    "UserDirectoryError",
    "create_app",
    "load_settings",
]
