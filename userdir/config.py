"""Configuration management for the user directory web interface."""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

logger = logging.getLogger("userdir.config")

DEFAULT_API_URL = "http://localhost:3000/api/users"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_TOAST_SECONDS = 3

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the directory UI."""

    api_url: str = DEFAULT_API_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    toast_seconds: int = DEFAULT_TOAST_SECONDS
    session_secret: Optional[str] = None
    secure_cookies: bool = False

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""
        unknown = set(data) - {
            "api_url",
            "request_timeout",
            "toast_seconds",
            "session_secret",
            "secure_cookies",
        }
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        try:
            request_timeout = float(data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT))
            toast_seconds = int(data.get("toast_seconds", DEFAULT_TOAST_SECONDS))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid numeric configuration value: {exc}") from exc
        if request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if toast_seconds < 0:
            raise ValueError("toast_seconds must not be negative")

        secret = data.get("session_secret")
        return Settings(
            api_url=str(data.get("api_url") or DEFAULT_API_URL),
            request_timeout=request_timeout,
            toast_seconds=toast_seconds,
            session_secret=str(secret) if secret else None,
            secure_cookies=bool(data.get("secure_cookies", False)),
        )

    def with_env(self, environ: Mapping[str, str]) -> "Settings":
        """Return a copy with ``USERDIR_*`` environment overrides applied."""
        overrides: Dict[str, object] = {}
        if environ.get("USERDIR_API_URL"):
            overrides["api_url"] = environ["USERDIR_API_URL"].strip()
        if environ.get("USERDIR_SESSION_SECRET"):
            overrides["session_secret"] = environ["USERDIR_SESSION_SECRET"]
        try:
            if environ.get("USERDIR_REQUEST_TIMEOUT"):
                overrides["request_timeout"] = float(environ["USERDIR_REQUEST_TIMEOUT"])
            if environ.get("USERDIR_TOAST_SECONDS"):
                overrides["toast_seconds"] = int(environ["USERDIR_TOAST_SECONDS"])
        except ValueError as exc:
            raise ValueError(f"Invalid numeric environment override: {exc}") from exc
        secure = environ.get("USERDIR_SESSION_SECURE")
        if secure is not None:
            overrides["secure_cookies"] = secure.strip().lower() not in _FALSE_VALUES
        return replace(self, **overrides)

    def resolved_session_secret(self) -> str:
        if self.session_secret:
            return self.session_secret
        logger.warning(
            "No session secret configured; generated a temporary one. Sessions will not"
            " survive a restart. Set USERDIR_SESSION_SECRET to persist them."
        )
        return secrets.token_urlsafe(32)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "userdir.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from a YAML file and apply environment overrides.

    A missing file is not an error; the defaults are used instead.
    """
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("USERDIR_CONFIG"))

    raw: object = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            try:
                raw = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Configuration file {path} is not valid YAML") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    return Settings.from_dict(raw).with_env(env)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
