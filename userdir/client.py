"""HTTP client for the remote user directory REST collection."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .models import Envelope, UserDraft, UserRecord

logger = logging.getLogger("userdir.client")


class UserDirectoryError(RuntimeError):
    """Raised when the directory service cannot be reached or answers garbage."""


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("Directory API URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def _payload_for(user: UserDraft | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(user, UserDraft):
        return user.to_payload()
    return {"name": user["name"], "email": user["email"], "age": user["age"]}


class UserDirectoryClient:
    """Async wrapper around the four calls of the ``/api/users`` collection.

    Every call is a single round trip without retries. Each returns the
    :class:`Envelope` sent by the server; transport failures and responses
    that are not envelopes raise :class:`UserDirectoryError`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "UserDirectoryClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()

    def _member_url(self, user_id: str) -> str:
        cleaned = str(user_id).strip()
        if not cleaned:
            raise UserDirectoryError("User identifier must not be empty")
        return f"{self._base_url}/{quote(cleaned, safe='')}"

    async def list_users(self) -> Envelope:
        envelope = await self._request("GET", self._base_url)
        if not envelope.success:
            return envelope

        raw_users = envelope.data if envelope.data is not None else []
        if not isinstance(raw_users, list):
            raise UserDirectoryError("Directory API returned an unexpected user list")
        try:
            users = [UserRecord.model_validate(item) for item in raw_users]
        except ValidationError as exc:
            raise UserDirectoryError("Directory API returned an invalid user record") from exc
        return envelope.model_copy(update={"data": users})

    async def create_user(self, user: UserDraft | Mapping[str, object]) -> Envelope:
        return await self._request("POST", self._base_url, json=_payload_for(user))

    async def update_user(self, user_id: str, user: UserDraft | Mapping[str, object]) -> Envelope:
        return await self._request("PUT", self._member_url(user_id), json=_payload_for(user))

    async def delete_user(self, user_id: str) -> Envelope:
        return await self._request("DELETE", self._member_url(user_id))

    async def _request(self, method: str, url: str, *, json: Any = None) -> Envelope:
        try:
            response = await self._http.request(method, url, json=json)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise UserDirectoryError(f"Failed to contact directory API: {exc}") from exc

        try:
            parsed = response.json()
        except ValueError:
            parsed = None

        if isinstance(parsed, dict) and isinstance(parsed.get("success"), bool):
            try:
                envelope = Envelope.model_validate(parsed)
            except ValidationError as exc:
                raise UserDirectoryError("Directory API returned a malformed response envelope") from exc
            if not envelope.success:
                logger.warning(
                    "%s %s rejected with status %s: %s",
                    method,
                    url,
                    response.status_code,
                    envelope.message,
                )
            return envelope

        if response.status_code >= 400:
            message = _extract_error_message(
                parsed,
                f"Directory API request failed with status {response.status_code}",
            )
            raise UserDirectoryError(message)

        if parsed is None:
            raise UserDirectoryError("Directory API returned an invalid response")
        raise UserDirectoryError("Directory API returned an unexpected response payload")


__all__ = ["UserDirectoryClient", "UserDirectoryError"]
