from __future__ import annotations

import itertools
import json
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("USERDIR_SESSION_SECRET", "tests-secret-key")

from userdir.client import UserDirectoryClient


API_URL = "http://directory.test/api/users"


class FakeDirectoryService:
    """In-memory stand-in for the ``/api/users`` REST collection."""

    def __init__(self) -> None:
        self.users: Dict[str, Dict[str, object]] = {}
        self.requests: List[Tuple[str, str]] = []
        self.fail_with: Optional[httpx.Response] = None
        self.unreachable = False
        self._ids = itertools.count(1)

    def add(self, name: str, email: str, age: int) -> str:
        user_id = f"u{next(self._ids):04d}"
        self.users[user_id] = {"_id": user_id, "name": name, "email": email, "age": age}
        return user_id

    def methods(self) -> List[str]:
        return [method for method, _ in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> UserDirectoryClient:
        return UserDirectoryClient(API_URL, timeout=5.0, transport=self.transport())

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_with is not None:
            return self.fail_with

        parts = request.url.path.rstrip("/").split("/")
        user_id = parts[3] if len(parts) > 3 else None

        if request.method == "GET" and user_id is None:
            return httpx.Response(200, json={"success": True, "data": list(self.users.values())})

        if request.method == "POST" and user_id is None:
            body = json.loads(request.content)
            new_id = self.add(body["name"], body["email"], body["age"])
            return httpx.Response(
                201,
                json={
                    "success": True,
                    "message": "User created successfully",
                    "data": self.users[new_id],
                },
            )

        if user_id not in self.users:
            return httpx.Response(404, json={"success": False, "message": "User not found"})

        if request.method == "PUT":
            body = json.loads(request.content)
            self.users[user_id] = {"_id": user_id, **body}
            return httpx.Response(200, json={"success": True, "message": "User updated successfully"})

        if request.method == "DELETE":
            del self.users[user_id]
            return httpx.Response(200, json={"success": True, "message": "User deleted successfully"})

        return httpx.Response(405, json={"success": False, "message": "Method not allowed"})


@pytest.fixture()
def service() -> FakeDirectoryService:
    return FakeDirectoryService()
