"""Search helpers for the user collection."""

from __future__ import annotations

from typing import Iterable, List

from .models import UserRecord


def filter_users(users: Iterable[UserRecord], term: str) -> List[UserRecord]:
    """Return the users whose name or email contains ``term``, ignoring case.

    Order is preserved and an empty term matches every user.
    """

    needle = term.lower()
    return [
        user
        for user in users
        if needle in user.name.lower() or needle in user.email.lower()
    ]


__all__ = ["filter_users"]
