"""List / edit / delete orchestration for the user directory."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .client import UserDirectoryClient, UserDirectoryError
from .models import UserDraft, UserRecord
from .search import filter_users
from .validation import validate_user

logger = logging.getLogger("userdir.workflow")


class Phase(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"


class FormMode(enum.Enum):
    HIDDEN = "hidden"
    CREATE = "create"
    EDIT = "edit"


@dataclass(frozen=True)
class StatusMessage:
    """A transient notice shown to the user after an action."""

    text: str
    category: str = "success"

    def to_dict(self) -> Dict[str, str]:
        return {"message": self.text, "category": self.category}


@dataclass
class FormState:
    """Visibility of the user form and the record being edited, if any."""

    mode: FormMode = FormMode.HIDDEN
    editing: Optional[UserRecord] = None

    @property
    def visible(self) -> bool:
        return self.mode is not FormMode.HIDDEN

    def show_create(self) -> None:
        self.mode = FormMode.CREATE
        self.editing = None

    def show_edit(self, record: UserRecord) -> None:
        self.mode = FormMode.EDIT
        self.editing = record

    def hide(self) -> None:
        self.mode = FormMode.HIDDEN
        self.editing = None

    def to_dict(self) -> Dict[str, object]:
        editing = self.editing.model_dump(by_alias=True) if self.editing else None
        return {"mode": self.mode.value, "editing": editing}

    @classmethod
    def from_dict(cls, data: object) -> "FormState":
        if not isinstance(data, dict):
            return cls()
        try:
            mode = FormMode(data.get("mode", FormMode.HIDDEN.value))
        except ValueError:
            return cls()
        editing_raw = data.get("editing")
        if mode is FormMode.EDIT:
            if not isinstance(editing_raw, dict):
                return cls()
            return cls(mode=mode, editing=UserRecord.model_validate(editing_raw))
        return cls(mode=mode)


@dataclass
class SubmitResult:
    errors: Dict[str, str] = field(default_factory=dict)
    saved: bool = False


class DirectoryWorkflow:
    """Drive the directory page: fetch on load, refresh after every write.

    The collection is only ever replaced by a fresh ``list`` snapshot. Mutating
    calls share ``mutation_lock`` so overlapping submissions run one at a time.
    """

    def __init__(
        self,
        client: UserDirectoryClient,
        *,
        form: Optional[FormState] = None,
        search_term: str = "",
        mutation_lock: Optional[asyncio.Lock] = None,
    ) -> None:
        self._client = client
        self._lock = mutation_lock or asyncio.Lock()
        self.form = form or FormState()
        self.search_term = search_term
        self.phase = Phase.IDLE
        self.users: List[UserRecord] = []
        self.messages: List[StatusMessage] = []

    @property
    def filtered_users(self) -> List[UserRecord]:
        return filter_users(self.users, self.search_term)

    def find_user(self, user_id: str) -> Optional[UserRecord]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def _notify(self, text: Optional[str], category: str, *, default: str) -> None:
        self.messages.append(StatusMessage(text=text or default, category=category))

    async def load(self) -> None:
        self.phase = Phase.LOADING
        try:
            envelope = await self._client.list_users()
            if envelope.success:
                self.users = list(envelope.data)
            else:
                self._notify(None, "error", default="Failed to fetch users")
        except UserDirectoryError as exc:
            logger.warning("Failed to fetch users: %s", exc)
            self._notify(None, "error", default="Failed to fetch users")
        finally:
            self.phase = Phase.IDLE

    def toggle_form(self) -> None:
        if self.form.visible:
            self.form.hide()
        else:
            self.form.show_create()

    def start_edit(self, record: UserRecord) -> None:
        self.form.show_edit(record)

    def cancel(self) -> None:
        self.form.hide()

    async def submit(self, draft: UserDraft) -> SubmitResult:
        errors = validate_user(draft)
        if errors:
            return SubmitResult(errors=errors)

        editing = self.form.editing
        async with self._lock:
            self.phase = Phase.LOADING
            try:
                if editing is not None:
                    envelope = await self._client.update_user(editing.id, draft)
                else:
                    envelope = await self._client.create_user(draft)

                if not envelope.success:
                    self._notify(envelope.message, "error", default="Operation failed")
                    return SubmitResult()

                if editing is not None:
                    logger.info("Updated user %s", editing.id)
                else:
                    logger.info("Created user %s", draft.email.strip())
                self._notify(envelope.message, "success", default="User saved")
                await self.load()
                self.form.hide()
                return SubmitResult(saved=True)
            except UserDirectoryError as exc:
                logger.warning("Saving user failed: %s", exc)
                self._notify(None, "error", default="Operation failed")
                return SubmitResult()
            finally:
                self.phase = Phase.IDLE

    async def delete(self, user_id: str, *, confirmed: bool) -> bool:
        if not confirmed:
            return False

        async with self._lock:
            self.phase = Phase.LOADING
            try:
                envelope = await self._client.delete_user(user_id)
                if not envelope.success:
                    self._notify(envelope.message, "error", default="Delete failed")
                    return False
                logger.info("Deleted user %s", user_id)
                self._notify(envelope.message, "success", default="User deleted")
                await self.load()
                return True
            except UserDirectoryError as exc:
                logger.warning("Deleting user %s failed: %s", user_id, exc)
                self._notify(None, "error", default="Delete failed")
                return False
            finally:
                self.phase = Phase.IDLE


__all__ = [
    "DirectoryWorkflow",
    "FormMode",
    "FormState",
    "Phase",
    "StatusMessage",
    "SubmitResult",
]
