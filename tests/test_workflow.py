from __future__ import annotations

import asyncio

import httpx

from userdir.models import Envelope, UserDraft, UserRecord
from userdir.workflow import DirectoryWorkflow, FormMode, FormState, Phase, StatusMessage


def _run(coro):
    return asyncio.run(coro)


def test_load_replaces_collection(service) -> None:
    service.add("Alice", "alice@example.com", 31)

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        await workflow.load()
        return workflow

    workflow = _run(scenario())

    assert [user.name for user in workflow.users] == ["Alice"]
    assert workflow.messages == []
    assert workflow.phase is Phase.IDLE


def test_load_failure_reports_error_and_keeps_state(service) -> None:
    service.unreachable = True

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        await workflow.load()
        return workflow

    workflow = _run(scenario())

    assert workflow.users == []
    assert workflow.messages == [StatusMessage("Failed to fetch users", category="error")]
    assert workflow.phase is Phase.IDLE


def test_valid_submission_creates_refreshes_and_hides_form(service) -> None:
    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        workflow.toggle_form()
        result = await workflow.submit(UserDraft(name="Al", email="al@x.co", age="30"))
        return workflow, result

    workflow, result = _run(scenario())

    assert result.errors == {}
    assert result.saved is True
    assert service.methods() == ["POST", "GET"]
    assert [user.email for user in workflow.users] == ["al@x.co"]
    assert workflow.form.mode is FormMode.HIDDEN
    assert workflow.messages == [StatusMessage("User created successfully", category="success")]


def test_invalid_submission_issues_no_request(service) -> None:
    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        workflow.toggle_form()
        result = await workflow.submit(UserDraft(name="A", email="bad", age="200"))
        return workflow, result

    workflow, result = _run(scenario())

    assert set(result.errors) == {"name", "email", "age"}
    assert result.saved is False
    assert service.requests == []
    assert workflow.form.mode is FormMode.CREATE


def test_submission_while_editing_updates_target(service) -> None:
    alice = service.add("Alice", "alice@example.com", 31)
    bob = service.add("Bob", "bob@example.com", 45)

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        await workflow.load()
        workflow.start_edit(workflow.find_user(alice))
        result = await workflow.submit(UserDraft(name="Alicia", email="alice@example.com", age="32"))
        return workflow, result

    workflow, result = _run(scenario())

    assert result.saved is True
    assert ("PUT", f"/api/users/{alice}") in service.requests
    assert workflow.find_user(alice).name == "Alicia"
    assert service.users[alice] == {"_id": alice, "name": "Alicia", "email": "alice@example.com", "age": 32}
    assert service.users[bob] == {"_id": bob, "name": "Bob", "email": "bob@example.com", "age": 45}
    assert len(service.users) == 2
    assert workflow.form.editing is None
    assert workflow.form.mode is FormMode.HIDDEN


def test_rejected_submission_keeps_form_and_reports_server_message(service) -> None:
    service.fail_with = httpx.Response(400, json={"success": False, "message": "Email already exists"})

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        workflow.toggle_form()
        result = await workflow.submit(UserDraft(name="Al", email="al@x.co", age="30"))
        return workflow, result

    workflow, result = _run(scenario())

    assert result.saved is False
    assert workflow.form.mode is FormMode.CREATE
    assert workflow.messages == [StatusMessage("Email already exists", category="error")]
    assert service.methods() == ["POST"]


def test_network_failure_on_submit_reports_operation_failed(service) -> None:
    service.unreachable = True

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        result = await workflow.submit(UserDraft(name="Al", email="al@x.co", age="30"))
        return workflow, result

    workflow, result = _run(scenario())

    assert result.saved is False
    assert workflow.messages == [StatusMessage("Operation failed", category="error")]
    assert workflow.phase is Phase.IDLE


def test_creation_alongside_existing_users_adds_exactly_one(service) -> None:
    alice = service.add("Alice", "alice@example.com", 31)

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        await workflow.load()
        workflow.toggle_form()
        result = await workflow.submit(UserDraft(name="Al", email="al@x.co", age="30"))
        return workflow, result

    workflow, result = _run(scenario())

    assert result.saved is True
    assert service.methods() == ["GET", "POST", "GET"]
    assert len([user for user in workflow.users if user.email == "al@x.co"]) == 1
    assert len(workflow.users) == 2
    assert service.users[alice]["name"] == "Alice"


def test_malformed_rejection_reports_operation_failed(service) -> None:
    service.fail_with = httpx.Response(400, json={"success": False, "message": {"email": "taken"}})

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        workflow.toggle_form()
        result = await workflow.submit(UserDraft(name="Al", email="al@x.co", age="30"))
        return workflow, result

    workflow, result = _run(scenario())

    assert result.saved is False
    assert workflow.form.mode is FormMode.CREATE
    assert workflow.messages == [StatusMessage("Operation failed", category="error")]
    assert workflow.phase is Phase.IDLE


def test_delete_with_blank_identifier_reports_failure(service) -> None:
    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        deleted = await workflow.delete("  ", confirmed=True)
        return workflow, deleted

    workflow, deleted = _run(scenario())

    assert deleted is False
    assert service.requests == []
    assert workflow.messages == [StatusMessage("Delete failed", category="error")]
    assert workflow.phase is Phase.IDLE


def test_unconfirmed_delete_issues_no_request(service) -> None:
    alice = service.add("Alice", "alice@example.com", 31)

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        await workflow.load()
        before = list(workflow.users)
        deleted = await workflow.delete(alice, confirmed=False)
        return workflow, before, deleted

    workflow, before, deleted = _run(scenario())

    assert deleted is False
    assert workflow.users == before
    assert service.methods() == ["GET"]


def test_confirmed_delete_removes_and_refreshes(service) -> None:
    alice = service.add("Alice", "alice@example.com", 31)
    bob = service.add("Bob", "bob@example.com", 45)

    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        deleted = await workflow.delete(alice, confirmed=True)
        return workflow, deleted

    workflow, deleted = _run(scenario())

    assert deleted is True
    assert [user.id for user in workflow.users] == [bob]
    assert service.methods() == ["DELETE", "GET"]
    assert workflow.messages == [StatusMessage("User deleted successfully", category="success")]


def test_failed_delete_reports_server_message(service) -> None:
    async def scenario():
        workflow = DirectoryWorkflow(service.client())
        deleted = await workflow.delete("missing", confirmed=True)
        return workflow, deleted

    workflow, deleted = _run(scenario())

    assert deleted is False
    assert workflow.messages == [StatusMessage("User not found", category="error")]


def test_toggle_clears_edit_target() -> None:
    record = UserRecord(id="1", name="Alice", email="alice@example.com", age=31)
    workflow = DirectoryWorkflow(client=None, form=FormState(mode=FormMode.EDIT, editing=record))

    workflow.toggle_form()
    assert workflow.form.mode is FormMode.HIDDEN
    assert workflow.form.editing is None

    workflow.toggle_form()
    assert workflow.form.mode is FormMode.CREATE
    assert workflow.form.editing is None


def test_cancel_hides_form() -> None:
    record = UserRecord(id="1", name="Alice", email="alice@example.com", age=31)
    workflow = DirectoryWorkflow(client=None)
    workflow.start_edit(record)

    workflow.cancel()

    assert workflow.form.visible is False
    assert workflow.form.editing is None


def test_filtered_view_follows_search_term() -> None:
    workflow = DirectoryWorkflow(client=None, search_term="BOB")
    workflow.users = [
        UserRecord(id="1", name="Alice", email="alice@example.com", age=31),
        UserRecord(id="2", name="Bob", email="bob@example.com", age=45),
    ]

    assert [user.id for user in workflow.filtered_users] == ["2"]

    workflow.search_term = ""
    assert workflow.filtered_users == workflow.users


def test_form_state_round_trips_through_session_dict() -> None:
    record = UserRecord(id="abc", name="Alice", email="alice@example.com", age=31)
    state = FormState(mode=FormMode.EDIT, editing=record)

    restored = FormState.from_dict(state.to_dict())

    assert restored.mode is FormMode.EDIT
    assert restored.editing == record
    assert FormState.from_dict({"mode": "bogus"}).mode is FormMode.HIDDEN
    assert FormState.from_dict(None).mode is FormMode.HIDDEN


class _SlowClient:
    """Records how many mutations overlap and what phase the workflow is in."""

    def __init__(self) -> None:
        self.in_flight = 0
        self.max_in_flight = 0
        self.observed_phases = []
        self.workflows = []

    async def _mutation(self) -> Envelope:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.observed_phases.extend(workflow.phase for workflow in self.workflows)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return Envelope(success=True, message="ok")

    async def create_user(self, _draft) -> Envelope:
        return await self._mutation()

    async def delete_user(self, _user_id) -> Envelope:
        return await self._mutation()

    async def list_users(self) -> Envelope:
        return Envelope(success=True, data=[])


def test_overlapping_mutations_are_serialised() -> None:
    client = _SlowClient()

    async def scenario():
        lock = asyncio.Lock()
        first = DirectoryWorkflow(client, mutation_lock=lock)
        second = DirectoryWorkflow(client, mutation_lock=lock)
        client.workflows = [first]
        await asyncio.gather(
            first.submit(UserDraft(name="Al", email="al@x.co", age="30")),
            second.delete("u0001", confirmed=True),
        )
        return first, second

    first, second = _run(scenario())

    assert client.max_in_flight == 1
    assert Phase.LOADING in client.observed_phases
    assert first.phase is Phase.IDLE
    assert second.phase is Phase.IDLE
