"""Browser interface for listing, searching and editing directory users."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from .client import UserDirectoryClient
from .config import Settings, load_settings
from .models import UserDraft
from .validation import AGE_MAX, AGE_MIN
from .workflow import DirectoryWorkflow, FormMode, FormState, StatusMessage

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

SESSION_COOKIE_NAME = "userdir_session"

logger = logging.getLogger("userdir.web")


def create_app(
    *,
    settings: Optional[Settings] = None,
    client: Optional[UserDirectoryClient] = None,
    session_secret: Optional[str] = None,
) -> FastAPI:
    """Create the directory web application.

    ``client`` overrides the HTTP client built from ``settings``; an injected
    client is left open when the application shuts down.
    """

    settings = settings or load_settings()
    owns_client = client is None
    directory_client = client or UserDirectoryClient(
        settings.api_url, timeout=settings.request_timeout
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("Directory UI using API at %s", directory_client.base_url)
        try:
            yield
        finally:
            if owns_client:
                await directory_client.aclose()

    app = FastAPI(
        title="User Directory",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.directory_client = directory_client
    app.state.mutation_lock = asyncio.Lock()

    if not settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )
    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret or settings.resolved_session_secret(),
        session_cookie=SESSION_COOKIE_NAME,
        https_only=settings.secure_cookies,
        same_site="lax",
    )

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["toast_seconds"] = settings.toast_seconds
    templates.env.globals["age_min"] = AGE_MIN
    templates.env.globals["age_max"] = AGE_MAX

    def _flash(request: Request, message: StatusMessage) -> None:
        messages = request.session.get("flash_messages")
        if not isinstance(messages, list):
            messages = []
        messages.append(message.to_dict())
        request.session["flash_messages"] = messages

    def _consume_flash(request: Request) -> List[Dict[str, str]]:
        messages = request.session.pop("flash_messages", [])
        if isinstance(messages, list):
            return messages
        return []

    def _workflow_for(request: Request) -> DirectoryWorkflow:
        form = FormState.from_dict(request.session.get("form"))
        search_term = request.session.get("search_term", "")
        if not isinstance(search_term, str):
            search_term = ""
        return DirectoryWorkflow(
            directory_client,
            form=form,
            search_term=search_term,
            mutation_lock=app.state.mutation_lock,
        )

    def _store(request: Request, workflow: DirectoryWorkflow) -> None:
        request.session["form"] = workflow.form.to_dict()
        request.session["search_term"] = workflow.search_term
        for message in workflow.messages:
            _flash(request, message)

    def _redirect_to_list(request: Request) -> RedirectResponse:
        return RedirectResponse(
            request.url_for("list_users"),
            status_code=status.HTTP_303_SEE_OTHER,
        )

    def _render_directory(
        request: Request,
        workflow: DirectoryWorkflow,
        *,
        draft: Optional[UserDraft] = None,
        errors: Optional[Dict[str, str]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        messages = _consume_flash(request)
        messages.extend(message.to_dict() for message in workflow.messages)

        form = workflow.form
        if draft is None and form.visible:
            stored = request.session.pop("form_draft", None)
            if isinstance(stored, dict):
                draft = UserDraft.from_mapping(stored)
            elif form.editing is not None:
                draft = UserDraft.from_record(form.editing)
            else:
                draft = UserDraft()

        request.session["form"] = form.to_dict()
        request.session["search_term"] = workflow.search_term

        return templates.TemplateResponse(
            request,
            "users.html",
            {
                "users": workflow.filtered_users,
                "total_count": len(workflow.users),
                "search_term": workflow.search_term,
                "form": form,
                "editing": form.mode is FormMode.EDIT,
                "draft": draft,
                "errors": errors or {},
                "messages": messages,
            },
            status_code=status_code,
        )

    @app.get("/", name="root")
    async def root(request: Request):
        return _redirect_to_list(request)

    @app.get("/healthz", name="healthcheck")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/users", response_class=HTMLResponse, name="list_users")
    async def list_users(request: Request, q: Optional[str] = None):
        workflow = _workflow_for(request)
        if q is not None:
            workflow.search_term = q
        await workflow.load()
        return _render_directory(request, workflow)

    @app.post("/users/form/toggle", name="toggle_form")
    async def toggle_form(request: Request):
        workflow = _workflow_for(request)
        workflow.toggle_form()
        request.session.pop("form_draft", None)
        _store(request, workflow)
        return _redirect_to_list(request)

    @app.post("/users/form/cancel", name="cancel_form")
    async def cancel_form(request: Request):
        workflow = _workflow_for(request)
        workflow.cancel()
        request.session.pop("form_draft", None)
        _store(request, workflow)
        return _redirect_to_list(request)

    @app.get("/users/{user_id}/edit", name="edit_user")
    async def edit_user(request: Request, user_id: str):
        workflow = _workflow_for(request)
        await workflow.load()
        record = workflow.find_user(user_id)
        if record is None:
            workflow.messages.append(StatusMessage("User not found.", category="error"))
        else:
            workflow.start_edit(record)
            request.session.pop("form_draft", None)
        _store(request, workflow)
        return _redirect_to_list(request)

    @app.post("/users/save", name="save_user")
    async def save_user(
        request: Request,
        name: str = Form(""),
        email: str = Form(""),
        age: str = Form(""),
    ):
        workflow = _workflow_for(request)
        if not workflow.form.visible:
            workflow.form.show_create()
        draft = UserDraft(name=name, email=email, age=age)

        result = await workflow.submit(draft)
        if result.errors:
            await workflow.load()
            return _render_directory(
                request,
                workflow,
                draft=draft,
                errors=result.errors,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        if result.saved:
            request.session.pop("form_draft", None)
        else:
            request.session["form_draft"] = draft.to_dict()
        _store(request, workflow)
        return _redirect_to_list(request)

    @app.get("/users/{user_id}/delete", response_class=HTMLResponse, name="confirm_delete")
    async def confirm_delete(request: Request, user_id: str):
        workflow = _workflow_for(request)
        await workflow.load()
        record = workflow.find_user(user_id)
        if record is None:
            if not workflow.messages:
                workflow.messages.append(StatusMessage("User not found.", category="error"))
            _store(request, workflow)
            return _redirect_to_list(request)
        return templates.TemplateResponse(
            request,
            "confirm_delete.html",
            {"user": record, "messages": _consume_flash(request)},
        )

    @app.post("/users/{user_id}/delete", name="delete_user")
    async def delete_user(request: Request, user_id: str, confirm: str = Form("")):
        workflow = _workflow_for(request)
        confirmed = confirm.strip().lower() == "yes"
        if not confirmed:
            workflow.messages.append(StatusMessage("Deletion cancelled.", category="info"))
        elif await workflow.delete(user_id, confirmed=True):
            editing = workflow.form.editing
            if editing is not None and editing.id == user_id:
                workflow.cancel()
                request.session.pop("form_draft", None)
        _store(request, workflow)
        return _redirect_to_list(request)

    return app


__all__ = ["create_app"]
