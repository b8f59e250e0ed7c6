"""Save-draft and submit actions for an application form."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import requests

from ..client import ApiError, ComplianceApiClient
from .definitions import FormDefinition
from .state import FormState

logger = logging.getLogger(__name__)

COMMENT_REQUIRED_MESSAGE = "Please add a comment describing this submission"
READ_ONLY_MESSAGE = "This application is no longer a draft and cannot be changed"


class ActionInProgressError(RuntimeError):
    """Raised when save or submit is triggered while another action is in flight."""


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"


class WorkflowActions:
    """Serialize form values and drive the draft/submitted workflow.

    Only one action runs at a time: ``is_pending`` is true while a save or
    submit is in flight and a second call raises ``ActionInProgressError``.
    Server and network failures end in a destructive notification; the form
    values are left as they were. A read-only form refuses both actions
    without sending anything.
    """

    def __init__(
        self,
        definition: FormDefinition,
        state: FormState,
        client: ComplianceApiClient,
        *,
        application_id: Any = None,
        notify: Callable[[Notification], None] | None = None,
        navigate: Callable[[str], None] | None = None,
    ):
        self.definition = definition
        self.state = state
        self.client = client
        self.application_id = str(application_id) if application_id else None
        self.notify = notify or (lambda notification: None)
        self.navigate = navigate or (lambda url: None)
        self.pending_action: str | None = None
        self._lock = threading.Lock()

    @property
    def is_pending(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def _in_flight(self, action: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ActionInProgressError(f"Cannot {action} while {self.pending_action} is in progress")
        self.pending_action = action
        try:
            yield
        finally:
            self.pending_action = None
            self._lock.release()

    def build_payload(self, *, is_draft: bool) -> dict[str, Any]:
        return self.definition.to_payload(
            self.state.values, is_draft=is_draft, creating=self.application_id is None
        )

    def _persist(self, payload: dict[str, Any]) -> dict[str, Any]:
        kind = self.definition.kind
        if self.application_id is None:
            created = self.client.create_application(kind, payload)
            self.application_id = str(created["id"])
            return created
        return self.client.update_application(kind, self.application_id, payload)

    def _apply_server_copy(self, application: dict[str, Any], *, clear_comment: bool) -> None:
        # server-minted sub-record ids replace the temporary ones
        values = self.definition.to_form_values(application)
        for name in self.definition.ui_only_fields:
            values[name] = self.state.get(name)
        if clear_comment:
            values[self.definition.comment_field] = ""
        self.state.reset(values)
        self.state.read_only = application.get("status", "draft") != "draft"

    def _refuse_read_only(self) -> bool:
        # a submitted application must never be sent back with isDraft
        if not self.state.read_only:
            return False
        logger.info("%s %s is read-only; action refused", self.definition.kind, self.application_id)
        self.notify(Notification("Read-only application", READ_ONLY_MESSAGE, "destructive"))
        return True

    def _failed(self, exc: Exception, fallback: str) -> None:
        message = exc.message if isinstance(exc, ApiError) and exc.message else fallback
        logger.warning("%s %s: %s", self.definition.kind, fallback.lower(), exc)
        self.notify(Notification("Error", message, "destructive"))

    def save_draft(self) -> dict[str, Any] | None:
        """Persist the current values with ``isDraft: true``.

        A draft never needs a comment and never writes to the timeline; any
        comment typed so far stays in the form.
        """

        with self._in_flight("save draft"):
            if self._refuse_read_only():
                return None
            if not self.state.validate(self.definition.values_schema):
                self.notify(
                    Notification("Validation error", "Please correct the highlighted fields.", "destructive")
                )
                return None
            payload = self.build_payload(is_draft=True)
            try:
                application = self._persist(payload)
            except (ApiError, requests.RequestException) as exc:
                self._failed(exc, f"Failed to save {self.definition.label} draft")
                return None
            self._apply_server_copy(application, clear_comment=False)
            self.notify(Notification("Draft saved", f"Your {self.definition.label} has been saved as a draft."))
            return application

    def submit(self) -> dict[str, Any] | None:
        """Validate, PATCH with ``isDraft: false``, post the comment, then navigate."""

        with self._in_flight("submit"):
            if self._refuse_read_only():
                return None
            comment_field = self.definition.comment_field
            comment = (self.state.get(comment_field) or "").strip()
            if not comment:
                self.state.set_error(comment_field, COMMENT_REQUIRED_MESSAGE)
                self.notify(Notification("Comment required", COMMENT_REQUIRED_MESSAGE, "destructive"))
                return None
            if not self.state.validate(self.definition.submit_schema):
                self.notify(
                    Notification("Validation error", "Please correct the highlighted fields.", "destructive")
                )
                return None
            payload = self.build_payload(is_draft=False)
            try:
                application = self._persist(payload)
                self.client.add_comment(self.definition.kind, self.application_id, comment)
            except (ApiError, requests.RequestException) as exc:
                self._failed(exc, f"Failed to submit {self.definition.label}")
                return None
            self._apply_server_copy(application, clear_comment=True)
            self.notify(
                Notification("Application submitted", f"Your {self.definition.label} has been submitted for review.")
            )
            self.navigate(self.definition.read_url(self.application_id))
            return application
