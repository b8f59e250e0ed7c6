"""One open application form with all of its collaborators wired together."""

from __future__ import annotations

from typing import Any, Callable

from ..client import ComplianceApiClient
from .definitions import FORMS, FormDefinition
from .editors import SubRecordEditor
from .guard import DestructiveChangeGuard, PendingConfirmation
from .paths import fields_by_alias
from .state import FormState
from .visibility import VisibilityEngine
from .workflow import Notification, WorkflowActions


class ApplicationFormSession:
    """Form state, visibility, guard, editors and workflow for a single application.

    The guard subscribes before the visibility engine so a held gate never
    shows its tab disappearing.
    """

    def __init__(
        self,
        definition: FormDefinition,
        client: ComplianceApiClient,
        *,
        application_id: Any = None,
        notify: Callable[[Notification], None] | None = None,
        navigate: Callable[[str], None] | None = None,
        on_prompt: Callable[[PendingConfirmation], None] | None = None,
    ):
        self.definition = definition
        self.client = client
        self.application: dict[str, Any] | None = None
        self.state = FormState(definition.values_schema)
        self.guard = DestructiveChangeGuard(self.state, definition.sections, on_prompt)
        self.visibility = VisibilityEngine(self.state, definition.sections)
        self.editors: dict[str, SubRecordEditor] = {
            name: factory(self.state) for name, factory in definition.editors.items()
        }
        self.actions = WorkflowActions(
            definition,
            self.state,
            client,
            application_id=application_id,
            notify=notify,
            navigate=navigate,
        )

    @classmethod
    def open(cls, kind: str, client: ComplianceApiClient, application_id: Any = None, **kwargs: Any) -> "ApplicationFormSession":
        session = cls(FORMS[kind], client, application_id=application_id, **kwargs)
        if application_id is not None:
            session.load()
        return session

    @property
    def application_id(self) -> str | None:
        return self.actions.application_id

    @property
    def read_only(self) -> bool:
        return self.state.read_only

    def load(self) -> dict[str, Any]:
        """Fetch the application and replace the form values with it."""

        if self.application_id is None:
            raise ValueError("A new application has nothing to load")
        application = self.client.get_application(self.definition.kind, self.application_id)
        self.application = application
        self.state.reset(self.definition.to_form_values(application))
        self.state.read_only = application.get("status", "draft") != "draft"
        return application

    def editor(self, field: str) -> SubRecordEditor:
        return self.editors[field]

    def principal_investigators(self) -> list[dict[str, Any]]:
        return self.client.list_principal_investigators()

    def research_activities(self) -> list[dict[str, Any]]:
        pi_id = self.state.get("principalInvestigatorId") if self.definition.kind == "ibc" else None
        return self.client.list_research_activities(pi_id)

    def selected_research_activity_ids(self) -> list[str]:
        fields = fields_by_alias(self.definition.values_schema)
        if "researchActivityIds" in fields:
            return [str(item) for item in self.state.get("researchActivityIds") or []]
        if "researchActivityId" in fields and self.state.get("researchActivityId"):
            return [str(self.state.get("researchActivityId"))]
        return []

    def staff_candidates(self) -> list[dict[str, Any]]:
        """Staff of the selected research activities, each scientist listed once."""

        candidates: dict[str, dict[str, Any]] = {}
        for activity_id in self.selected_research_activity_ids():
            for member in self.client.get_research_activity_staff(activity_id):
                candidates.setdefault(str(member["scientistId"]), member)
        return list(candidates.values())

    def timeline(self) -> list[dict[str, Any]]:
        if self.application_id is None:
            return []
        return self.client.list_comments(self.definition.kind, self.application_id)

    def save_draft(self) -> dict[str, Any] | None:
        return self.actions.save_draft()

    def submit(self) -> dict[str, Any] | None:
        return self.actions.submit()

    def close(self) -> None:
        self.guard.close()
        self.visibility.close()
