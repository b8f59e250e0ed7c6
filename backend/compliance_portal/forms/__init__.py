"""Headless form layer for IBC and PMO applications and change requests.

A UI binds to ``ApplicationFormSession``: it reads values and errors from
``FormState``, lists tabs from ``VisibilityEngine``, shows the guard's
pending confirmation, drives sub-record editors and triggers the workflow
actions.
"""

# purpose: expose the form controller building blocks to UI bindings and tests
# status: active

from .definitions import CHANGE_REQUEST_FORM, FORMS, IBC_FORM, PMO_FORM, FormDefinition
from .editors import (
    Requirement,
    SubRecordEditor,
    SubRecordValidationError,
    resolve_cell_line,
)
from .guard import DestructiveChangeGuard, PendingConfirmation
from .paths import ChangeRequestField, FieldPath, IbcField, PmoField, UnknownFieldError
from .sections import CHANGE_REQUEST_SECTIONS, IBC_SECTIONS, PMO_SECTIONS, Section, is_populated
from .session import ApplicationFormSession
from .state import FieldChange, FormState, ReadOnlyFormError
from .visibility import VisibilityEngine
from .workflow import ActionInProgressError, Notification, WorkflowActions

__all__ = [
    "ActionInProgressError",
    "ApplicationFormSession",
    "CHANGE_REQUEST_FORM",
    "CHANGE_REQUEST_SECTIONS",
    "ChangeRequestField",
    "DestructiveChangeGuard",
    "FORMS",
    "FieldChange",
    "FieldPath",
    "FormDefinition",
    "FormState",
    "IBC_FORM",
    "IBC_SECTIONS",
    "IbcField",
    "Notification",
    "PMO_FORM",
    "PMO_SECTIONS",
    "PendingConfirmation",
    "PmoField",
    "ReadOnlyFormError",
    "Requirement",
    "Section",
    "SubRecordEditor",
    "SubRecordValidationError",
    "UnknownFieldError",
    "VisibilityEngine",
    "WorkflowActions",
    "is_populated",
    "resolve_cell_line",
]
