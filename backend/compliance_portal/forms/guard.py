"""Confirmation step before a gate switch discards a section's answers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .paths import FieldPath, default_value, get_in
from .sections import Section, guarded_sections, is_populated
from .state import FieldChange, FormState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingConfirmation:
    section: Section
    populated: tuple[FieldPath, ...]

    @property
    def message(self) -> str:
        return (
            f"Turning off \"{self.section.label}\" will clear the information entered in that "
            "section. Do you want to continue?"
        )


def _gate_transition(change: FieldChange, gate: FieldPath) -> tuple[Any, Any] | None:
    if change.path.is_root or not change.path.contains(gate):
        return None
    relative = FieldPath(gate.segments[len(change.path.segments):])
    if relative.is_root:
        return change.previous, change.value
    return get_in(change.previous, relative), get_in(change.value, relative)


class DestructiveChangeGuard:
    """Hold a guarded gate at true until the user confirms clearing its section.

    When a guarded gate flips from true to false while any dependent field
    holds data, the gate is put back to true and ``pending`` describes the
    confirmation to show. ``confirm()`` switches the gate off and resets the
    dependents to their defaults in one atomic update; ``cancel()`` drops the
    request. A gate whose section is already empty switches off at once.
    """

    def __init__(
        self,
        state: FormState,
        sections: Iterable[Section],
        on_prompt: Callable[[PendingConfirmation], None] | None = None,
    ):
        self.state = state
        self.sections = tuple(guarded_sections(sections))
        self.on_prompt = on_prompt
        self.pending: PendingConfirmation | None = None
        self._applying = False
        self._unsubscribe = state.watch(self._on_change, [entry.gate for entry in self.sections])

    def _on_change(self, change: FieldChange) -> None:
        if self._applying:
            return
        for entry in self.sections:
            transition = _gate_transition(change, entry.gate)
            if transition is None:
                continue
            previous, current = transition
            if previous is not True or current:
                continue
            populated = tuple(
                dep for dep in entry.dependents if is_populated(self.state.get(dep))
            )
            if not populated:
                continue
            self._applying = True
            try:
                self.state.set(entry.gate, True, touch=False)
            finally:
                self._applying = False
            self.pending = PendingConfirmation(entry, populated)
            logger.debug("holding %s until its section is cleared", entry.gate)
            if self.on_prompt is not None:
                self.on_prompt(self.pending)
            return

    def confirm(self) -> None:
        pending, self.pending = self.pending, None
        if pending is None:
            return
        entry = pending.section
        updates = [(entry.gate, False)]
        updates.extend((dep, default_value(self.state.schema, dep)) for dep in entry.dependents)
        self._applying = True
        try:
            self.state.set_many(updates)
        finally:
            self._applying = False

    def cancel(self) -> None:
        self.pending = None

    def close(self) -> None:
        self._unsubscribe()
