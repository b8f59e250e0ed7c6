"""Tab visibility derived from the current form values."""

from __future__ import annotations

from typing import Callable, Iterable

from .paths import ROOT, get_in
from .sections import Section
from .state import FieldChange, FormState

VisibilityListener = Callable[[tuple[str, ...]], None]


class VisibilityEngine:
    """A tab is visible iff its gate (if any) is truthy and its parent is visible.

    Visibility is recomputed on every change and listeners hear about it
    only when the visible set actually differs.
    """

    def __init__(self, state: FormState, sections: Iterable[Section]):
        self.state = state
        self.sections = tuple(sections)
        self._by_key = {entry.key: entry for entry in self.sections}
        self._listeners: list[VisibilityListener] = []
        self._visible = self._compute()
        self._unsubscribe = state.watch(self._on_change)

    @property
    def read_only(self) -> bool:
        return self.state.read_only

    def _section_visible(self, entry: Section, values: dict) -> bool:
        seen: set[str] = set()
        current: Section | None = entry
        while current is not None:
            if current.key in seen:
                raise ValueError(f"section {current.key!r} is its own ancestor")
            seen.add(current.key)
            if current.gate is not None and not get_in(values, current.gate):
                return False
            current = self._by_key.get(current.parent) if current.parent else None
        return True

    def _compute(self) -> tuple[str, ...]:
        values = self.state.get(ROOT)
        return tuple(entry.key for entry in self.sections if self._section_visible(entry, values))

    def _on_change(self, change: FieldChange) -> None:
        visible = self._compute()
        if visible == self._visible:
            return
        self._visible = visible
        for listener in list(self._listeners):
            listener(visible)

    def visible_sections(self) -> tuple[str, ...]:
        return self._visible

    def is_visible(self, key: str) -> bool:
        return key in self._visible

    def subscribe(self, listener: VisibilityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()
