"""Form state controller.

``FormState`` binds a Pydantic schema to a mutable value tree and tracks what
a UI needs to render it: which fields changed since the last save (dirty),
which the user has touched, and the current field-keyed validation errors.
Every change is published to watchers as a ``FieldChange`` so the
visibility engine and the destructive-change guard can react to edits.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping

from pydantic import BaseModel, ValidationError

from .paths import ROOT, FieldPath, FieldRef, blank_values, get_in, resolve, set_in, to_wire

logger = logging.getLogger(__name__)

FORM_ERROR_KEY = "form"


class ReadOnlyFormError(RuntimeError):
    """Raised when a read-only form is edited."""


@dataclass(frozen=True)
class FieldChange:
    path: FieldPath
    previous: Any
    value: Any


Watcher = Callable[[FieldChange], None]


@dataclass
class _Subscription:
    callback: Watcher
    paths: tuple[FieldPath, ...] | None

    def wants(self, path: FieldPath) -> bool:
        if self.paths is None or path.is_root:
            return True
        return any(watched.overlaps(path) for watched in self.paths)


def _error_message(error: Mapping[str, Any]) -> str:
    ctx = error.get("ctx") or {}
    if error.get("type") == "value_error" and "error" in ctx:
        return str(ctx["error"])
    return str(error.get("msg", "Invalid value"))


def _error_key(loc: Iterable[Any]) -> str:
    return ".".join(str(part) for part in loc) or FORM_ERROR_KEY


class FieldBinding:
    """A single field of a ``FormState``, as a widget would bind to it."""

    def __init__(self, state: "FormState", path: FieldPath):
        self._state = state
        self.path = path

    @property
    def value(self) -> Any:
        return self._state.get(self.path)

    def set(self, value: Any) -> None:
        self._state.set(self.path, value)

    def watch(self, callback: Watcher) -> Callable[[], None]:
        return self._state.watch(callback, [self.path])

    @property
    def error(self) -> str | None:
        return self._state.errors.get(self.path.dotted)


class FormState:
    def __init__(
        self,
        schema: type[BaseModel],
        values: Mapping[str, Any] | None = None,
        *,
        read_only: bool = False,
    ):
        self.schema = schema
        self.read_only = read_only
        self._values = self._initial_values(values)
        self._saved = deepcopy(self._values)
        self._touched: set[str] = set()
        self._subscriptions: list[_Subscription] = []
        self._batch: list[FieldChange] | None = None
        self.errors: dict[str, str] = {}

    def _initial_values(self, values: Mapping[str, Any] | None) -> dict[str, Any]:
        tree = blank_values(self.schema)
        for key, value in (values or {}).items():
            resolve(self.schema, FieldPath((key,)))
            tree[key] = to_wire(value)
        return tree

    # reading

    @property
    def values(self) -> dict[str, Any]:
        return deepcopy(self._values)

    def get(self, path: FieldRef | None = None, default: Any = None) -> Any:
        if path is None:
            return self.values
        return deepcopy(get_in(self._values, FieldPath.of(path), default))

    def field(self, path: FieldRef) -> FieldBinding:
        field_path = FieldPath.of(path)
        resolve(self.schema, field_path)
        return FieldBinding(self, field_path)

    @property
    def touched(self) -> frozenset[str]:
        return frozenset(self._touched)

    @property
    def dirty_fields(self) -> frozenset[str]:
        keys = set(self._values) | set(self._saved)
        return frozenset(key for key in keys if self._values.get(key) != self._saved.get(key))

    @property
    def is_dirty(self) -> bool:
        return self._values != self._saved

    # writing

    def set(self, path: FieldRef, value: Any, *, touch: bool = True) -> None:
        if self.read_only:
            raise ReadOnlyFormError("This form is read-only")
        field_path = FieldPath.of(path)
        resolve(self.schema, field_path)
        new_value = to_wire(value)
        previous = get_in(self._values, field_path)
        if previous == new_value:
            return
        set_in(self._values, field_path, new_value)
        if touch:
            self._touched.add(str(field_path.segments[0]))
        self._clear_errors_under(field_path)
        change = FieldChange(field_path, deepcopy(previous), deepcopy(new_value))
        if self._batch is not None:
            self._batch.append(change)
        else:
            self._emit([change])

    def set_many(self, updates: Mapping[FieldRef, Any] | Iterable[tuple[FieldRef, Any]]) -> None:
        """Apply several assignments as one atomic update."""

        items = updates.items() if isinstance(updates, Mapping) else updates
        with self.atomic():
            for path, value in items:
                self.set(path, value)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Batch changes; watchers see them only once the block completes.

        If the block raises, the values revert and nobody is notified.
        """

        if self._batch is not None:
            yield
            return
        snapshot = deepcopy(self._values)
        touched = set(self._touched)
        self._batch = []
        try:
            yield
        except BaseException:
            self._values = snapshot
            self._touched = touched
            self._batch = None
            raise
        changes, self._batch = self._batch, None
        self._emit(changes)

    def reset(self, values: Mapping[str, Any] | None = None) -> None:
        """Replace every value, e.g. after loading from the server, and mark it saved."""

        previous = self._values
        self._values = self._initial_values(values)
        self._saved = deepcopy(self._values)
        self._touched.clear()
        self.errors.clear()
        if previous != self._values:
            self._emit([FieldChange(ROOT, previous, deepcopy(self._values))])

    def mark_saved(self) -> None:
        self._saved = deepcopy(self._values)
        self._touched.clear()

    # watching

    def watch(self, callback: Watcher, paths: Iterable[FieldRef] | None = None) -> Callable[[], None]:
        """Call ``callback`` for each change touching ``paths`` (all changes if omitted).

        Returns a function that removes the subscription.
        """

        subscription = _Subscription(
            callback,
            None if paths is None else tuple(FieldPath.of(path) for path in paths),
        )
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def _emit(self, changes: list[FieldChange]) -> None:
        for change in changes:
            for subscription in list(self._subscriptions):
                # a watcher may already have overwritten this change
                if get_in(self._values, change.path) != change.value:
                    break
                if subscription.wants(change.path):
                    subscription.callback(change)

    # validation

    def validate(self, schema: type[BaseModel] | None = None) -> bool:
        """Validate the current values, replacing ``errors``; True when valid."""

        try:
            (schema or self.schema).model_validate(self._values)
        except ValidationError as exc:
            self.errors = {}
            for error in exc.errors():
                self.errors.setdefault(_error_key(error["loc"]), _error_message(error))
            logger.debug("form validation failed: %s", self.errors)
            return False
        self.errors = {}
        return True

    def set_error(self, path: FieldRef, message: str) -> None:
        self.errors[FieldPath.of(path).dotted] = message

    def clear_errors(self) -> None:
        self.errors.clear()

    def _clear_errors_under(self, path: FieldPath) -> None:
        for key in [key for key in self.errors if key != FORM_ERROR_KEY]:
            if path.overlaps(FieldPath.parse(key)):
                del self.errors[key]
