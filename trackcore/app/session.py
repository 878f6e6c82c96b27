"""Edit sessions: the validity x dirtiness state machine behind every editor form.

A session holds a draft copy of the entity being edited, re-runs the editor's
rules after every change and only lets a commit through when the draft is both
changed and valid. Host UIs call on_field_changed() from their widgets and bind
save_command() / cancel_command() to their buttons.
"""
import logging
from enum import Enum
from typing import Annotated, Any, Callable, Dict, Generic, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Type, TypeVar

import pydantic
from pydantic import BaseModel, TypeAdapter

from trackcore.app.errors import RangeError, SessionClosedError, TrackCoreError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# A rule looks at the draft and returns an error message, or None when satisfied.
Rule = Callable[[Any], Optional[str]]
# A setter applies an already coerced value to the draft, enforcing invariants
# that span more than one field.
Setter = Callable[[Any, Any], Any]

_adapters: Dict[Tuple[type, str], TypeAdapter] = {}


def _field_adapter(model: Type[BaseModel], field: str) -> TypeAdapter:
    """Validator for one field: its annotation plus its Field() constraints."""
    key = (model, field)
    if key not in _adapters:
        info = model.model_fields[field]
        tp = Annotated[(info.annotation, *info.metadata)] if info.metadata else info.annotation
        _adapters[key] = TypeAdapter(tp, config=model.model_config)
    return _adapters[key]


def _describe(field: str, e: Exception) -> str:
    if isinstance(e, pydantic.ValidationError):
        return f"{field}: {e.errors()[0]['msg']}"
    return str(e)


class SessionState(str, Enum):
    CLEAN_INVALID = "Clean+Invalid"
    CLEAN_VALID = "Clean+Valid"
    DIRTY_INVALID = "Dirty+Invalid"
    DIRTY_VALID = "Dirty+Valid"


class Command(NamedTuple):
    can_execute: Callable[[], bool]
    execute: Callable[[], Any]


class ValidationSession(Generic[T]):
    def __init__(
        self,
        initial: T,
        rules: Sequence[Rule] = (),
        name: Optional[str] = None,
        setters: Optional[Mapping[str, Setter]] = None,
    ):
        self.name = name or type(initial).__name__
        self._rules: List[Rule] = list(rules)
        self._setters: Dict[str, Setter] = dict(setters or {})
        # Input rejected by a field's type or constraints, keyed by field
        self._field_errors: Dict[str, str] = {}
        self._original: T = initial.model_copy(deep=True)
        self._draft: T = initial.model_copy(deep=True)
        self._dirty = False
        self._error: Optional[str] = None
        self._listeners: List[Callable[["ValidationSession[T]"], None]] = []
        self._closed = False
        # Validity is known from the start; the message waits for the first edit.
        self._valid = not self._collect_errors()

    # ------------------------------
    # State
    # ------------------------------

    @property
    def draft(self) -> T:
        """A copy of the current draft. Change it through on_field_changed() or apply()."""
        return self._draft.model_copy(deep=True)

    @property
    def original(self) -> T:
        return self._original.model_copy(deep=True)

    def is_valid(self) -> bool:
        return self._valid

    def is_dirty(self) -> bool:
        return self._dirty

    def error_message(self) -> Optional[str]:
        return self._error

    def can_commit(self) -> bool:
        return not self._closed and self._dirty and self._valid

    @property
    def state(self) -> SessionState:
        if self._dirty:
            return SessionState.DIRTY_VALID if self._valid else SessionState.DIRTY_INVALID
        return SessionState.CLEAN_VALID if self._valid else SessionState.CLEAN_INVALID

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------
    # Validation
    # ------------------------------

    def _collect_errors(self) -> List[str]:
        errors: List[str] = list(self._field_errors.values())
        for rule in self._rules:
            msg = rule(self._draft)
            if msg:
                errors.append(msg)
        return errors

    def _revalidate(self) -> None:
        errors = self._collect_errors()
        self._valid = not errors
        self._error = "\n".join(errors) if errors else None

    def raise_if_invalid(self) -> None:
        errors = self._collect_errors()
        if errors:
            raise ValidationError("\n".join(errors))

    # ------------------------------
    # Editing
    # ------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"{self.name} editor session is closed")

    def on_field_changed(self, field: str, value: Any) -> None:
        self._check_open()
        if field not in type(self._draft).model_fields:
            raise AttributeError(f"{self.name} has no field '{field}'")
        try:
            value = _field_adapter(type(self._draft), field).validate_python(value)
            candidate = self._draft.model_copy(deep=True)
            setter = self._setters.get(field)
            if setter is not None:
                setter(candidate, value)
            else:
                setattr(candidate, field, value)
        except (pydantic.ValidationError, RangeError) as e:
            # The draft keeps its last good value until the field is corrected
            logger.debug("%s rejected %s=%r: %s", self.name, field, value, e)
            self._field_errors[field] = _describe(field, e)
        else:
            self._field_errors.pop(field, None)
            self._draft = candidate
        self._changed()

    def apply(self, mutator: Callable[[T], Any]) -> None:
        """Run mutator on a copy of the draft. If it raises, the draft is untouched
        and the exception reaches the caller."""
        self._check_open()
        candidate = self._draft.model_copy(deep=True)
        mutator(candidate)
        self._draft = candidate
        self._changed()

    def _changed(self) -> None:
        self._dirty = True
        self._revalidate()
        self._notify()

    def commit(self, handler: Optional[Callable[[T], Optional[T]]] = None) -> bool:
        """Run handler on the draft when the session is Dirty+Valid.

        Returns False without calling handler in any other state. A TrackCoreError
        from handler (e.g. CircularDependencyError) becomes the error message and
        the session stays dirty. On success the handler's return value, or the
        draft, becomes the committed value and the session is clean again.
        """
        self._check_open()
        if not self.can_commit():
            logger.debug("%s commit blocked in state %s", self.name, self.state.value)
            return False
        draft = self._draft.model_copy(deep=True)
        try:
            result = handler(draft) if handler is not None else None
        except TrackCoreError as e:
            logger.warning("%s commit rejected: %s", self.name, e)
            self._error = str(e)
            self._notify()
            return False
        committed = result if result is not None else draft
        self._original = committed.model_copy(deep=True)
        self._draft = committed.model_copy(deep=True)
        self._dirty = False
        self._revalidate()
        self._notify()
        return True

    def discard(self) -> None:
        """Drop unsaved changes and go back to the committed values."""
        self._check_open()
        self._draft = self._original.model_copy(deep=True)
        self._dirty = False
        self._field_errors.clear()
        self._valid = not self._collect_errors()
        self._error = None
        self._notify()

    # ------------------------------
    # Listeners and commands
    # ------------------------------

    def subscribe(self, callback: Callable[["ValidationSession[T]"], None]) -> Callable[[], None]:
        """Call back after every state change. Returns an unsubscribe function."""
        self._check_open()
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb(self)

    def close(self) -> None:
        """Detach every listener. The session cannot be used afterwards."""
        self._listeners.clear()
        self._closed = True

    def save_command(self, handler: Optional[Callable[[T], Optional[T]]] = None) -> Command:
        return Command(self.can_commit, lambda: self.commit(handler))

    def cancel_command(self) -> Command:
        return Command(lambda: not self._closed and self._dirty, self.discard)
