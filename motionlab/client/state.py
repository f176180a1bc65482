"""Session state for the generation UI and the reducer that evolves it.

All state changes go through ``reduce(state, event)``; the controller owns a
single ``SessionState`` and replaces it with the reducer's result.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from motionlab.core.models import (
    GenerationTask,
    HistoryEntry,
    ModelDescriptor,
    TaskStatus,
    UploadState,
)

DEFAULT_POLL_ERROR_MESSAGE = "Failed to check status after several attempts"
UPLOAD_PENDING_MESSAGE = "Uploading..."
UPLOAD_DONE_MESSAGE = "Uploaded!"

_QUOTE_CHARS = ("`", '"', "'")


class Phase(str, Enum):
    """Lifecycle of a generation in the UI."""
    IDLE = "IDLE"
    SUBMITTING = "SUBMITTING"
    POLLING = "POLLING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def _frozen(mapping: Optional[Mapping] = None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class SessionState:
    """Everything one browser session knows.

    Attributes:
        model_id: Selected model
        form: Current form values keyed by field name
        phase: Where the generation lifecycle stands
        task: The task being tracked, if any
        history: Completed generations, newest first
        uploads: Upload progress keyed by field name
        error: Inline error message for the form
        api_key: Key sent to the proxy in the ``x-api-key`` header
        poll_errors: Consecutive failed status polls
        max_poll_errors: Failures tolerated before the task is marked FAILED
        max_history: Entries kept in history
        revision: Incremented on every change, used to skip redundant redraws
    """
    model_id: str
    form: Mapping[str, Any] = field(default_factory=_frozen)
    phase: Phase = Phase.IDLE
    task: Optional[GenerationTask] = None
    history: tuple[HistoryEntry, ...] = ()
    uploads: Mapping[str, UploadState] = field(default_factory=_frozen)
    error: Optional[str] = None
    api_key: str = ""
    poll_errors: int = 0
    max_poll_errors: int = 10
    max_history: int = 50
    revision: int = 0

    @property
    def is_polling(self) -> bool:
        return self.phase == Phase.POLLING

    @property
    def is_busy(self) -> bool:
        return self.phase in (Phase.SUBMITTING, Phase.POLLING)


def initial_state(
    model: ModelDescriptor,
    api_key: str = "",
    max_poll_errors: int = 10,
    max_history: int = 50
) -> SessionState:
    """Idle state for a fresh session on `model`."""
    return SessionState(
        model_id=model.id,
        form=_frozen(model.defaults()),
        api_key=api_key,
        max_poll_errors=max_poll_errors,
        max_history=max_history,
    )


# Events


@dataclass(frozen=True)
class ModelSelected:
    model: ModelDescriptor


@dataclass(frozen=True)
class FieldsUpdated:
    values: Mapping[str, Any]


@dataclass(frozen=True)
class ApiKeyChanged:
    api_key: str


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitRejected:
    message: str


@dataclass(frozen=True)
class TaskCreated:
    task: GenerationTask


@dataclass(frozen=True)
class PollSucceeded:
    task_id: str
    status: TaskStatus
    generated: tuple[str, ...] = ()
    completed_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class PollFailed:
    task_id: str
    message: Optional[str] = None


@dataclass(frozen=True)
class UploadStarted:
    field_name: str
    file_name: str


@dataclass(frozen=True)
class UploadFinished:
    field_name: str
    file_name: str
    url: str


@dataclass(frozen=True)
class UploadFailed:
    field_name: str
    message: str


Event = Union[
    ModelSelected, FieldsUpdated, ApiKeyChanged, SubmitStarted, SubmitRejected,
    TaskCreated, PollSucceeded, PollFailed, UploadStarted, UploadFinished, UploadFailed,
]


def reduce(state: SessionState, event: Event) -> SessionState:
    """Apply one event and return the next state.

    Events that do not apply to the current state (for example a poll
    result for a task that has since been replaced) return `state` unchanged.
    """
    next_state = _apply(state, event)
    if next_state is state:
        return state
    return replace(next_state, revision=state.revision + 1)


def _apply(state: SessionState, event: Event) -> SessionState:
    if isinstance(event, ModelSelected):
        return replace(
            state,
            model_id=event.model.id,
            form=_frozen(event.model.defaults()),
            phase=Phase.IDLE,
            task=None,
            uploads=_frozen(),
            error=None,
            poll_errors=0,
        )

    if isinstance(event, FieldsUpdated):
        return replace(state, form=_frozen({**state.form, **event.values}))

    if isinstance(event, ApiKeyChanged):
        return replace(state, api_key=event.api_key.strip())

    if isinstance(event, SubmitStarted):
        return replace(state, phase=Phase.SUBMITTING, task=None, error=None, poll_errors=0)

    if isinstance(event, SubmitRejected):
        if state.phase != Phase.SUBMITTING:
            return state
        return replace(state, phase=Phase.IDLE, error=event.message)

    if isinstance(event, TaskCreated):
        if state.phase != Phase.SUBMITTING:
            return state
        return replace(state, phase=Phase.POLLING, task=event.task, error=None, poll_errors=0)

    if isinstance(event, PollSucceeded):
        return _apply_poll_success(state, event)

    if isinstance(event, PollFailed):
        return _apply_poll_failure(state, event)

    if isinstance(event, UploadStarted):
        upload = UploadState(uploading=True, progress=UPLOAD_PENDING_MESSAGE, file_name=event.file_name)
        return replace(state, uploads=_frozen({**state.uploads, event.field_name: upload}))

    if isinstance(event, UploadFinished):
        upload = UploadState(uploading=False, progress=UPLOAD_DONE_MESSAGE, file_name=event.file_name)
        return replace(
            state,
            form=_frozen({**state.form, event.field_name: event.url}),
            uploads=_frozen({**state.uploads, event.field_name: upload}),
        )

    if isinstance(event, UploadFailed):
        upload = UploadState(uploading=False, progress=event.message)
        return replace(state, uploads=_frozen({**state.uploads, event.field_name: upload}))

    raise TypeError(f"Unknown event: {event!r}")


def _is_current_poll(state: SessionState, task_id: str) -> bool:
    return state.phase == Phase.POLLING and state.task is not None and state.task.task_id == task_id


def _apply_poll_success(state: SessionState, event: PollSucceeded) -> SessionState:
    if not _is_current_poll(state, event.task_id):
        return state

    generated = [url for url in event.generated if isinstance(url, str) and url]
    task = state.task.model_copy(
        update={"status": event.status, "generated": generated, "error": None}
    )

    phase = Phase.POLLING
    history = state.history
    if event.status.is_success:
        phase = Phase.COMPLETED
        if generated:
            entry = HistoryEntry(
                model_name=task.model_name,
                prompt=task.prompt or "",
                video_url=generated[0],
                timestamp=event.completed_at,
            )
            history = ((entry,) + history)[:state.max_history]
    elif event.status.is_failure:
        phase = Phase.FAILED

    return replace(state, task=task, phase=phase, history=history, poll_errors=0)


def _apply_poll_failure(state: SessionState, event: PollFailed) -> SessionState:
    if not _is_current_poll(state, event.task_id):
        return state

    poll_errors = state.poll_errors + 1
    if poll_errors < state.max_poll_errors:
        return replace(state, poll_errors=poll_errors)

    task = state.task.model_copy(
        update={"status": TaskStatus.FAILED, "error": event.message or DEFAULT_POLL_ERROR_MESSAGE}
    )
    return replace(state, task=task, phase=Phase.FAILED, poll_errors=poll_errors)


def sanitize_value(value: Any) -> Any:
    """Clean a form value before it is validated and submitted.

    Strings are trimmed and lose one pair of matching surrounding quotes
    (backtick, double or single), as left behind by copy-pasting. Other
    values pass through untouched.
    """
    if not isinstance(value, str):
        return value

    cleaned = value.strip()
    if len(cleaned) >= 2 and cleaned[0] in _QUOTE_CHARS and cleaned[0] == cleaned[-1]:
        cleaned = cleaned[1:-1].strip()
    return cleaned


def sanitize_form(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: sanitize_value(value) for key, value in values.items()}


def find_missing_required(model: ModelDescriptor, values: Mapping[str, Any]) -> list[str]:
    """Labels of required fields that are missing or blank in `values`."""
    missing = []
    for descriptor in model.fields:
        if not descriptor.required:
            continue
        value = values.get(descriptor.name)
        if value is None or str(value).strip() == "":
            missing.append(descriptor.label)
    return missing
