"""Drives the generate → poll → display lifecycle for one browser session."""

import logging
import os
import threading
from typing import Any, Mapping, Optional

from motionlab.client.gateway import Gateway, GatewayResponse
from motionlab.client.scheduler import ScheduledHandle, Scheduler, ThreadingScheduler
from motionlab.client.state import (
    DEFAULT_POLL_ERROR_MESSAGE,
    ApiKeyChanged,
    Event,
    FieldsUpdated,
    ModelSelected,
    PollFailed,
    PollSucceeded,
    SessionState,
    SubmitRejected,
    SubmitStarted,
    TaskCreated,
    UploadFailed,
    UploadFinished,
    UploadStarted,
    find_missing_required,
    initial_state,
    reduce,
    sanitize_form,
)
from motionlab.core.models import GenerationTask, ModelDescriptor, TaskStatus
from motionlab.core.registry import get_default_model, get_model_by_id

logger = logging.getLogger(__name__)


def unwrap_data(payload: Any) -> dict[str, Any]:
    """The remote API nests results under ``data``; accept either shape."""
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            return data
        return payload
    return {}


class GenerationController:
    """Client-side controller for one session.

    Owns the session state (mutated only through ``dispatch``) and at most
    one active poll handle. Starting a new generation or switching models
    cancels the previous handle before anything else happens, so polls for
    a superseded task can never update the state.

    Attributes:
        gateway: How proxy endpoints are reached
        scheduler: Creates the fixed-interval poll timer
        poll_interval: Seconds between status polls
    """

    def __init__(
        self,
        gateway: Gateway,
        scheduler: Optional[Scheduler] = None,
        model: Optional[ModelDescriptor] = None,
        api_key: str = "",
        poll_interval: float = 5.0,
        max_poll_errors: int = 10,
        max_history: int = 50
    ):
        self.gateway = gateway
        self.scheduler = scheduler or ThreadingScheduler()
        self.poll_interval = poll_interval
        self._lock = threading.RLock()
        self._poll_handle: Optional[ScheduledHandle] = None
        self._state = initial_state(
            model or get_default_model(),
            api_key=api_key,
            max_poll_errors=max_poll_errors,
            max_history=max_history,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def model(self) -> ModelDescriptor:
        model = get_model_by_id(self._state.model_id)
        if model is None:
            raise RuntimeError(f"Selected model is not registered: {self._state.model_id}")
        return model

    def dispatch(self, event: Event) -> SessionState:
        """Apply an event to the session state."""
        with self._lock:
            self._state = reduce(self._state, event)
            return self._state

    def _cancel_polling(self) -> None:
        with self._lock:
            if self._poll_handle is not None:
                self._poll_handle.cancel()
                self._poll_handle = None

    def set_api_key(self, api_key: Optional[str]) -> SessionState:
        return self.dispatch(ApiKeyChanged(api_key or ""))

    def update_fields(self, values: Mapping[str, Any]) -> SessionState:
        return self.dispatch(FieldsUpdated(dict(values)))

    def select_model(self, model_id: str) -> SessionState:
        """Switch models, abandoning any task in flight.

        The remote job keeps running; the session simply stops tracking it.

        Raises:
            ValueError: If the model id is not registered
        """
        model = get_model_by_id(model_id)
        if model is None:
            raise ValueError(f"Unknown model: {model_id}")

        with self._lock:
            self._cancel_polling()
            if self._state.task is not None and self._state.is_polling:
                logger.info(f"Abandoning task {self._state.task.task_id} after model switch")
            return self.dispatch(ModelSelected(model))

    def generate(self, values: Optional[Mapping[str, Any]] = None) -> SessionState:
        """Validate the form, submit it and start polling.

        Args:
            values: Latest form values; merged into the session form first

        Returns:
            The state after submission (POLLING on success, IDLE with an
            error otherwise)
        """
        with self._lock:
            self._cancel_polling()
            if values:
                self.dispatch(FieldsUpdated(dict(values)))
            self.dispatch(SubmitStarted())
            model = self.model
            form = sanitize_form(self._state.form)
            api_key = self._state.api_key

        missing = find_missing_required(model, form)
        if missing:
            return self.dispatch(SubmitRejected(f"Required fields missing: {', '.join(missing)}"))

        logger.info(f"Submitting generation for {model.id}")
        response = self.gateway.generate(model.id, form, api_key)

        if not response.ok:
            return self.dispatch(SubmitRejected(response.error or "Generation failed"))

        data = unwrap_data(response.data)
        task_id = data.get("task_id")
        if not task_id:
            return self.dispatch(SubmitRejected("No task ID returned"))

        prompt = form.get("prompt")
        task = GenerationTask(
            task_id=str(task_id),
            model_id=model.id,
            model_name=model.name,
            status=TaskStatus.parse(data.get("status") or TaskStatus.CREATED.value),
            prompt=str(prompt) if prompt else None,
        )

        with self._lock:
            state = self.dispatch(TaskCreated(task))
            if state.is_polling and state.task.task_id == task.task_id:
                self._cancel_polling()
                self._poll_handle = self.scheduler.schedule(
                    self.poll_interval, lambda: self.poll(task.task_id)
                )
                logger.info(f"Task {task.task_id} created; polling every {self.poll_interval}s")
            return state

    def poll(self, task_id: str) -> SessionState:
        """Check the status of `task_id` once.

        Does nothing unless `task_id` is the task currently being polled.
        """
        state = self._state
        if not state.is_polling or state.task is None or state.task.task_id != task_id:
            return state

        response = self.gateway.status(state.task.model_id, task_id, state.api_key)
        event = self._poll_event(task_id, response)

        with self._lock:
            state = self.dispatch(event)
            if isinstance(event, PollFailed) and state.is_polling:
                logger.warning(
                    f"Poll error for {task_id} (attempt {state.poll_errors}): {response.status_code}"
                )
            if state.task is not None and state.task.task_id == task_id and not state.is_polling:
                self._cancel_polling()
                logger.info(f"Task {task_id} finished with status {state.task.status.value}")
            return state

    @staticmethod
    def _poll_event(task_id: str, response: GatewayResponse) -> Event:
        if not response.ok:
            return PollFailed(task_id, response.error or DEFAULT_POLL_ERROR_MESSAGE)

        data = unwrap_data(response.data)
        generated = data.get("generated") or []
        if not isinstance(generated, list):
            generated = []
        return PollSucceeded(
            task_id=task_id,
            status=TaskStatus.parse(data.get("status")),
            generated=tuple(url for url in generated if isinstance(url, str) and url),
        )

    def upload(self, field_name: str, path: str) -> SessionState:
        """Upload a local file and put its public URL into `field_name`."""
        file_name = os.path.basename(path)
        self.dispatch(UploadStarted(field_name, file_name))

        response = self.gateway.upload(path)
        url = response.data.get("url") if isinstance(response.data, dict) else None
        if not response.ok or not url:
            message = response.error or "Upload failed"
            if response.status_code == 0:
                message = "Upload failed: connection error"
            logger.warning(f"Upload of {file_name} for {field_name} failed: {message}")
            return self.dispatch(UploadFailed(field_name, message))

        return self.dispatch(UploadFinished(field_name, file_name, url))

    def shutdown(self) -> None:
        """Stop polling; called when the browser session ends."""
        self._cancel_polling()
