"""Core data models for motion-transfer video generation."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldKind(str, Enum):
    """Kinds of form inputs a model can declare."""
    TEXT = "text"
    TEXTAREA = "textarea"
    URL = "url"
    SELECT = "select"
    NUMBER = "number"
    BOOLEAN = "boolean"


class FieldOption(BaseModel):
    """A label/value pair offered by a select field."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: Union[str, int, float]


class FieldDescriptor(BaseModel):
    """Declarative description of one form input.

    Attributes:
        name: Form key sent to the remote API
        label: Human-readable label
        kind: Input kind (text, textarea, url, select, number, boolean)
        required: Whether a non-blank value is needed before submitting
        placeholder: Placeholder text shown in an empty input
        help_text: Short hint rendered under the input
        default_value: Initial value when the model is selected
        min/max/step: Numeric bounds (number fields only)
        options: Choices (select fields only)
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    label: str
    kind: FieldKind
    required: bool = False
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: Tuple[FieldOption, ...] = ()

    @model_validator(mode="after")
    def _check_kind_constraints(self) -> "FieldDescriptor":
        if self.kind == FieldKind.SELECT and not self.options:
            raise ValueError(f"Select field '{self.name}' needs at least one option")
        if self.kind != FieldKind.NUMBER and any(
            bound is not None for bound in (self.min, self.max, self.step)
        ):
            raise ValueError(f"Numeric bounds are only valid on number fields ('{self.name}')")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min is greater than max on field '{self.name}'")
        return self


class ModelDescriptor(BaseModel):
    """A remote generation capability and its input schema.

    Attributes:
        id: Unique registry key
        name: Display name
        badge: Optional short tag (e.g. "PRO")
        endpoint: Generation endpoint path on the remote API
        status_endpoint: Status endpoint path; the task id is appended
        description: One-line description shown in the UI
        fields: Ordered form fields
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    badge: Optional[str] = None
    endpoint: str
    status_endpoint: str
    description: str = ""
    fields: Tuple[FieldDescriptor, ...] = ()

    @model_validator(mode="after")
    def _check_unique_field_names(self) -> "ModelDescriptor":
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate field names in model '{self.id}': {duplicates}")
        return self

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        """Return the field called `name`, or None."""
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def defaults(self) -> dict[str, Any]:
        """Initial form values for every field that declares a default."""
        return {
            field.name: field.default_value
            for field in self.fields
            if field.default_value is not None
        }

    @property
    def display_name(self) -> str:
        """Name with the badge appended, as shown in the model picker."""
        return f"{self.name} [{self.badge}]" if self.badge else self.name


class TaskStatus(str, Enum):
    """Statuses reported by the remote API for a generation task."""
    CREATED = "CREATED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DONE = "DONE"
    FAILED = "FAILED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        """Map a raw remote status string onto a TaskStatus.

        Unrecognised or missing values become UNKNOWN.
        """
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.UNKNOWN

    @property
    def is_success(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.DONE)

    @property
    def is_failure(self) -> bool:
        return self in (TaskStatus.FAILED, TaskStatus.ERROR)

    @property
    def is_terminal(self) -> bool:
        return self.is_success or self.is_failure


class GenerationTask(BaseModel):
    """A remote generation job tracked by the client.

    Attributes:
        task_id: Opaque id returned by the remote API
        model_id: Registry id of the model that created it
        model_name: Display name of that model
        status: Last status reported by the remote API
        generated: Result URLs (non-empty strings only)
        error: Error message, if the task failed
        prompt: Prompt text submitted with the task
    """

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(..., min_length=1)
    model_id: str
    model_name: str
    status: TaskStatus = TaskStatus.CREATED
    generated: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    prompt: Optional[str] = None

    @property
    def result_url(self) -> Optional[str]:
        return self.generated[0] if self.generated else None


class HistoryEntry(BaseModel):
    """A completed generation kept in the session history.

    Attributes:
        model_name: Display name of the model used
        prompt: Prompt text submitted with the task
        video_url: First result URL
        timestamp: When the task completed
    """

    model_config = ConfigDict(frozen=True)

    model_name: str
    prompt: str = ""
    video_url: str
    timestamp: datetime = Field(default_factory=datetime.now)


class UploadState(BaseModel):
    """Progress of a file upload for a single form field."""

    model_config = ConfigDict(frozen=True)

    uploading: bool = False
    progress: str = ""
    file_name: Optional[str] = None


class UploadedFile(BaseModel):
    """A file received by the upload proxy.

    Attributes:
        filename: Original file name
        content_type: MIME type reported by the client
        size: Size in bytes
        stream: Readable binary stream with the content
    """

    filename: str = "upload"
    content_type: str = ""
    size: int = Field(..., ge=0)
    stream: Any
