"""Registry of the motion-control models offered by the app."""

from typing import Optional

from motionlab.core.models import FieldDescriptor, FieldKind, FieldOption, ModelDescriptor

# Both Kling 2.6 motion-control tiers report status on the shared image-to-video path
KLING_STATUS_ENDPOINT = "/v1/ai/image-to-video/kling-v2-6"


def _motion_control_fields() -> list[FieldDescriptor]:
    return [
        FieldDescriptor(
            name="image_url",
            label="Character Image URL",
            kind=FieldKind.URL,
            required=True,
            placeholder="https://example.com/character.jpg",
            help_text="Publicly accessible URL · JPG/PNG/WEBP · min 300×300px · max 10MB",
        ),
        FieldDescriptor(
            name="video_url",
            label="Reference Video URL",
            kind=FieldKind.URL,
            required=True,
            placeholder="https://example.com/motion.mp4",
            help_text="MP4/MOV/WEBM/M4V · 3–30 seconds · publicly accessible",
        ),
        FieldDescriptor(
            name="prompt",
            label="Prompt (Optional)",
            kind=FieldKind.TEXTAREA,
            placeholder="Describe the desired motion...",
            help_text="Max 2500 characters",
        ),
        FieldDescriptor(
            name="character_orientation",
            label="Output Orientation",
            kind=FieldKind.SELECT,
            options=[
                FieldOption(label="Video: matches reference video orientation (max 30s)", value="video"),
                FieldOption(label="Image: matches character image orientation (max 10s)", value="image"),
            ],
            default_value="video",
        ),
        FieldDescriptor(
            name="cfg_scale",
            label="CFG Scale",
            kind=FieldKind.NUMBER,
            default_value=0.5,
            min=0,
            max=1,
            step=0.1,
            help_text="Higher = stronger prompt adherence (0.0 – 1.0)",
        ),
    ]


_MODELS: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id="kling-v2-6-motion-control-pro",
        name="Kling Motion Control Pro",
        badge="PRO",
        endpoint="/v1/ai/video/kling-v2-6-motion-control-pro",
        status_endpoint=KLING_STATUS_ENDPOINT,
        description=(
            "Transfer motion from a reference video to a character image, "
            "preserving appearance with Pro quality"
        ),
        fields=_motion_control_fields(),
    ),
    ModelDescriptor(
        id="kling-v2-6-motion-control-std",
        name="Kling Motion Control Standard",
        badge="STD",
        endpoint="/v1/ai/video/kling-v2-6-motion-control-std",
        status_endpoint=KLING_STATUS_ENDPOINT,
        description="Standard quality motion transfer: faster processing, more affordable",
        fields=_motion_control_fields(),
    ),
)

_MODELS_BY_ID: dict[str, ModelDescriptor] = {model.id: model for model in _MODELS}

if len(_MODELS_BY_ID) != len(_MODELS):
    raise RuntimeError("Model registry contains duplicate ids")


def get_model_by_id(model_id: Optional[str]) -> Optional[ModelDescriptor]:
    """Look up a model by its registry id.

    Args:
        model_id: Registry id

    Returns:
        The matching ModelDescriptor, or None if the id is unknown
    """
    if not model_id:
        return None
    return _MODELS_BY_ID.get(model_id)


def get_all_models() -> list[ModelDescriptor]:
    """Get every registered model in display order."""
    return list(_MODELS)


def get_default_model() -> ModelDescriptor:
    """The model selected when a session starts."""
    return _MODELS[0]
