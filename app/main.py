"""Gradio front end for Kling motion-control video generation."""

import logging
from typing import Any, Callable, Optional
import gradio as gr
import uvicorn

from app.api import create_app
from app.config import settings
from motionlab.client.controller import GenerationController
from motionlab.client.gateway import Gateway, HttpGateway, LocalGateway
from motionlab.client.state import UPLOAD_DONE_MESSAGE, Phase, SessionState
from motionlab.core.models import FieldDescriptor, FieldKind, HistoryEntry, TaskStatus, UploadState
from motionlab.core.proxy import ProxyService
from motionlab.core.registry import get_all_models, get_default_model, get_model_by_id

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Browser local-storage key holding the user's API key
API_KEY_STORAGE_KEY = "freepik_api_key"

# Shared by the HTTP routes and in-process browser sessions
proxy_service = ProxyService.from_settings(settings)

STATUS_ICONS = {
    TaskStatus.CREATED: "🔵",
    TaskStatus.IN_PROGRESS: "🟡",
    TaskStatus.COMPLETED: "🟢",
    TaskStatus.DONE: "🟢",
    TaskStatus.FAILED: "🔴",
    TaskStatus.ERROR: "🔴",
    TaskStatus.UNKNOWN: "⚪",
}

NO_TASK_MESSAGE = "No generation in progress."
NO_HISTORY_MESSAGE = "No videos yet."


def create_gateway() -> Gateway:
    """Pick how sessions reach the proxy: a remote server or this process."""
    if settings.proxy_base_url:
        logger.info(f"Sessions will call the proxy at {settings.proxy_base_url}")
        return HttpGateway(settings.proxy_base_url, timeout=settings.request_timeout)
    return LocalGateway(proxy_service)


def create_controller(api_key: str = "") -> GenerationController:
    """Create the controller for a new browser session."""
    return GenerationController(
        gateway=create_gateway(),
        api_key=api_key,
        poll_interval=settings.poll_interval,
        max_poll_errors=settings.max_poll_errors,
        max_history=settings.max_history,
    )


def shutdown_controller(controller: Optional[GenerationController]) -> None:
    """Stop polling when a browser session goes away."""
    if controller is not None:
        controller.shutdown()


def browser_state_secret() -> Optional[str]:
    """Secret that encrypts the API key kept in browser storage.

    Without one Gradio picks a random secret per process, so saved keys
    cannot be read back after a restart.
    """
    if not settings.browser_state_secret:
        logger.warning("BROWSER_STATE_SECRET is not set; saved API keys will not survive a restart")
    return settings.browser_state_secret or None


def describe_model(model_id: Optional[str]) -> str:
    model = get_model_by_id(model_id)
    if model is None:
        return "⚠️ Unknown model"
    return f"**{model.display_name}**\n\n{model.description}"


def api_key_note(api_key: str) -> str:
    if settings.has_server_key():
        return "🔒 A server API key is configured and used for every request."
    if api_key:
        return "✅ API key saved in this browser."
    return "⚠️ No API key yet. Enter your Freepik API key to generate videos."


def build_field_component(field: FieldDescriptor):
    """Create the Gradio input for a form field.

    Args:
        field: The field to render

    Returns:
        A Gradio component whose value is the field value

    Raises:
        ValueError: If the field kind has no matching component
    """
    label = f"{field.label} *" if field.required else field.label

    if field.kind in (FieldKind.TEXT, FieldKind.URL):
        return gr.Textbox(
            label=label,
            info=field.help_text,
            placeholder=field.placeholder,
            value=field.default_value or "",
            lines=1
        )

    if field.kind == FieldKind.TEXTAREA:
        return gr.Textbox(
            label=label,
            info=field.help_text,
            placeholder=field.placeholder,
            value=field.default_value or "",
            lines=4,
            max_lines=10
        )

    if field.kind == FieldKind.SELECT:
        return gr.Dropdown(
            label=label,
            info=field.help_text,
            choices=[(option.label, option.value) for option in field.options],
            value=field.default_value
        )

    if field.kind == FieldKind.NUMBER:
        return gr.Number(
            label=label,
            info=field.help_text,
            value=field.default_value,
            minimum=field.min,
            maximum=field.max,
            step=field.step or 1
        )

    if field.kind == FieldKind.BOOLEAN:
        return gr.Checkbox(label=label, info=field.help_text, value=bool(field.default_value))

    raise ValueError(f"No component for field kind: {field.kind}")


def format_upload_state(upload: Optional[UploadState]) -> str:
    if upload is None:
        return ""
    if upload.uploading:
        return f"⏳ Uploading {upload.file_name}..."
    if upload.progress == UPLOAD_DONE_MESSAGE:
        return f"✅ {upload.file_name} uploaded"
    return f"❌ {upload.progress}"


def format_status(state: SessionState) -> str:
    """Render the status panel for the current task."""
    task = state.task
    if task is None:
        if state.phase == Phase.SUBMITTING:
            return "⏳ Submitting..."
        return NO_TASK_MESSAGE

    lines = [
        f"{STATUS_ICONS.get(task.status, '⚪')} **{task.status.value}**",
        f"Task ID: `{task.task_id}`",
        f"Model: {task.model_name}",
    ]
    if state.is_polling:
        lines.append(f"Checking status every {settings.poll_interval:g}s...")
    if task.error:
        lines.append(f"❌ {task.error}")
    return "\n\n".join(lines)


def format_history(history: tuple[HistoryEntry, ...]) -> str:
    """Render the session history as a Markdown table, newest first."""
    if not history:
        return NO_HISTORY_MESSAGE

    rows = [
        f"### 📼 Video History ({len(history)})",
        "",
        "| # | Model | Prompt | Video | Time |",
        "|---|---|---|---|---|",
    ]
    for i, entry in enumerate(history, 1):
        prompt = (entry.prompt or "No prompt").replace("|", "\\|").replace("\n", " ")
        if len(prompt) > 80:
            prompt = prompt[:77] + "..."
        rows.append(
            f"| {i} | {entry.model_name} | {prompt} | [Open]({entry.video_url}) "
            f"| {entry.timestamp:%H:%M:%S} |"
        )
    return "\n".join(rows)


def start_session(stored_key: Optional[str]):
    """Create the session controller on page load, restoring the saved key."""
    api_key = (stored_key or "").strip()
    controller = create_controller(api_key=api_key)
    return controller, api_key, api_key_note(api_key)


def save_api_key(controller: Optional[GenerationController], api_key: Optional[str]):
    """Apply the key to the session and persist it in the browser."""
    api_key = (api_key or "").strip()
    if controller is not None:
        controller.set_api_key(api_key)
    return api_key, api_key_note(api_key)


def change_model(controller: Optional[GenerationController], model_id: str):
    """Switch the session to another model; returns (description, form error)."""
    if controller is not None:
        try:
            controller.select_model(model_id)
        except ValueError as e:
            return describe_model(model_id), f"❌ {e}"
    return describe_model(model_id), ""


def make_generate_handler(field_names: list[str]) -> Callable[..., str]:
    """Build the Generate click handler for a rendered form.

    The handler receives the session controller followed by one value per
    field, in `field_names` order, and returns the inline form error.
    """

    def handle_generate(controller: Optional[GenerationController], *values: Any) -> str:
        if controller is None:
            return "❌ Session not initialized. Reload the page."
        state = controller.generate(dict(zip(field_names, values)))
        return f"❌ {state.error}" if state.error else ""

    return handle_generate


def make_upload_handler(field_name: str) -> Callable[..., tuple]:
    """Build the upload handler for a URL field.

    Returns (field value update, upload status text).
    """

    def handle_upload(controller: Optional[GenerationController], path: Optional[str]):
        if controller is None or not path:
            return gr.update(), ""
        state = controller.upload(field_name, path)
        upload = state.uploads.get(field_name)
        if upload is not None and upload.progress == UPLOAD_DONE_MESSAGE:
            return gr.update(value=state.form.get(field_name)), format_upload_state(upload)
        return gr.update(), format_upload_state(upload)

    return handle_upload


def refresh_view(controller: Optional[GenerationController], rendered_revision: int):
    """Redraw the status panel and history when the session state changed.

    Returns:
        (revision, status markdown, video, video link, history markdown)
    """
    if controller is None or controller.state.revision == rendered_revision:
        return rendered_revision, gr.update(), gr.update(), gr.update(), gr.update()

    state = controller.state
    video_url = state.task.result_url if state.task else None
    link = f"[⬇️ Open video in a new tab]({video_url})" if video_url else ""
    return state.revision, format_status(state), video_url, link, format_history(state.history)


def create_ui() -> gr.Blocks:
    """Create the Gradio interface.

    Returns:
        Gradio Blocks interface
    """
    default_model = get_default_model()

    with gr.Blocks(title="Motion Studio") as demo:
        gr.Markdown(
            """
            # 🎬 Motion Studio

            Transfer the motion of a reference video onto a character image with
            **Kling 2.6 Motion Control**. Upload or link your inputs, generate, and
            the result appears here when the task completes.
            """
        )

        session = gr.State(None, delete_callback=shutdown_controller)
        rendered_revision = gr.State(-1)
        api_key_store = gr.BrowserState(
            "",
            storage_key=API_KEY_STORAGE_KEY,
            secret=browser_state_secret()
        )

        with gr.Row():
            api_key_input = gr.Textbox(
                label="Freepik API Key",
                type="password",
                placeholder="Paste your Freepik API key",
                interactive=not settings.has_server_key(),
                scale=4
            )
            save_key_btn = gr.Button("💾 Save Key", scale=1)
        api_key_status = gr.Markdown(api_key_note(""))

        with gr.Row():
            with gr.Column(scale=1):
                model_selector = gr.Dropdown(
                    choices=[(model.display_name, model.id) for model in get_all_models()],
                    value=default_model.id,
                    label="Model"
                )
                model_info = gr.Markdown(describe_model(default_model.id))
                form_error = gr.Markdown()

                @gr.render(inputs=[model_selector])
                def render_form(model_id):
                    model = get_model_by_id(model_id)
                    if model is None:
                        gr.Markdown("⚠️ Unknown model")
                        return

                    components = []
                    for field in model.fields:
                        component = build_field_component(field)
                        components.append(component)

                        if field.kind == FieldKind.URL:
                            upload = gr.File(
                                label=f"📁 Upload {field.label}",
                                file_types=["image", "video"],
                                type="filepath"
                            )
                            upload_status = gr.Markdown()
                            upload.upload(
                                fn=make_upload_handler(field.name),
                                inputs=[session, upload],
                                outputs=[component, upload_status]
                            )

                    generate_btn = gr.Button("🎬 Generate Video", variant="primary", size="lg")
                    generate_btn.click(
                        fn=make_generate_handler([field.name for field in model.fields]),
                        inputs=[session, *components],
                        outputs=[form_error]
                    )

            with gr.Column(scale=1):
                status_display = gr.Markdown(NO_TASK_MESSAGE)
                result_video = gr.Video(label="Result", interactive=False)
                result_link = gr.Markdown()

        history_display = gr.Markdown(NO_HISTORY_MESSAGE)
        ticker = gr.Timer(1.0)

        # Event handlers
        demo.load(
            fn=start_session,
            inputs=[api_key_store],
            outputs=[session, api_key_input, api_key_status]
        )

        save_key_btn.click(
            fn=save_api_key,
            inputs=[session, api_key_input],
            outputs=[api_key_store, api_key_status]
        )

        model_selector.change(
            fn=change_model,
            inputs=[session, model_selector],
            outputs=[model_info, form_error]
        )

        ticker.tick(
            fn=refresh_view,
            inputs=[session, rendered_revision],
            outputs=[rendered_revision, status_display, result_video, result_link, history_display]
        )

    return demo


def create_server():
    """Mount the UI on the proxy API so one server serves both."""
    api = create_app(settings, service=proxy_service)
    return gr.mount_gradio_app(api, create_ui(), path="/")


if __name__ == "__main__":
    settings.validate_settings()
    server = create_server()

    logger.info(f"Launching Motion Studio on {settings.server_host}:{settings.server_port}...")
    uvicorn.run(server, host=settings.server_host, port=settings.server_port)
