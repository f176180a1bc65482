"""FastAPI application exposing the generate, status and upload proxies."""

import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.config import Settings, settings as default_settings
from motionlab.core.errors import InvalidRequest, ProxyError, RateLimited
from motionlab.core.models import UploadedFile
from motionlab.core.proxy import ProxyService
from motionlab.core.registry import get_all_models
from motionlab.utils.health import HealthChecker, HealthStatus
from motionlab.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _error_response(error: ProxyError) -> JSONResponse:
    headers = None
    if isinstance(error, RateLimited) and error.extra.get("retry_after") is not None:
        headers = {"Retry-After": str(error.extra["retry_after"])}
    return JSONResponse(status_code=error.status_code, content=error.to_payload(), headers=headers)


def _validation_details(error: RequestValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in item.get("loc", ()) if part != "body"),
            "message": str(item.get("msg", "")),
        }
        for item in error.errors()
    ]


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    stream = upload.file
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


def create_app(
    app_settings: Optional[Settings] = None,
    service: Optional[ProxyService] = None,
    rate_limiter: Optional[RateLimiter] = None,
    health_checker: Optional[HealthChecker] = None
) -> FastAPI:
    """Create the proxy API.

    Args:
        app_settings: Settings to use (defaults to the global settings)
        service: ProxyService override, mainly for tests
        rate_limiter: RateLimiter override; built from settings when omitted
        health_checker: HealthChecker override

    Returns:
        Configured FastAPI application
    """
    cfg = app_settings or default_settings
    service = service or ProxyService.from_settings(cfg)
    if rate_limiter is None and cfg.enable_rate_limiting:
        rate_limiter = RateLimiter(
            max_requests=cfg.rate_limit_requests,
            window_seconds=cfg.rate_limit_window
        )
    health_checker = health_checker or HealthChecker(server_key_configured=cfg.has_server_key())

    app = FastAPI(title="Motion Studio API")
    app.state.proxy_service = service
    app.state.health_checker = health_checker
    router = APIRouter(prefix="/api")

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Report malformed parameters as 400 in the usual error shape."""
        health_checker.record_request(success=False)
        error = InvalidRequest("Invalid request parameters", details=_validation_details(exc))
        logger.info(f"{request.url.path} rejected: {error!r}")
        return _error_response(error)

    async def proxy_call(request: Request, operation: Callable[[], Any]) -> JSONResponse:
        """Run one proxy operation and turn its outcome into a response."""
        try:
            if rate_limiter is not None:
                rate_limiter.enforce(_client_id(request))
            result = await run_in_threadpool(operation)
        except ProxyError as e:
            health_checker.record_request(success=False)
            if e.status_code >= 500:
                logger.error(f"{request.url.path} failed: {e!r}")
            else:
                logger.info(f"{request.url.path} rejected: {e!r}")
            return _error_response(e)
        except Exception as e:
            health_checker.record_request(success=False)
            logger.exception(f"Unexpected error in {request.url.path}")
            return JSONResponse(status_code=500, content={"error": str(e) or "Internal server error"})

        health_checker.record_request(success=True)
        return JSONResponse(content=result)

    @router.post("/generate")
    async def generate(request: Request, x_api_key: Optional[str] = Header(None)):
        """Submit a generation task for the model named in the body."""
        try:
            body = await request.json()
        except ValueError:
            # Rejected by the service, after the API key check
            body = None

        return await proxy_call(request, lambda: service.generate(body, x_api_key))

    @router.get("/status")
    async def status(
        request: Request,
        model: Optional[str] = Query(None),
        taskId: Optional[str] = Query(None),
        x_api_key: Optional[str] = Header(None)
    ):
        """Check the status of a generation task."""
        return await proxy_call(request, lambda: service.status(model, taskId, x_api_key))

    @router.post("/upload")
    async def upload(request: Request, file: Optional[UploadFile] = File(None)):
        """Forward an image or video to the public file host."""

        def forward():
            uploaded = None
            if file is not None:
                uploaded = UploadedFile(
                    filename=file.filename or "upload",
                    content_type=file.content_type or "",
                    size=_upload_size(file),
                    stream=file.file,
                )
            return service.upload(uploaded)

        return await proxy_call(request, forward)

    @router.get("/models")
    async def models():
        """List the registered models and their form schema."""
        return [model.model_dump(mode="json") for model in get_all_models()]

    @router.get("/health")
    async def health(deep: bool = False):
        """Report server health; ``deep=true`` also checks the upstream services."""
        if not cfg.enable_health_checks:
            return JSONResponse(status_code=404, content={"error": "Health checks are disabled"})

        result = await run_in_threadpool(health_checker.check_health)
        payload = result.to_dict()
        if rate_limiter is not None:
            payload.setdefault("details", {})["rate_limit"] = rate_limiter.get_stats()
        if deep:
            payload["upstreams"] = await run_in_threadpool(
                health_checker.check_upstreams, [service.freepik, service.catbox]
            )

        status_code = 503 if result.status == HealthStatus.UNHEALTHY else 200
        return JSONResponse(status_code=status_code, content=payload)

    app.include_router(router)
    return app
