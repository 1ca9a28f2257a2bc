"""Signoff WebInterface — HTTP surface of the approval relay."""

from __future__ import annotations

import hmac
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from signoff.core.exceptions import (
    AuthorizationError,
    DeliveryError,
    SignoffError,
    ValidationError,
)
from signoff.core.structured_logger import TraceContext
from signoff.lifecycle import Runtime, RuntimeContext
from signoff.observability.health import build_health_report
from signoff.observability.metrics import set_store_sizes

logger = logging.getLogger(__name__)

TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class NotifyRequest(BaseModel):
    type: str | None = None
    phone: str | None = None
    country_code: str | None = Field(None, alias="countryCode")
    otp: str | None = None
    passcode: str | None = None

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @property
    def subject(self) -> str | None:
        if not self.phone:
            return None
        return f"{self.country_code or ''} {self.phone}".strip()


class PollRequest(BaseModel):
    token: str | None = None


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class TraceMiddleware(BaseHTTPMiddleware):
    """Runs each request inside a TraceContext and echoes it as X-Request-Id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get("x-request-id")
        with TraceContext(incoming[:64] if incoming else None) as trace_id:
            response = await call_next(request)
        response.headers["X-Request-Id"] = trace_id
        return response


def _error_body(message: str, error_type: str, code: str) -> dict[str, Any]:
    return {"ok": False, "error": {"message": message, "type": error_type, "code": code}}


class WebInterface:
    def __init__(self, runtime: Runtime):
        self.runtime = runtime
        self.context: RuntimeContext = runtime.context or runtime.bootstrap()
        self.settings = self.context.settings
        self.app = self._build_app()

    @property
    def broker(self):
        return self.context.broker

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.runtime.start()
            try:
                yield
            finally:
                await self.runtime.shutdown()

        app = FastAPI(title="Signoff", version=self.settings.version, lifespan=lifespan)
        self._register_exception_handlers(app)
        self._register_middleware(app)
        self._register_routes(app)
        if self.settings.web.static_dir:
            app.mount(
                "/",
                StaticFiles(directory=self.settings.web.static_dir, html=True),
                name="static",
            )
        return app

    def _register_exception_handlers(self, app: FastAPI) -> None:
        @app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            return JSONResponse(
                status_code=400,
                content=_error_body("Malformed request body", "invalid_request_error", "validation_error"),
            )

        @app.exception_handler(ValidationError)
        async def validation_handler(request: Request, exc: ValidationError):
            return JSONResponse(
                status_code=400,
                content=_error_body(exc.message, "invalid_request_error", exc.reason),
            )

        @app.exception_handler(AuthorizationError)
        async def authorization_handler(request: Request, exc: AuthorizationError):
            return JSONResponse(
                status_code=403,
                content=_error_body(exc.message, "authorization_error", exc.reason),
            )

        @app.exception_handler(DeliveryError)
        async def delivery_handler(request: Request, exc: DeliveryError):
            return JSONResponse(
                status_code=502,
                content=_error_body("Telegram error", "server_error", exc.reason),
            )

        @app.exception_handler(SignoffError)
        async def signoff_error_handler(request: Request, exc: SignoffError):
            logger.error("Unhandled Signoff error: %s", exc.to_dict())
            return JSONResponse(
                status_code=500,
                content=_error_body("Internal server error", "server_error", "internal_error"),
            )

    def _register_middleware(self, app: FastAPI) -> None:
        app.add_middleware(SecurityHeadersMiddleware)
        app.add_middleware(TraceMiddleware)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.web.cors_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    def _register_routes(self, app: FastAPI) -> None:
        self._register_caller_routes(app)
        self._register_webhook_routes(app)
        self._register_utility_routes(app)

    def _register_caller_routes(self, app: FastAPI) -> None:
        @app.post("/notify")
        async def notify(payload: NotifyRequest):
            token = await self.broker.request_approval(
                kind=payload.type,
                subject=payload.subject,
                otp=payload.otp,
                passcode=payload.passcode,
            )
            if token is None:
                return {"ok": True}
            return {"ok": True, "token": token}

        @app.post("/poll")
        async def poll(payload: PollRequest):
            return {"ok": True, "result": self.broker.poll(payload.token)}

    def _register_webhook_routes(self, app: FastAPI) -> None:
        @app.post("/webhook")
        async def webhook(request: Request, background_tasks: BackgroundTasks):
            self._check_webhook_secret(request)
            try:
                update = await request.json()
            except ValueError:
                logger.warning("Webhook received a non-JSON body")
                return {"ok": True}
            # Acknowledge first; verification and side effects run after the response.
            background_tasks.add_task(self._process_update, update)
            return {"ok": True}

        @app.get("/setup")
        async def setup():
            public_url = self.settings.web.public_url
            if not public_url:
                return JSONResponse(
                    status_code=500, content={"ok": False, "error": "web.public_url is not configured"}
                )
            webhook_url = f"{public_url}/webhook"
            try:
                ok = await self.context.gateway.register_webhook(
                    webhook_url, secret_token=self.settings.telegram.webhook_secret
                )
            except DeliveryError as exc:
                return JSONResponse(
                    status_code=500,
                    content={"ok": False, "error": exc.details.get("description", exc.message)},
                )
            if not ok:
                return JSONResponse(
                    status_code=500, content={"ok": False, "error": "Webhook registration refused"}
                )
            return {
                "ok": True,
                "webhook": webhook_url,
                "message": "Webhook registered successfully! You can now use the app.",
            }

    def _register_utility_routes(self, app: FastAPI) -> None:
        @app.get("/health")
        async def health():
            return build_health_report(self.context.store, self.settings.version)

        @app.get("/metrics")
        async def metrics():
            set_store_sizes(self.context.store.stats())
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    def _check_webhook_secret(self, request: Request) -> None:
        expected = self.settings.telegram.webhook_secret
        if not expected:
            return
        supplied = request.headers.get(TELEGRAM_SECRET_HEADER, "")
        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            logger.warning("Webhook call with a bad secret token rejected")
            raise AuthorizationError("Invalid webhook secret")

    async def _process_update(self, update: dict[str, Any]) -> None:
        try:
            callback = self.context.gateway.parse_callback(update)
            if callback is None:
                return
            await self.broker.handle_callback(callback)
        except Exception as e:
            logger.error("Webhook handler error: %s", e, exc_info=True)

    async def start(self) -> None:
        import uvicorn

        config = uvicorn.Config(
            self.app, host=self.settings.web.host, port=self.settings.web.port, log_level="info"
        )
        server = uvicorn.Server(config)
        await server.serve()


def create_app(settings=None, config_path: str | None = None, gateway=None) -> FastAPI:
    runtime = Runtime(settings=settings, config_path=config_path, gateway=gateway)
    return WebInterface(runtime).app
