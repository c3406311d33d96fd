import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from recipeshare.core.config import Settings, require_jwt_secret, settings
from recipeshare.core.errors import AppError
from recipeshare.core.logging_config import configure_logging
from recipeshare.core.rate_limit import limiter
from recipeshare.routes.auth import router as auth_router
from recipeshare.routes.users import router as users_router

logger = logging.getLogger(__name__)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


def app_error_handler(request: Request, exc: AppError):  # noqa: ARG001
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error, request.method, request.url.path, exc.message)
    payload: dict = {"error": exc.error, "message": exc.message}
    if exc.details:
        payload["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


def http_exception_handler(request: Request, exc: StarletteHTTPException):  # noqa: ARG001
    detail = exc.detail
    message: str
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    payload: dict = {"error": _error_code(exc.status_code), "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request payload",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # pydantic error contexts may hold exception instances; keep only JSON-safe keys.
    return [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
        for err in exc.errors()
    ]


def rate_limit_handler(request: Request, exc: RateLimitExceeded):  # noqa: ARG001
    return JSONResponse(
        status_code=429,
        content={"error": "RATE_LIMITED", "message": "Too many requests"},
    )


def persistence_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": "An internal server error occurred."},
    )


def create_app(config: Settings) -> FastAPI:
    configure_logging(config)
    require_jwt_secret(config)

    app = FastAPI(title="Recipeshare API")
    app.state.settings = config
    limiter.enabled = config.ENABLE_RATE_LIMITING
    app.state.limiter = limiter

    logger.info(
        "Startup config: ENV=%s EMAIL_ENABLED=%s provider=%s GOOGLE_ENABLED=%s RATE_LIMITING=%s",
        config.ENV,
        config.EMAIL_ENABLED,
        (config.EMAIL_PROVIDER or "resend"),
        config.google_enabled,
        limiter.enabled,
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(SQLAlchemyError, persistence_error_handler)

    app.include_router(auth_router, prefix=config.API_PREFIX)
    app.include_router(users_router, prefix=config.API_PREFIX)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app(settings)
