"""
FastAPI application entry point

Responsibilities:
1. create the FastAPI app
2. configure global middleware (CORS, Sentry)
3. register the global exception handlers
4. mount the API routers

Run:
    uvicorn app.main:app --reload
    fastapi dev app/main.py
"""
import logging
from typing import Any

import sentry_sdk
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from app.api.errors import AppError
from app.api.main import api_router
from app.core.config import settings

logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    """
    OpenAPI operation id: "{tag}-{route_name}"

    Example:
        "auth-login"  # tag="auth", name="login"
    """
    return f"{route.tags[0]}-{route.name}"


if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":  # pragma: no cover
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
)


@app.exception_handler(AppError)
async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    """
    Render AppError as the standard envelope

    5xx errors are logged since they usually wrap a downstream failure.
    """
    if exc.status_code >= 500:
        logger.error("AppError %s: %s", exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message, "data": None},
    )


@app.exception_handler(HTTPException)
async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """
    Render HTTPException as the standard envelope

    detail may be {"code": ..., "message": ...} or a plain string, in which
    case the code is status_code * 1000.
    """
    payload: dict[str, Any]
    if isinstance(exc.detail, dict) and {"code", "message"} <= set(exc.detail.keys()):
        payload = {"code": exc.detail.get("code"), "message": exc.detail.get("message")}
    else:
        payload = {"code": exc.status_code * 1000, "message": str(exc.detail)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": payload["code"], "message": payload["message"], "data": None},
        headers=getattr(exc, "headers", None),
    )


def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    """
    Join validation errors into one message

    Each error becomes "<dotted field path>:<message>", joined by ", ".
    The leading "body"/"query"/"path" location segment is dropped.

    Args:
        errors: RequestValidationError.errors()

    Returns:
        e.g. "email:value is not a valid email address, password:String should have at least 6 characters"
    """
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        parts.append(f"{'.'.join(loc)}:{err.get('msg', 'Invalid value')}")
    return ", ".join(parts)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=422,
        content={
            "code": 422000,
            "message": format_validation_errors(list(errors)) or "Validation error",
            "data": {"errors": _jsonable_errors(errors)},
        },
    )


def _jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    # ctx may hold exception instances that JSONResponse cannot encode
    out = []
    for err in errors:
        item = {k: v for k, v in err.items() if k != "ctx"}
        if "ctx" in err:
            item["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        out.append(item)
    return out


if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)
