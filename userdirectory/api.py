"""FastAPI application exposing the user resource under ``/api/users``."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, load_settings
from .database import Database
from .errors import (
    DuplicateEmailError,
    FieldViolation,
    StorageError,
    UserNotFoundError,
    UserValidationError,
)
from .models import User, UserRole, UserStatus
from .service import UserService

USERS_PREFIX = "/api/users"

INVALID_ID_MESSAGE = "Invalid ID format"
NOT_FOUND_MESSAGE = "User not found"
DUPLICATE_EMAIL_MESSAGE = "Email already exists"
INTERNAL_ERROR_MESSAGE = "Internal server error"
VALIDATION_ERROR_MESSAGE = "Validation error"

MIN_USER_ID = -(2**63)
MAX_USER_ID = 2**63 - 1


class UserResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    email: str
    avatar: Optional[str] = None
    role: UserRole
    status: UserStatus
    created_at: datetime
    updated_at: datetime


class InvalidUserIdError(ValueError):
    """Raised when a path segment cannot be interpreted as a user id."""


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        avatar=user.avatar,
        role=user.role,
        status=user.status,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def parse_user_id(raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise InvalidUserIdError(raw) from exc
    # SQLite INTEGER is a signed 64-bit value.
    if not MIN_USER_ID <= value <= MAX_USER_ID:
        raise InvalidUserIdError(raw)
    return value


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _validation_response(errors: List[FieldViolation]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": VALIDATION_ERROR_MESSAGE,
            "errors": [error.as_dict() for error in errors],
        },
    )


def _request_errors_to_violations(exc: RequestValidationError) -> List[FieldViolation]:
    violations: List[FieldViolation] = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] == "body":
            loc = loc[1:]
        violations.append(FieldViolation(path=".".join(loc), message=str(error.get("msg", ""))))
    return violations


def register_exception_handlers(app: FastAPI) -> None:
    """Translate the error taxonomy into status codes and JSON bodies."""

    @app.exception_handler(UserValidationError)
    async def handle_validation_error(_request: Request, exc: UserValidationError) -> JSONResponse:
        return _validation_response(exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _validation_response(_request_errors_to_violations(exc))

    @app.exception_handler(InvalidUserIdError)
    async def handle_invalid_id(_request: Request, _exc: InvalidUserIdError) -> JSONResponse:
        return _message(status.HTTP_400_BAD_REQUEST, INVALID_ID_MESSAGE)

    @app.exception_handler(UserNotFoundError)
    async def handle_not_found(_request: Request, _exc: UserNotFoundError) -> JSONResponse:
        return _message(status.HTTP_404_NOT_FOUND, NOT_FOUND_MESSAGE)

    @app.exception_handler(DuplicateEmailError)
    async def handle_duplicate_email(_request: Request, _exc: DuplicateEmailError) -> JSONResponse:
        return _message(status.HTTP_409_CONFLICT, DUPLICATE_EMAIL_MESSAGE)

    @app.exception_handler(StorageError)
    async def handle_storage_error(_request: Request, _exc: StorageError) -> JSONResponse:
        # Already logged by the service layer.
        return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_request: Request, _exc: Exception) -> JSONResponse:
        # ServerErrorMiddleware re-raises afterwards, so the server logs the traceback.
        return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)


def build_users_router(service: UserService) -> APIRouter:
    router = APIRouter(prefix=USERS_PREFIX, tags=["users"])

    def get_service() -> UserService:
        return service

    @router.get("", response_model=List[UserResponse])
    @router.get("/", response_model=List[UserResponse], include_in_schema=False)
    def list_users(svc: UserService = Depends(get_service)) -> List[UserResponse]:
        return [user_to_response(user) for user in svc.list_users()]

    @router.get("/{user_id}", response_model=UserResponse)
    def read_user(user_id: str, svc: UserService = Depends(get_service)) -> UserResponse:
        return user_to_response(svc.get_user(parse_user_id(user_id)))

    @router.post("", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
    @router.post(
        "/",
        status_code=status.HTTP_201_CREATED,
        response_model=UserResponse,
        include_in_schema=False,
    )
    def create_user(
        payload: Any = Body(...),
        svc: UserService = Depends(get_service),
    ) -> UserResponse:
        return user_to_response(svc.create_user(payload))

    @router.put("/{user_id}", response_model=UserResponse)
    def update_user(
        user_id: str,
        payload: Any = Body(...),
        svc: UserService = Depends(get_service),
    ) -> UserResponse:
        return user_to_response(svc.update_user(parse_user_id(user_id), payload))

    @router.delete(
        "/{user_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    def delete_user(user_id: str, svc: UserService = Depends(get_service)) -> Response:
        svc.delete_user(parse_user_id(user_id))
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    initialize_database: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application for the user directory."""

    if settings is None:
        settings = load_settings()
    if database is None:
        database = Database(settings.database_path)
    if initialize_database:
        database.initialize()

    service = UserService(database)

    app = FastAPI(
        title="User Directory API",
        description="CRUD API for user records backed by a single SQLite table.",
        version="1.0.0",
    )

    origins = list(settings.cors_origins)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.database = database
    app.state.service = service
    app.state.settings = settings

    register_exception_handlers(app)

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    app.include_router(build_users_router(service))
    return app


__all__ = ["UserResponse", "create_app", "parse_user_id", "user_to_response"]
