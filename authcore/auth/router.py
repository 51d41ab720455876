"""Authentication and administration API routers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

from authcore.api.contracts import (
    ApiErrorResponse,
    CreateUserResponse,
    LoginResponse,
    MeResponse,
    ResetTokenResponse,
    StatusResponse,
    UserSummaryResponse,
    UsersListResponse,
)
from authcore.api.errors import ApiError, ApiErrorCode, api_error_from_auth_error
from authcore.auth.accounts import AccountService
from authcore.auth.errors import AuthError
from authcore.auth.middleware import session_id_from_request
from authcore.auth.models import (
    CreateUserRequest,
    LoginRequest,
    ResetConfirmRequest,
    ResetRequest,
    UpdateProfileRequest,
    User,
    utcnow,
)
from authcore.auth.reset import PasswordResetService
from authcore.auth.service import AuthService
from authcore.core.config import AuthConfig

LOGGER = logging.getLogger(__name__)


def _current_user(request: Request) -> User:
    """Return the user attached by the session middleware."""
    user = getattr(request.state, "user", None)
    if not isinstance(user, User):
        raise ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_UNAUTHORIZED,
            message="Unauthorized",
        )
    return user


def _summary(user: User) -> UserSummaryResponse:
    return UserSummaryResponse(
        user_id=user.user_id,
        username=user.username,
        email=user.email,
        phone=user.phone,
        name=user.name,
        role=str(user.role),
        status=str(user.status),
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


def create_auth_router(
    service: AuthService,
    reset_service: PasswordResetService,
    config: AuthConfig,
) -> APIRouter:
    """Build router with login, logout, me and reset confirmation endpoints."""
    router = APIRouter(tags=["auth"])

    @router.post(
        "/api/auth/login",
        response_model=LoginResponse,
        responses={401: {"model": ApiErrorResponse}, 423: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest, response: Response) -> LoginResponse:
        """Authenticate user and set the session cookie."""
        try:
            result = service.login(req.identifier, req.password, utcnow())
        except AuthError as exc:
            raise api_error_from_auth_error(exc) from exc

        user = service.get_user(result.user_id)
        if user is None:
            raise ApiError(
                status_code=500,
                error_code=ApiErrorCode.INTERNAL_SERVER_ERROR,
                message="User not found after login",
            )
        response.set_cookie(
            config.session_cookie_name,
            result.session_id,
            max_age=config.session_ttl_minutes * 60,
            httponly=True,
            samesite="lax",
            secure=config.cookie_secure,
            path="/",
        )
        return LoginResponse(
            user_id=user.user_id,
            username=user.username,
            role=str(user.role),
            expires_at=result.expires_at,
        )

    @router.post(
        "/api/auth/logout",
        response_model=StatusResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def logout(request: Request, response: Response) -> StatusResponse:
        """Delete the caller's session and clear the cookie."""
        session_id = session_id_from_request(request, config.session_cookie_name)
        if not session_id:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_UNAUTHORIZED,
                message="Unauthorized",
            )
        service.logout(session_id)
        response.delete_cookie(
            config.session_cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=config.cookie_secure,
        )
        return StatusResponse(status="ok")

    @router.get(
        "/api/auth/me",
        response_model=MeResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def me(request: Request) -> MeResponse:
        return MeResponse(user=_summary(_current_user(request)))

    @router.post("/api/auth/reset/request", response_model=StatusResponse)
    def reset_request(req: ResetRequest) -> StatusResponse:
        """Acknowledge a reset request; tokens are only issued by administrators."""
        user = service.find_user(req.identifier)
        LOGGER.info(
            "reset_requested",
            extra={
                "event": "auth.reset_request",
                "user_id": user.user_id if user else "",
            },
        )
        return StatusResponse(status="ok")

    @router.post(
        "/api/auth/reset/confirm",
        response_model=StatusResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def reset_confirm(req: ResetConfirmRequest) -> StatusResponse:
        """Redeem a reset token and set a new password."""
        try:
            reset_service.reset_password(req.token, req.new_password, utcnow())
        except AuthError as exc:
            raise api_error_from_auth_error(exc, reset_service.policy) from exc
        return StatusResponse(status="ok")

    return router


def create_admin_router(accounts: AccountService) -> APIRouter:
    """Build administrator router for accounts and reset tokens."""
    router = APIRouter(tags=["admin"])

    @router.get("/api/admin/users", response_model=UsersListResponse)
    def list_users(request: Request) -> UsersListResponse:
        _current_user(request)
        return UsersListResponse(users=[_summary(user) for user in accounts.list_users()])

    @router.post(
        "/api/admin/users",
        response_model=CreateUserResponse,
        status_code=201,
        responses={409: {"model": ApiErrorResponse}},
    )
    def create_user(req: CreateUserRequest, request: Request) -> CreateUserResponse:
        """Create an account and return its first reset token."""
        admin = _current_user(request)
        try:
            created, issued = accounts.create_user(
                admin_id=admin.user_id,
                username=req.username,
                name=req.name,
                email=req.email,
                role=req.role,
                now=utcnow(),
            )
        except AuthError as exc:
            raise api_error_from_auth_error(exc) from exc
        return CreateUserResponse(
            user_id=created.user_id,
            reset_token=issued.raw_token,
            reset_token_expires_at=issued.expires_at,
        )

    @router.post(
        "/api/admin/users/{user_id}/reset-token",
        response_model=ResetTokenResponse,
        responses={404: {"model": ApiErrorResponse}},
    )
    def issue_reset_token(user_id: str, request: Request) -> ResetTokenResponse:
        """Issue a reset token for an existing user."""
        admin = _current_user(request)
        try:
            issued = accounts.issue_reset_for_user(
                admin_id=admin.user_id, user_id=user_id, now=utcnow()
            )
        except AuthError as exc:
            raise api_error_from_auth_error(exc) from exc
        return ResetTokenResponse(
            reset_token=issued.raw_token,
            reset_token_expires_at=issued.expires_at,
        )

    return router


def create_account_router(accounts: AccountService) -> APIRouter:
    """Build the self-service profile router for the signed-in user."""
    router = APIRouter(tags=["account"])

    @router.get(
        "/api/account",
        response_model=UserSummaryResponse,
        responses={401: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}},
    )
    def get_account(request: Request) -> UserSummaryResponse:
        user = _current_user(request)
        try:
            return _summary(accounts.get_profile(user.user_id))
        except AuthError as exc:
            raise api_error_from_auth_error(exc) from exc

    @router.patch(
        "/api/account",
        response_model=UserSummaryResponse,
        responses={
            401: {"model": ApiErrorResponse},
            404: {"model": ApiErrorResponse},
            409: {"model": ApiErrorResponse},
        },
    )
    def update_account(req: UpdateProfileRequest, request: Request) -> UserSummaryResponse:
        """Update profile fields; identity changes need the current password."""
        user = _current_user(request)
        try:
            updated = accounts.update_profile(
                user_id=user.user_id,
                changes=req.changes(),
                current_password=req.current_password,
            )
        except AuthError as exc:
            raise api_error_from_auth_error(exc) from exc
        return _summary(updated)

    return router
