"""Auth endpoints, served through the app-scoped AuthContext."""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from tradebench.core.auth_context import AuthContext, AuthResult
from tradebench.web.deps import get_auth_context
from tradebench.web.schemas import (
    AuthResultResponse,
    AuthStateResponse,
    ProfileUpdateRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _to_response(result: AuthResult, response: Response) -> AuthResultResponse:
    if not result.success:
        response.status_code = status.HTTP_401_UNAUTHORIZED
    return AuthResultResponse(
        success=result.success,
        user=result.user.to_dict() if result.user else None,
        error=result.error,
        needs_verification=result.needs_verification,
        message=result.message,
    )


@router.post("/sign-up", response_model=AuthResultResponse)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    auth: AuthContext = Depends(get_auth_context),
) -> AuthResultResponse:
    result = await auth.sign_up(body.email, body.password, body.profile_fields())
    return _to_response(result, response)


@router.post("/sign-in", response_model=AuthResultResponse)
async def sign_in(
    body: SignInRequest,
    response: Response,
    auth: AuthContext = Depends(get_auth_context),
) -> AuthResultResponse:
    result = await auth.sign_in(body.email, body.password)
    return _to_response(result, response)


@router.post("/sign-out", response_model=AuthResultResponse)
async def sign_out(
    response: Response,
    auth: AuthContext = Depends(get_auth_context),
) -> AuthResultResponse:
    result = await auth.sign_out()
    return _to_response(result, response)


@router.get("/me", response_model=AuthStateResponse)
async def current_user(auth: AuthContext = Depends(get_auth_context)) -> AuthStateResponse:
    """Current auth status and user (None when anonymous)."""
    return AuthStateResponse(
        status=auth.status.value,
        user=auth.user.to_dict() if auth.user else None,
    )


@router.post("/reset-password", response_model=AuthResultResponse)
async def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    auth: AuthContext = Depends(get_auth_context),
) -> AuthResultResponse:
    result = await auth.reset_password(body.email, body.security_answer, body.new_password)
    return _to_response(result, response)


@router.patch("/profile", response_model=AuthResultResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    response: Response,
    auth: AuthContext = Depends(get_auth_context),
) -> AuthResultResponse:
    if not auth.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    result = await auth.update_profile(body.model_dump(exclude_none=True))
    return _to_response(result, response)
