from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from sweetshop.api.deps import CurrentUser, get_current_user, require_admin
from sweetshop.api.rate_limit import limiter, login_limit, refresh_limit, register_limit, security_limit
from sweetshop.config import settings
from sweetshop.db import get_db
from sweetshop.models.user import User
from sweetshop.schemas.auth_schema import AccessTokenOut, LoginIn, RegisterIn, RevokeIn, TokenOut, UserOut
from sweetshop.services.auth_service import (
    AuthException,
    AuthResult,
    AuthService,
    InvalidCredentials,
    UserAlreadyExists,
    UserNotFound,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REFRESH_COOKIE = "refreshToken"


def _set_refresh_cookie(response: Response, token: str):
    response.set_cookie(
        REFRESH_COOKIE,
        token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
    )


def _clear_refresh_cookie(response: Response):
    response.delete_cookie(REFRESH_COOKIE, httponly=True, secure=settings.COOKIE_SECURE, samesite="strict")


def _token_out(result: AuthResult) -> TokenOut:
    return TokenOut(user=UserOut.model_validate(result.user), access_token=result.access_token)


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED, summary="Register a new user")
@limiter.limit(register_limit)
def register(request: Request, payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).register(payload.email, payload.password, payload.name)
    except UserAlreadyExists as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    _set_refresh_cookie(response, result.refresh_token)
    return _token_out(result)


@router.post("/login", response_model=TokenOut, summary="Login")
@limiter.limit(login_limit)
def login(request: Request, payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).login(payload.email, payload.password)
    except InvalidCredentials as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    _set_refresh_cookie(response, result.refresh_token)
    return _token_out(result)


@router.post("/refresh", response_model=AccessTokenOut, summary="Rotate the refresh token and issue a new access token")
@limiter.limit(refresh_limit)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail={"message": "No refresh token provided"})
    try:
        result = AuthService(db).refresh(token)
    except AuthException as e:
        # the cookie is useless from here on
        rejected = JSONResponse(status_code=401, content={"detail": {"message": str(e)}})
        _clear_refresh_cookie(rejected)
        return rejected
    _set_refresh_cookie(response, result.refresh_token)
    return AccessTokenOut(access_token=result.access_token)


@router.post("/logout", summary="Logout and invalidate refresh tokens")
def logout(response: Response, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    AuthService(db).revoke_refresh_tokens(user.id)
    _clear_refresh_cookie(response)
    return {"message": "Logged out successfully"}


@router.post("/revoke", summary="Revoke every refresh token of a user")
@limiter.limit(security_limit)
def revoke(
    request: Request, payload: RevokeIn, admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)
):
    try:
        version = AuthService(db).revoke_refresh_tokens(payload.user_id)
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail={"message": str(e)})
    return {"message": "Tokens revoked", "tokenVersion": version}


@router.get("/me", response_model=UserOut, summary="Current user")
def me(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserOut.model_validate(db.get(User, user.id))
