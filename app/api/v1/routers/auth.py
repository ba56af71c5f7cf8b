from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.auth_utils import constant_time_verify, enforce_login_limits, record_login_attempt
from app.core.limiter import auth_rate_limit, limiter
from app.core.security import clear_auth_cookie, create_access_token, set_auth_cookie
from app.db.session import get_db
from app.models import User
from app.schemas.auth import AuthResponse, AuthToken, LoginRequest, RegisterRequest, UserOut
from app.services import users

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_token(user: User, response: Response) -> AuthToken:
    token = create_access_token(str(user.id), email=user.email, role=user.role)
    set_auth_cookie(response, token)
    return AuthToken(access_token=token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit)
async def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    try:
        user = await users.register_user(db, payload)
    except users.EmailAlreadyRegistered as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    await db.refresh(user)
    token = _issue_token(user, response)
    return AuthResponse(user=UserOut.model_validate(user), token=token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(auth_rate_limit)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    email = str(credentials.email).lower()
    await enforce_login_limits(email)

    user = await users.get_user_by_email(db, email)
    password_ok = constant_time_verify(user.hashed_password if user else None, credentials.password)
    if not user or not password_ok:
        await record_login_attempt(email, success=False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")

    users.mark_login(user)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    await record_login_attempt(email, success=True)

    token = _issue_token(user, response)
    return AuthResponse(user=UserOut.model_validate(user), token=token)


@router.post("/logout", status_code=204)
async def logout(response: Response) -> None:
    clear_auth_cookie(response)
    return None


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: User = Depends(deps.get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)
