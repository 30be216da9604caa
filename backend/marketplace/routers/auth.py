"""Authentication router for user registration, login and token refresh."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from marketplace.database import get_db
from marketplace.errors import Conflict, NotAuthenticated
from marketplace.models.user import User
from marketplace.schemas.auth import UserRegister, UserLogin, Token, UserResponse, RefreshTokenRequest
from marketplace.auth.security import hash_password, verify_password, create_access_token, create_refresh_token, decode_token
from marketplace.auth.dependencies import get_current_active_user

router = APIRouter()


def _issue_tokens(user: User) -> dict:
    claims = {"sub": user.uuid, "email": user.email, "role": user.user_role}
    return {
        "access_token": create_access_token(data=claims),
        "refresh_token": create_refresh_token(data=claims),
        "token_type": "bearer",
    }


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """
    Register a new customer account.

    - Checks email uniqueness
    - Hashes password with bcrypt
    - Returns JWT tokens
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise Conflict("Email already registered")

    new_user = User(
        name=user_data.name,
        email=user_data.email,
        password_hash=hash_password(user_data.password),
        company=user_data.company,
        status="active",
        user_role="user",
    )
    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    return _issue_tokens(new_user)


@router.post("/login", response_model=Token)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """Login with email and password."""
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise NotAuthenticated("Invalid email or password")

    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh(request: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new token pair."""
    payload = decode_token(request.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise NotAuthenticated("Invalid or expired refresh token")

    result = await db.execute(select(User).where(User.uuid == payload.get("sub")))
    user = result.scalar_one_or_none()
    if user is None or user.status != "active":
        raise NotAuthenticated("User not found or inactive")

    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_active_user)):
    """Return the authenticated user's profile."""
    return current_user
