"""
Authentication endpoints for registration, login, token refresh, and user management.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assistlink.core.database import get_db
from assistlink.core.security import (
    AuthContext,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    hash_password,
    require_role,
    token_claims_for,
    verify_password,
    UserRole,
)
from assistlink.models.auth import User
from assistlink.schemas.requests import PHONE_PATTERN

router = APIRouter()


# Request/Response Models
class LoginRequest(BaseModel):
    """Login credentials."""

    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    """Token response with access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class ProfileFields(BaseModel):
    """Contact defaults used when a request does not carry its own."""

    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=12)


class RegisterRequest(ProfileFields):
    """Self-service sign-up as a citizen or a volunteer."""

    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = Field(None, max_length=255)
    role: str = UserRole.CITIZEN


class UserCreate(RegisterRequest):
    """User creation request (Admin only); any role."""


class UserResponse(BaseModel):
    """User response model."""

    id: str
    username: str
    email: str
    full_name: Optional[str]
    role: str
    phone: Optional[str]
    street: Optional[str]
    city: Optional[str]
    state: Optional[str]
    postal_code: Optional[str]
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=str(user.id),
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            phone=user.phone,
            street=user.street,
            city=user.city,
            state=user.state,
            postal_code=user.postal_code,
            is_active=user.is_active,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        )


class ProfileUpdate(ProfileFields):
    full_name: Optional[str] = Field(None, max_length=255)


class UserUpdate(BaseModel):
    """User update request (Admin only)."""

    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


def _issue_tokens(user: User) -> dict:
    token_data = token_claims_for(user)
    return {
        "access_token": create_access_token(token_data),
        "refresh_token": create_refresh_token(token_data),
        "token_type": "bearer",
    }


async def _create_account(db: AsyncSession, data: RegisterRequest) -> User:
    # Check for existing username or email
    stmt = select(User).where(
        (User.username == data.username) | (User.email == data.email)
    )
    result = await db.execute(stmt)
    existing = result.scalars().first()

    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered",
        )

    user = User(
        username=data.username,
        email=data.email,
        hashed_password=hash_password(data.password),
        full_name=data.full_name,
        role=data.role,
        phone=data.phone,
        street=data.street,
        city=data.city,
        state=data.state,
        postal_code=data.postal_code,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def _get_user(db: AsyncSession, **criteria) -> User:
    stmt = select(User).filter_by(**criteria)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


# Auth Endpoints
@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a citizen or volunteer account.

    Admin accounts are only created by other admins.
    """
    if data.role not in UserRole.SELF_SERVICE_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of: {UserRole.SELF_SERVICE_ROLES}",
        )

    user = await _create_account(db, data)
    return UserResponse.from_user(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate user and return JWT tokens.

    Returns access token (30 min expiry) and refresh token (7 day expiry).
    """
    # Find user
    stmt = select(User).where(User.username == credentials.username)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Verify password
    if not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Update last login
    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange a refresh token for new access and refresh tokens.

    This allows clients to obtain new tokens without re-authentication.
    """
    payload = decode_token(body.refresh_token)
    subject = payload.get("sub")

    if not subject or payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    # Verify user still exists and is active
    stmt = select(User).where(User.username == payload.get("username"))
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if not user or not user.is_active or str(user.id) != subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    auth: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get current authenticated user information.

    Requires valid access token.
    """
    user = await _get_user(db, id=auth.user_id)
    return UserResponse.from_user(user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    auth: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the caller's name, phone and address."""
    user = await _get_user(db, id=auth.user_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    user.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(user)
    return UserResponse.from_user(user)


# Admin-only User Management Endpoints
@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthContext = Depends(require_role(UserRole.ADMIN)),
):
    """
    Create a new user with any role (Admin only).
    """
    if user_data.role not in UserRole.ALL_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of: {UserRole.ALL_ROLES}",
        )

    user = await _create_account(db, user_data)
    return UserResponse.from_user(user)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user: AuthContext = Depends(require_role(UserRole.ADMIN)),
):
    """
    List all users (Admin only).
    """
    stmt = select(User).order_by(User.created_at.desc())
    result = await db.execute(stmt)
    users = result.scalars().all()

    return [UserResponse.from_user(u) for u in users]


@router.patch("/users/{username}", response_model=UserResponse)
async def update_user(
    username: str,
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthContext = Depends(require_role(UserRole.ADMIN)),
):
    """
    Update user information (Admin only).

    Can update email, full name, role, or active status.
    """
    user = await _get_user(db, username=username)

    # Validate role if being updated
    if user_data.role and user_data.role not in UserRole.ALL_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role. Must be one of: {UserRole.ALL_ROLES}",
        )

    for field, value in user_data.model_dump(exclude_none=True).items():
        setattr(user, field, value)
    user.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(user)
    return UserResponse.from_user(user)


@router.delete("/users/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    username: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthContext = Depends(require_role(UserRole.ADMIN)),
):
    """
    Deactivate a user (Admin only).

    Accounts are deactivated rather than deleted so request history keeps its authors.
    """
    user = await _get_user(db, username=username)

    # Prevent self-deletion
    if user.id == current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )

    user.is_active = False
    user.updated_at = datetime.now(timezone.utc)
    await db.commit()
