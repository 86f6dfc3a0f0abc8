"""
Tests for JWT authentication, the caller context and role checks.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from assistlink.core.config import settings
from assistlink.core.logging import actor_id_ctx
from assistlink.core.security import (
    ALGORITHM,
    AuthContext,
    UserRole,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    hash_password,
    require_role,
    token_claims_for,
    verify_password,
)


class MockCredentials:
    def __init__(self, token: str):
        self.credentials = token


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_hash_password_creates_hash(self):
        hashed = hash_password("secure_password123")

        assert hashed != "secure_password123"
        assert verify_password("secure_password123", hashed)

    def test_verify_password_fails_with_incorrect_password(self):
        hashed = hash_password("secure_password123")

        assert not verify_password("wrong_password", hashed)


class TestJWTTokens:
    """Test JWT token creation and validation."""

    def test_create_access_token_includes_expiration(self):
        token = create_access_token({"sub": str(uuid.uuid4()), "role": UserRole.CITIZEN})

        decoded = jwt.decode(token, options={"verify_signature": False})
        exp = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
        now = datetime.now(timezone.utc)

        # Should expire in roughly 30 minutes (with 1 min tolerance)
        assert timedelta(minutes=29) < (exp - now) < timedelta(minutes=31)
        assert "type" not in decoded

    def test_create_refresh_token_is_typed_and_long_lived(self):
        token = create_refresh_token({"sub": str(uuid.uuid4()), "role": UserRole.VOLUNTEER})

        decoded = jwt.decode(token, options={"verify_signature": False})
        exp = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
        now = datetime.now(timezone.utc)

        assert decoded["type"] == "refresh"
        assert timedelta(days=6, hours=23) < (exp - now) < timedelta(days=7, hours=1)

    def test_token_claims_use_the_user_id_as_subject(self):
        class FakeUser:
            id = uuid.UUID("00000000-0000-0000-0000-000000000042")
            role = UserRole.VOLUNTEER
            username = "asha"

        claims = token_claims_for(FakeUser())

        assert claims == {
            "sub": "00000000-0000-0000-0000-000000000042",
            "role": "volunteer",
            "username": "asha",
        }

    def test_decode_token_fails_with_invalid_token(self):
        with pytest.raises(HTTPException) as exc:
            decode_token("invalid.jwt.token")

        assert exc.value.status_code == 401
        assert "Invalid authentication credentials" in exc.value.detail

    def test_decode_token_fails_with_expired_token(self):
        token = create_access_token(
            {"sub": str(uuid.uuid4()), "role": UserRole.ADMIN}, expires_delta=timedelta(hours=-1)
        )

        with pytest.raises(HTTPException) as exc:
            decode_token(token)

        assert exc.value.status_code == 401
        assert "Token has expired" in exc.value.detail

    def test_decode_token_fails_with_wrong_secret(self):
        wrong_secret_token = jwt.encode(
            {"sub": "x", "role": "admin", "exp": datetime.now(timezone.utc) + timedelta(minutes=30)},
            "wrong_secret_key",
            algorithm=ALGORITHM,
        )

        with pytest.raises(HTTPException) as exc:
            decode_token(wrong_secret_token)

        assert exc.value.status_code == 401


class TestCurrentUser:
    """get_current_user turns a token into an AuthContext."""

    @pytest.mark.asyncio
    async def test_extracts_context_from_token(self):
        user_id = uuid.uuid4()
        token = create_access_token(
            {"sub": str(user_id), "role": UserRole.VOLUNTEER, "username": "asha"}
        )

        context = await get_current_user(credentials=MockCredentials(token))

        assert context == AuthContext(user_id=user_id, role="volunteer", username="asha")
        assert context.is_volunteer and not context.is_admin
        assert actor_id_ctx.get() == str(user_id)

    @pytest.mark.asyncio
    async def test_rejects_token_without_subject(self):
        bad_token = jwt.encode(
            {"role": "admin", "exp": datetime.now(timezone.utc) + timedelta(minutes=30)},
            settings.SECRET_KEY,
            algorithm=ALGORITHM,
        )

        with pytest.raises(HTTPException) as exc:
            await get_current_user(credentials=MockCredentials(bad_token))

        assert exc.value.status_code == 401
        assert "Invalid token payload" in exc.value.detail

    @pytest.mark.asyncio
    async def test_rejects_non_uuid_subject(self):
        token = create_access_token({"sub": "testuser", "role": UserRole.CITIZEN})

        with pytest.raises(HTTPException) as exc:
            await get_current_user(credentials=MockCredentials(token))

        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_rejects_refresh_token_as_access_token(self):
        token = create_refresh_token({"sub": str(uuid.uuid4()), "role": UserRole.CITIZEN})

        with pytest.raises(HTTPException) as exc:
            await get_current_user(credentials=MockCredentials(token))

        assert exc.value.status_code == 401


class TestRoleBasedAccessControl:
    """Test role-based access control."""

    @pytest.mark.asyncio
    async def test_require_role_allows_correct_role(self):
        checker = require_role(UserRole.ADMIN)
        user = AuthContext(user_id=uuid.uuid4(), role=UserRole.ADMIN)

        assert await checker(user=user) == user

    @pytest.mark.asyncio
    async def test_require_role_denies_incorrect_role(self):
        checker = require_role(UserRole.ADMIN)
        user = AuthContext(user_id=uuid.uuid4(), role=UserRole.VOLUNTEER)

        with pytest.raises(HTTPException) as exc:
            await checker(user=user)

        assert exc.value.status_code == 403
        assert "Insufficient permissions" in exc.value.detail

    @pytest.mark.asyncio
    async def test_require_role_allows_multiple_roles(self):
        checker = require_role(UserRole.ADMIN, UserRole.VOLUNTEER)

        for role in (UserRole.ADMIN, UserRole.VOLUNTEER):
            user = AuthContext(user_id=uuid.uuid4(), role=role)
            assert await checker(user=user) == user

        with pytest.raises(HTTPException):
            await checker(user=AuthContext(user_id=uuid.uuid4(), role=UserRole.CITIZEN))


class TestUserRoles:
    """Test user role constants."""

    def test_role_values(self):
        assert UserRole.CITIZEN == "citizen"
        assert UserRole.VOLUNTEER == "volunteer"
        assert UserRole.ADMIN == "admin"

    def test_admin_is_not_self_service(self):
        assert set(UserRole.ALL_ROLES) == {"citizen", "volunteer", "admin"}
        assert UserRole.ADMIN not in UserRole.SELF_SERVICE_ROLES
