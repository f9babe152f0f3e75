from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import jwt
import sqlalchemy as sa
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from services.portal.app.db import get_session
from services.portal.app.errors import AuthError, ConflictError
from services.portal.app.logging import logger
from services.portal.app.passwords import hash_password, verify_password
from services.portal.app.permissions import PermissionLevel, has_minimum_permission, permission_level_of
from services.portal.app.scheduling import now
from services.portal.app.settings import SETTINGS
from services.portal.app.tables import profile_permissions, profiles


JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class CurrentUser:
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    permission_level: int

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


def issue_token(user_id: UUID, *, issued_at: datetime | None = None) -> tuple[str, datetime]:
    iat = issued_at or now()
    exp = iat + timedelta(minutes=SETTINGS.token_ttl_minutes)
    claims = {"sub": str(user_id), "iat": int(iat.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(claims, SETTINGS.jwt_secret, algorithm=JWT_ALGORITHM), exp


def decode_token(token: str) -> UUID:
    try:
        claims = jwt.decode(token, SETTINGS.jwt_secret, algorithms=[JWT_ALGORITHM], options={"require": ["sub", "exp"]})
        return UUID(claims["sub"])
    except (jwt.PyJWTError, ValueError) as e:
        raise AuthError("invalid token") from e


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def load_user(session: AsyncSession, user_id: UUID) -> CurrentUser:
    q = (
        sa.select(
            profiles.c.user_id,
            profiles.c.email,
            profiles.c.first_name,
            profiles.c.last_name,
            profile_permissions.c.permission_level,
        )
        .select_from(profiles.outerjoin(profile_permissions, profile_permissions.c.user_id == profiles.c.user_id))
        .where(profiles.c.user_id == user_id)
    )
    row = (await session.execute(q)).mappings().first()
    if not row:
        raise AuthError("unknown user")
    return CurrentUser(
        user_id=row["user_id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        permission_level=permission_level_of(row["permission_level"]),
    )


async def authenticate_token(session: AsyncSession, token: str) -> CurrentUser:
    return await load_user(session, decode_token(token))


async def sign_up(session: AsyncSession, email: str, password: str, first_name: str, last_name: str) -> CurrentUser:
    email = _normalize_email(email)
    existing = (await session.execute(sa.select(profiles.c.user_id).where(profiles.c.email == email))).first()
    if existing:
        raise ConflictError("email already registered")

    # The very first account bootstraps the portal as its super admin.
    has_any = (await session.execute(sa.select(sa.func.count()).select_from(profiles))).scalar_one()
    level = PermissionLevel.REGULAR if has_any else PermissionLevel.SUPER_ADMIN

    pw_hash, salt = hash_password(password)
    user_id = uuid4()
    ts = now()
    await session.execute(
        sa.insert(profiles).values(
            user_id=user_id,
            email=email,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            password_hash=pw_hash,
            password_salt=salt,
            created_at=ts,
            updated_at=ts,
        )
    )
    await session.execute(
        sa.insert(profile_permissions).values(user_id=user_id, permission_level=int(level), updated_at=ts)
    )
    await session.commit()
    logger.info("user_signed_up", user_id=str(user_id), permission_level=int(level))
    return await load_user(session, user_id)


async def sign_in(session: AsyncSession, email: str, password: str) -> CurrentUser:
    q = sa.select(profiles.c.user_id, profiles.c.password_hash, profiles.c.password_salt).where(
        profiles.c.email == _normalize_email(email)
    )
    row = (await session.execute(q)).mappings().first()
    if not row or not verify_password(password, row["password_hash"], row["password_salt"]):
        logger.info("sign_in_rejected")
        raise AuthError("invalid email or password")
    return await load_user(session, row["user_id"])


async def update_profile(session: AsyncSession, user_id: UUID, changes: dict[str, str]) -> CurrentUser:
    if changes:
        values = {k: v.strip() for k, v in changes.items()}
        await session.execute(
            sa.update(profiles).where(profiles.c.user_id == user_id).values(**values, updated_at=now())
        )
        await session.commit()
    return await load_user(session, user_id)


_bearer = HTTPBearer(auto_error=False)


async def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    session: AsyncSession = Depends(get_session),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="not authenticated")
    try:
        return await authenticate_token(session, credentials.credentials)
    except AuthError:
        raise HTTPException(status_code=401, detail="invalid token")


def require_level(max_level: int):
    async def _dep(user: CurrentUser = Depends(current_user)) -> CurrentUser:
        if not has_minimum_permission(user.permission_level, max_level):
            raise HTTPException(status_code=403, detail="forbidden")
        return user

    return _dep


require_lead_access = require_level(PermissionLevel.LEAD_MANAGER)
require_super_admin = require_level(PermissionLevel.SUPER_ADMIN)
