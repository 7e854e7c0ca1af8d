from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from moveprice.core.config import settings
from moveprice.core.enums import UserRole

JWT_ALGORITHM = "HS256"

# Tokens are issued by the marketplace's auth service; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


@dataclass(frozen=True)
class Actor:
    """Who is acting. Passed explicitly into every mutating operation."""
    id: int
    role: UserRole


def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    expires = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire_dt = datetime.now(timezone.utc) + timedelta(minutes=expires)
    to_encode = {"sub": str(subject), "role": str(role), "exp": expire_dt}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_actor(token: str) -> Actor:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
        subject = payload.get("sub")
        role = payload.get("role")
        if subject is None or role is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        return Actor(id=int(subject), role=UserRole(role))
    except (JWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    return decode_actor(token)


def require_role(*roles: UserRole):
    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            allowed = ", ".join(str(r) for r in roles)
            raise HTTPException(status_code=403, detail=f"Forbidden: requires role {allowed}")
        return actor
    return dependency


require_manager = require_role(UserRole.MANAGER)
