# storefront/api/security.py
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.users import Principal, UserRole
from storefront.repos.user_repo import UserRepo
from storefront.utils.settings import JWT_SECRET, JWT_ALGORITHM

bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_in: timedelta = timedelta(hours=1)) -> str:
    # tokeny wydaje serwis auth; tu tylko dla narzedzi deweloperskich i testow
    payload = {"id": str(user_id), "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authorized, no token")

    payload = decode_token(credentials.credentials)
    try:
        user_id = int(payload.get("id"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = UserRepo(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return Principal(id=user.id, name=user.name, email=user.email, role=UserRole(user.role))


def require_admin(principal: Principal = Depends(get_current_user)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal
