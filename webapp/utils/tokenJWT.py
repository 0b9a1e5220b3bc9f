# webapp/utils/tokenJWT.py
from jose import jwt, JWTError
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import settings

# Authorization scheme; tokens are issued by the platform backend
bearer_scheme = HTTPBearer()


@dataclass
class CurrentUser:
    id: str
    email: Optional[str]
    role: str
    access_token: str

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == "admin"


# Decode the bearer token and expose the caller; the raw token is forwarded to the backend
def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> CurrentUser:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise credentials_exception

    user_id = payload.get("userId") or payload.get("id") or payload.get("sub")
    # Ensure the token identifies a user
    if user_id is None:
        raise credentials_exception

    return CurrentUser(
        id=str(user_id),
        email=payload.get("email"),
        role=payload.get("role") or "user",
        access_token=token,
    )


# Dependency for admin-only routes
def admin_required(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
