from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from kitchenhub.core.security import Principal, decode_access_token
from kitchenhub.db.session import SessionLocal

# Tokens are issued by the identity provider; there is no login route here.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token", auto_error=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return Principal(id=str(subject), is_admin=bool(payload.get("is_admin", False)))


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins")
    return principal
