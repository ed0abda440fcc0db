from passlib.context import CryptContext
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from bookstore_pos.core.config import settings
from bookstore_pos.modules.auth.models import Operator
from bookstore_pos.dependencies.dbDependecies import db_dependency

oauth2_scheme = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    """Verify a hashed password against a plain password."""
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token with an expiration time.
    If expires_delta is not provided, it defaults to ACCESS_TOKEN_EXPIRE_MINUTES.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.APP_SECRET_STRING, algorithm=settings.ALGORITHM)


def get_current_operator(
    db: db_dependency,
    token: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme)
) -> Operator:
    """Resolve the operator behind the bearer token; 401 otherwise."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if token is None:
        raise credentials_exception

    try:
        payload = jwt.decode(token.credentials, settings.APP_SECRET_STRING, algorithms=[settings.ALGORITHM])
        operator_id = payload.get("sub")
        if operator_id is None or payload.get("type") != "access":
            raise credentials_exception
    except jwt.PyJWTError:
        raise credentials_exception

    try:
        operator_id = int(operator_id)
    except (TypeError, ValueError):
        raise credentials_exception

    operator = db.query(Operator).filter(Operator.id == operator_id).first()
    if operator is None or operator.is_active is not True:
        raise credentials_exception

    return operator
