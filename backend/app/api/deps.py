from collections.abc import Callable, Generator, Iterable
from typing import TypeVar

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import Caller, CallerRole, decode_token
from app.db.session import SessionLocal
from app.services.results import OperationResult
from app.services.workflow import WorkflowEngine

security = HTTPBearer()

T = TypeVar("T")


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_caller(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Caller:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        subject = payload.get("sub")
        role = CallerRole(payload.get("role"))
        if not subject:
            raise credentials_exception
    except (JWTError, ValueError) as exc:
        raise credentials_exception from exc
    return Caller(id=subject, role=role)


def require_roles(*roles: CallerRole) -> Callable[[Caller], Caller]:
    allowed_roles: Iterable[CallerRole] = set(roles)

    def role_checker(current_caller: Caller = Depends(get_current_caller)) -> Caller:
        if current_caller.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_caller

    return role_checker


def get_engine(db: Session = Depends(get_db)) -> WorkflowEngine:
    return WorkflowEngine(db)


def unwrap(result: OperationResult[T]) -> T:
    """Return the value of a successful result or raise its error for the ``AppError`` handler."""
    return result.unwrap()
