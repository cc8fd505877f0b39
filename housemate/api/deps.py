"""FastAPI dependencies for identity, database sessions and services."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from housemate.core.security import decode_token
from housemate.database import get_db
from housemate.models.user import User
from housemate.schemas.user import TokenData
from housemate.services.groups import GroupService
from housemate.services.notifications import broadcaster
from housemate.services.tasks import TaskService

# Bearer tokens are issued by the external identity service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency that decodes the identity token and returns the current user.

    Args:
        token: JWT token from Authorization header
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(token)
        user_id_str = payload.get("sub")

        if user_id_str is None:
            raise credentials_exception

        token_data = TokenData(user_id=int(user_id_str), email=payload.get("email"))

    except (JWTError, ValueError, TypeError):
        raise credentials_exception

    user = db.get(User, token_data.user_id)

    if user is None:
        raise credentials_exception

    return user


def get_group_service(db: Session = Depends(get_db)) -> GroupService:
    return GroupService(db, broadcaster)


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(db, GroupService(db, broadcaster), broadcaster)
