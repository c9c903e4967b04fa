import logging

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import jwt_manager
from app.services.progress import ProgressService
from app.store.sql import SqlContentCatalog, SqlProgressStore

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> str:
    """
    Dependency that requires a valid Bearer token and returns the user id.
    Raises 401 Unauthorized if the token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = jwt_manager.verify_token(credentials.credentials, "access")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: Not a valid user token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id


def get_progress_service(db: Session = Depends(get_db)) -> ProgressService:
    """Request-scoped engine bound to the request's session."""
    return ProgressService(SqlProgressStore(db), SqlContentCatalog(db))
