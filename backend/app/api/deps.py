"""
Shared router dependencies and service error mapping.
"""
import logging
import traceback
from functools import lru_cache
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.services.arrival_store import ArrivalStore
from app.services.errors import (
    ArrivalLockedError,
    InvalidReassignmentError,
    InvalidStatusError,
    NotFoundError,
)
from app.services.photo_storage import LocalPhotoStorage, PhotoStorage

logger = logging.getLogger(__name__)


@lru_cache()
def get_photo_storage() -> PhotoStorage:
    return LocalPhotoStorage()


def get_store(
    project_id: str,
    request: Request,
    db: Session = Depends(get_db),
    photo_storage: PhotoStorage = Depends(get_photo_storage),
    x_user: Optional[str] = Header(default=None),
) -> ArrivalStore:
    """Build the per-request store for a project, acting as the X-User caller."""
    coloring = request.app.state.active_coloring.setdefault(project_id, set())
    try:
        return ArrivalStore(
            db,
            project_id,
            x_user or "unknown",
            viewer=getattr(request.app.state, "viewer", None),
            photo_storage=photo_storage,
            active_coloring=coloring,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not load ledger for project {project_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store unavailable, try again"
        )


def service_error(db: Session, e: Exception, action: str) -> HTTPException:
    """Map a service exception to the HTTP error the routers raise."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ArrivalLockedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, (InvalidStatusError, InvalidReassignmentError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    db.rollback()
    if isinstance(e, SQLAlchemyError):
        logger.error(f"Store error while trying to {action}: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to {action}: store unavailable, try again"
        )
    logger.error(f"Error while trying to {action}: {str(e)}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(e)}"
    )
