"""FastAPI dependency injection — database sessions, identity and services."""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from noticeboard.core.exceptions import NotAuthenticated
from noticeboard.core.policies import Identity
from noticeboard.core.settings import get_settings
from noticeboard.db.session import get_session_factory
from noticeboard.directory.service import DirectoryService
from noticeboard.notices.closure import ClosureService
from noticeboard.notices.dispatch import NoticeDispatcher
from noticeboard.notices.projections import ProjectionEngine
from noticeboard.notices.status import StatusTracker
from noticeboard.storage.blob import BlobStorage, get_storage


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    factory = get_session_factory()
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_blob_storage() -> BlobStorage:
    """Return the configured blob store for attachments and replies."""
    return get_storage()


def get_directory(db: Session = Depends(get_db)) -> DirectoryService:
    return DirectoryService(db, code_attempts=get_settings().department_code_attempts)


def get_current_identity(
    x_user_id: int | None = Header(default=None),
    directory: DirectoryService = Depends(get_directory),
) -> Identity:
    """Resolve the caller forwarded by the upstream identity provider."""
    if x_user_id is None:
        raise NotAuthenticated("Authentication required.")
    return directory.resolve_identity(x_user_id)


def get_dispatcher(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> NoticeDispatcher:
    return NoticeDispatcher(db, storage)


def get_status_tracker(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> StatusTracker:
    return StatusTracker(db, storage)


def get_projections(db: Session = Depends(get_db)) -> ProjectionEngine:
    return ProjectionEngine(db)


def get_closure_service(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> ClosureService:
    return ClosureService(db, storage)
