import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from container_check.errors import ValidationFailed
from container_check.services.photo_service import StoredPhoto, remove_blobs

logger = logging.getLogger(__name__)


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationFailed(field, f"{field} is required")
    return str(value).strip()


def optional_text(value: Optional[str]) -> Optional[str]:
    """Blank strings are stored as NULL."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def commit_or_compensate(
    db: Session,
    store,
    uploaded: List[StoredPhoto],
    on_conflict: Callable[[], None] = None,
) -> None:
    """
    Commit the unit of work. On failure roll back, remove the blobs uploaded
    for it, and let ``on_conflict`` turn a unique-constraint race into the
    matching domain error before the original exception propagates.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        remove_blobs(store, [p.storage_path for p in uploaded])
        if on_conflict is not None:
            on_conflict()
        logger.error("Integrity error on commit, transaction rolled back", exc_info=True)
        raise
    except SQLAlchemyError:
        db.rollback()
        remove_blobs(store, [p.storage_path for p in uploaded])
        logger.error("Transaction failed and was rolled back", exc_info=True)
        raise
