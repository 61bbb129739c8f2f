"""
Checker stage: verification of a container that Security has inspected.

A container can be checked only when its security check exists and has no
unchecked responses left. Each container gets at most one checker record.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from container_check.errors import (
    AlreadyChecked,
    DuplicateUTC,
    ForeignKeyConstraint,
    NotFound,
    PrerequisiteMissing,
    SecurityInspectionIncomplete,
    Unauthorized,
)
from container_check.models import CheckerData, Container, Photo, SecurityCheckResponse
from container_check.services.common import commit_or_compensate, optional_text, require_text
from container_check.services.dashboard_cache import dashboard_cache
from container_check.services.photo_service import (
    CHECKER_PREFIX,
    PhotoFile,
    check_photo_count,
    remove_blobs,
    select_deleted,
    upload_photos,
    usable_photos,
)
from container_check.services.session import Role, UserSession, require_owner, require_role

logger = logging.getLogger(__name__)


def outstanding_items(db: Session, security_check_id: int) -> int:
    """Number of stored responses of a security check that are still unchecked."""
    return db.scalar(
        select(func.count())
        .select_from(SecurityCheckResponse)
        .where(
            SecurityCheckResponse.security_check_id == security_check_id,
            SecurityCheckResponse.checked.is_(False),
        )
    )


def get_checker_data(db: Session, checker_data_id: int) -> CheckerData:
    checker_data = db.get(CheckerData, checker_data_id)
    if checker_data is None:
        raise NotFound("CheckerData", checker_data_id)
    return checker_data


def _utc_taken(db: Session, utc_no: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(CheckerData.id).where(CheckerData.utc_no == utc_no)
    if exclude_id is not None:
        stmt = stmt.where(CheckerData.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _translate_checker_conflict(db: Session, container_id: Optional[int], utc_no: str, exclude_id=None):
    if container_id is not None:
        taken = db.scalar(select(CheckerData.id).where(CheckerData.container_id == container_id))
        if taken is not None:
            raise AlreadyChecked(container_id)
    if _utc_taken(db, utc_no, exclude_id):
        raise DuplicateUTC(utc_no)


def submit_checker_data(
    db: Session,
    session: UserSession,
    store,
    container_id: int,
    utc_no: str,
    inspector_name: str,
    photos: List[PhotoFile],
    remarks: Optional[str] = None,
) -> CheckerData:
    require_role(session, Role.CHECKER)
    utc_no = require_text(utc_no, "utc_no")
    inspector_name = require_text(inspector_name, "inspector_name")

    container = db.get(Container, container_id)
    if container is None:
        raise NotFound("Container", container_id)
    security_check = container.security_check
    if security_check is None:
        raise PrerequisiteMissing()
    if container.checker_data is not None:
        raise AlreadyChecked(container_id)

    outstanding = outstanding_items(db, security_check.id)
    if outstanding:
        raise SecurityInspectionIncomplete(outstanding)

    if _utc_taken(db, utc_no):
        raise DuplicateUTC(utc_no)

    files = usable_photos(photos)
    check_photo_count(len(files))
    stored = upload_photos(store, CHECKER_PREFIX, files)

    checker_data = CheckerData(
        container_id=container.id,
        user_id=session.user_id,
        utc_no=utc_no,
        inspector_name=inspector_name,
        remarks=optional_text(remarks),
    )
    for s in stored:
        checker_data.photos.append(Photo(url=s.url, filename=s.filename, storage_path=s.storage_path))
    db.add(checker_data)

    commit_or_compensate(db, store, stored, lambda: _translate_checker_conflict(db, container_id, utc_no))
    db.refresh(checker_data)

    dashboard_cache.invalidate(Role.CHECKER, Role.ADMIN)
    logger.info(
        "Checker data submitted: container=%s checker_data=%s utc=%s photos=%d by user=%s",
        container_id, checker_data.id, utc_no, len(stored), session.user_id,
    )
    return checker_data


def update_checker_data(
    db: Session,
    session: UserSession,
    store,
    checker_data_id: int,
    utc_no: str,
    inspector_name: Optional[str],
    deleted_photo_ids: List[int],
    new_photos: List[PhotoFile],
    remarks: Optional[str] = None,
) -> CheckerData:
    require_role(session, Role.CHECKER)
    checker_data = get_checker_data(db, checker_data_id)
    require_owner(session, checker_data.user_id)

    utc_no = require_text(utc_no, "utc_no")
    if inspector_name is not None:
        inspector_name = require_text(inspector_name, "inspector_name")
    utc_changed = utc_no != checker_data.utc_no
    if utc_changed and _utc_taken(db, utc_no, exclude_id=checker_data.id):
        raise DuplicateUTC(utc_no)

    to_delete = select_deleted(checker_data.photos, deleted_photo_ids)
    files = usable_photos(new_photos)
    check_photo_count(len(checker_data.photos) - len(to_delete) + len(files))

    stored = upload_photos(store, CHECKER_PREFIX, files)
    removed_paths = [p.storage_path for p in to_delete]

    checker_data.utc_no = utc_no
    if inspector_name is not None:
        checker_data.inspector_name = inspector_name
    checker_data.remarks = optional_text(remarks)
    for photo in to_delete:
        checker_data.photos.remove(photo)
    for s in stored:
        checker_data.photos.append(Photo(url=s.url, filename=s.filename, storage_path=s.storage_path))

    commit_or_compensate(
        db, store, stored, lambda: _translate_checker_conflict(db, None, utc_no, checker_data_id)
    )
    remove_blobs(store, removed_paths)
    db.refresh(checker_data)

    dashboard_cache.invalidate(Role.CHECKER, Role.ADMIN)
    logger.info(
        "Checker data updated: checker_data=%s photos_removed=%d photos_added=%d by user=%s",
        checker_data.id, len(to_delete), len(stored), session.user_id,
    )
    return checker_data


def delete_checker_data(db: Session, session: UserSession, store, checker_data_id: int) -> int:
    """Remove a checker record and its photos; the container goes back to PendingChecker."""
    require_role(session, Role.CHECKER)
    checker_data = get_checker_data(db, checker_data_id)
    require_owner(session, checker_data.user_id)

    container_id = checker_data.container_id
    paths = [p.storage_path for p in checker_data.photos]
    try:
        db.delete(checker_data)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ForeignKeyConstraint() from e

    remove_blobs(store, paths)
    dashboard_cache.invalidate(Role.CHECKER, Role.ADMIN)
    logger.info("Checker data %s deleted (container=%s) by user=%s", checker_data_id, container_id, session.user_id)
    return container_id


def delete_checker_photo(db: Session, session: UserSession, store, photo_id: int) -> None:
    require_role(session, Role.CHECKER)
    photo = db.get(Photo, photo_id)
    if photo is None:
        raise NotFound("Photo", photo_id)
    checker_data = photo.checker_data
    if checker_data is None:
        raise Unauthorized("Photo does not belong to a checker record")
    require_owner(session, checker_data.user_id)
    check_photo_count(len(checker_data.photos) - 1)

    path = photo.storage_path
    checker_data.photos.remove(photo)
    commit_or_compensate(db, store, [])
    remove_blobs(store, [path])

    dashboard_cache.invalidate(Role.CHECKER, Role.ADMIN)
    logger.info("Photo %s removed from checker_data=%s by user=%s", photo_id, checker_data.id, session.user_id)
