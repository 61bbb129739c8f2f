"""
Security stage of the inspection workflow.

Creation and edits follow the same shape: validate everything against the
database first, upload the new photos, then write all metadata in one
transaction. Blobs of removed photos are cleaned up only after the commit.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from container_check.errors import (
    DuplicateContainer,
    DuplicateSeal,
    ForeignKeyConstraint,
    IncompleteChecklist,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from container_check.models import (
    Container,
    Photo,
    ResponseTarget,
    SecurityCheck,
    SecurityCheckResponse,
    SecurityCheckResponseHistory,
)
from container_check.schemas.inspection import ChecklistAnswer, ContainerFields, ContainerFieldsPatch
from container_check.services.catalog_service import list_active_checklist_items, list_active_vehicle_items
from container_check.services.common import commit_or_compensate, optional_text, require_text
from container_check.services.dashboard_cache import dashboard_cache
from container_check.services.photo_service import (
    SECURITY_PREFIX,
    PhotoFile,
    check_photo_count,
    remove_blobs,
    select_deleted,
    upload_photos,
    usable_photos,
)
from container_check.services.session import Role, UserSession, require_owner, require_role

logger = logging.getLogger(__name__)

CONTAINER_TEXT_FIELDS = ("container_no", "company_name", "seal_no", "plate_no")


@dataclass(frozen=True)
class DeletionResult:
    container_id: int
    photo_count: int
    # False when the blob store reported a cleanup failure; the metadata is gone either way
    blobs_removed: bool


# ---------------------------------------------------------
# Lookups and validation helpers
# ---------------------------------------------------------
def get_security_check(db: Session, security_check_id: int) -> SecurityCheck:
    security_check = db.get(SecurityCheck, security_check_id)
    if security_check is None:
        raise NotFound("SecurityCheck", security_check_id)
    return security_check


def _container_no_taken(db: Session, container_no: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Container.id).where(Container.container_no == container_no)
    if exclude_id is not None:
        stmt = stmt.where(Container.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _seal_no_taken(db: Session, seal_no: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Container.id).where(Container.seal_no == seal_no)
    if exclude_id is not None:
        stmt = stmt.where(Container.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _ensure_unique(db: Session, container_no: str = None, seal_no: str = None, exclude_id: int = None):
    if container_no is not None and _container_no_taken(db, container_no, exclude_id):
        raise DuplicateContainer(container_no)
    if seal_no is not None and _seal_no_taken(db, seal_no, exclude_id):
        raise DuplicateSeal(seal_no)


def _translate_container_conflict(db: Session, container_no: str, seal_no: str, exclude_id: int = None):
    # runs after rollback: whatever won the race is committed and visible now
    _ensure_unique(db, container_no, seal_no, exclude_id)


def _active_targets(db: Session):
    checklist = {ResponseTarget.checklist(i.id) for i in list_active_checklist_items(db)}
    vehicle = {ResponseTarget.vehicle(i.id) for i in list_active_vehicle_items(db)}
    return checklist, vehicle


def _reject_unknown(answers: Dict[ResponseTarget, ChecklistAnswer], allowed) -> None:
    unknown = sorted((t for t in answers if t not in allowed), key=lambda t: (t.kind, t.item_id))
    if unknown:
        labels = ", ".join(f"{t.kind}:{t.item_id}" for t in unknown)
        raise ValidationFailed("checklist", f"Unknown or inactive checklist item(s): {labels}")


def _require_complete(answers, checklist_targets, vehicle_targets) -> None:
    required = set(checklist_targets)
    if any(t.is_vehicle for t in answers):
        required |= vehicle_targets
    missing = [t for t in required if t not in answers]
    unchecked = [t for t, a in answers.items() if not a.checked]
    if missing or unchecked:
        raise IncompleteChecklist(missing, unchecked)


def _new_response(target: ResponseTarget, answer: ChecklistAnswer) -> SecurityCheckResponse:
    response = SecurityCheckResponse(checked=answer.checked, notes=optional_text(answer.notes))
    response.target = target
    return response


# ---------------------------------------------------------
# Create
# ---------------------------------------------------------
def create_inspection(
    db: Session,
    session: UserSession,
    store,
    container_fields: ContainerFields,
    inspector_name: str,
    answers: Dict[ResponseTarget, ChecklistAnswer],
    photos: List[PhotoFile],
    remarks: Optional[str] = None,
) -> SecurityCheck:
    """
    Create a container together with its security check, one response per
    answered item and the uploaded photos.
    """
    require_role(session, Role.SECURITY)

    fields = {name: require_text(getattr(container_fields, name), name) for name in CONTAINER_TEXT_FIELDS}
    if container_fields.inspection_date is None:
        raise ValidationFailed("inspection_date", "inspection_date is required")
    inspector_name = require_text(inspector_name, "inspector_name")

    _ensure_unique(db, fields["container_no"], fields["seal_no"])

    checklist_targets, vehicle_targets = _active_targets(db)
    answers = answers or {}
    _reject_unknown(answers, checklist_targets | vehicle_targets)
    _require_complete(answers, checklist_targets, vehicle_targets)

    files = usable_photos(photos)
    check_photo_count(len(files))
    stored = upload_photos(store, SECURITY_PREFIX, files)

    container = Container(inspection_date=container_fields.inspection_date, **fields)
    security_check = SecurityCheck(
        container=container,
        user_id=session.user_id,
        inspector_name=inspector_name,
        remarks=optional_text(remarks),
        inspection_date=container_fields.inspection_date,
    )
    for target, answer in answers.items():
        security_check.responses.append(_new_response(target, answer))
    for s in stored:
        security_check.photos.append(Photo(url=s.url, filename=s.filename, storage_path=s.storage_path))
    db.add(container)

    commit_or_compensate(
        db, store, stored,
        lambda: _translate_container_conflict(db, fields["container_no"], fields["seal_no"]),
    )
    db.refresh(security_check)

    dashboard_cache.invalidate(Role.SECURITY, Role.CHECKER, Role.ADMIN)
    logger.info(
        "Inspection created: container=%s security_check=%s responses=%d photos=%d by user=%s",
        container.container_no, security_check.id, len(answers), len(stored), session.user_id,
    )
    return security_check


# ---------------------------------------------------------
# Edit
# ---------------------------------------------------------
def _apply_answers(
    security_check: SecurityCheck,
    answers: Dict[ResponseTarget, ChecklistAnswer],
    session: UserSession,
    changed_at: datetime,
) -> int:
    """Diff answers into the stored responses. Returns the number of history rows written."""
    existing = {r.target: r for r in security_check.responses}
    written = 0
    for target, answer in answers.items():
        response = existing.get(target)
        notes = optional_text(answer.notes)
        if response is None:
            security_check.responses.append(_new_response(target, answer))
            continue
        if response.checked == answer.checked and response.notes == notes:
            continue

        # snapshot of the state being replaced
        response.history.append(
            SecurityCheckResponseHistory(
                security_check_id=security_check.id,
                checklist_item_id=response.checklist_item_id,
                vehicle_inspection_item_id=response.vehicle_inspection_item_id,
                checked=response.checked,
                notes=response.notes,
                changed_at=changed_at,
                changed_by_id=session.user_id,
                changed_by_name=session.name,
            )
        )
        response.checked = answer.checked
        response.notes = notes
        written += 1
    return written


def update_inspection(
    db: Session,
    session: UserSession,
    store,
    security_check_id: int,
    container_fields: Optional[ContainerFieldsPatch],
    inspector_name: Optional[str],
    answers: Dict[ResponseTarget, ChecklistAnswer],
    deleted_photo_ids: List[int],
    new_photos: List[PhotoFile],
    remarks: Optional[str] = None,
) -> SecurityCheck:
    """
    Edit a security check owned by the caller.

    Only answers present in ``answers`` are compared; a changed answer gets a
    history row with its previous state. ``remarks`` replaces the stored value.
    """
    require_role(session, Role.SECURITY)
    security_check = get_security_check(db, security_check_id)
    require_owner(session, security_check.user_id)
    container = security_check.container

    patch = container_fields.model_dump(exclude_none=True) if container_fields is not None else {}
    for name in CONTAINER_TEXT_FIELDS:
        if name in patch:
            patch[name] = require_text(patch[name], name)
    if inspector_name is not None:
        inspector_name = require_text(inspector_name, "inspector_name")

    new_container_no = patch.get("container_no")
    if new_container_no == container.container_no:
        new_container_no = None
    new_seal_no = patch.get("seal_no")
    if new_seal_no == container.seal_no:
        new_seal_no = None
    _ensure_unique(db, new_container_no, new_seal_no, exclude_id=container.id)

    answers = answers or {}
    checklist_targets, vehicle_targets = _active_targets(db)
    stored_targets = {r.target for r in security_check.responses}
    _reject_unknown(answers, checklist_targets | vehicle_targets | stored_targets)

    to_delete = select_deleted(security_check.photos, deleted_photo_ids)
    files = usable_photos(new_photos)
    check_photo_count(len(security_check.photos) - len(to_delete) + len(files))

    stored = upload_photos(store, SECURITY_PREFIX, files)
    removed_paths = [p.storage_path for p in to_delete]

    for name, value in patch.items():
        setattr(container, name, value)
    if "inspection_date" in patch:
        security_check.inspection_date = patch["inspection_date"]
    if inspector_name is not None:
        security_check.inspector_name = inspector_name
    security_check.remarks = optional_text(remarks)

    history_rows = _apply_answers(security_check, answers, session, datetime.now())

    for photo in to_delete:
        security_check.photos.remove(photo)
    for s in stored:
        security_check.photos.append(Photo(url=s.url, filename=s.filename, storage_path=s.storage_path))

    commit_or_compensate(
        db, store, stored,
        lambda: _translate_container_conflict(db, new_container_no, new_seal_no, container.id),
    )
    remove_blobs(store, removed_paths)
    db.refresh(security_check)

    dashboard_cache.invalidate(Role.SECURITY, Role.CHECKER, Role.ADMIN)
    logger.info(
        "Inspection updated: security_check=%s history_rows=%d photos_removed=%d photos_added=%d by user=%s",
        security_check.id, history_rows, len(to_delete), len(stored), session.user_id,
    )
    return security_check


# ---------------------------------------------------------
# Delete
# ---------------------------------------------------------
def delete_inspection(db: Session, session: UserSession, store, container_id: int) -> DeletionResult:
    """
    Delete a container with everything hanging off it.

    The owning Security officer or an admin may do this. Rows are removed in
    one commit; the photo blobs are removed afterwards, best-effort.
    """
    require_role(session, Role.SECURITY, Role.ADMIN)
    container = db.get(Container, container_id)
    if container is None:
        raise NotFound("Container", container_id)

    security_check = container.security_check
    if session.role == Role.SECURITY:
        if security_check is None:
            raise Unauthorized("Only the user who submitted this record may change it")
        require_owner(session, security_check.user_id)

    # a concurrent delete leaves nothing to lock
    locked = db.scalar(select(Container.id).where(Container.id == container_id).with_for_update())
    if locked is None:
        db.rollback()
        raise NotFound("Container", container_id, "Container was already deleted")

    paths = []
    if security_check is not None:
        paths += [p.storage_path for p in security_check.photos]
    if container.checker_data is not None:
        paths += [p.storage_path for p in container.checker_data.photos]

    try:
        db.delete(container)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error("Delete of container %s blocked by a foreign key: %s", container_id, e)
        raise ForeignKeyConstraint() from e

    blobs_removed = remove_blobs(store, paths)
    dashboard_cache.invalidate(Role.SECURITY, Role.CHECKER, Role.ADMIN)
    logger.info(
        "Container %s deleted by user=%s (%d photo blob(s), cleanup ok=%s)",
        container_id, session.user_id, len(paths), blobs_removed,
    )
    return DeletionResult(container_id=container_id, photo_count=len(paths), blobs_removed=blobs_removed)


def delete_photo(db: Session, session: UserSession, store, photo_id: int) -> None:
    """Remove one photo from a security check; at least MIN_PHOTOS must remain."""
    require_role(session, Role.SECURITY)
    photo = db.get(Photo, photo_id)
    if photo is None:
        raise NotFound("Photo", photo_id)
    security_check = photo.security_check
    if security_check is None:
        raise Unauthorized("Photo does not belong to a security inspection")
    require_owner(session, security_check.user_id)
    check_photo_count(len(security_check.photos) - 1)

    path = photo.storage_path
    security_check.photos.remove(photo)
    commit_or_compensate(db, store, [])
    remove_blobs(store, [path])

    dashboard_cache.invalidate(Role.SECURITY, Role.CHECKER, Role.ADMIN)
    logger.info("Photo %s removed from security_check=%s by user=%s", photo_id, security_check.id, session.user_id)
