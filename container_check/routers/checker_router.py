from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from container_check.database import get_db
from container_check.routers.auth_router import get_current_session
from container_check.schemas.inspection import CheckerSubmit, CheckerUpdate
from container_check.services import checker_service, report_service
from container_check.services.blob_store import get_blob_store
from container_check.services.session import Role, UserSession, require_role
from container_check.utils import parse_form_payload, read_uploads, success_resp

router = APIRouter(prefix="/api/checker", tags=["checker"])


def _checker_data(checker_data) -> dict:
    return {
        "checker_data_id": checker_data.id,
        "container_id": checker_data.container_id,
        "utc_no": checker_data.utc_no,
        "photos": [p.as_dict for p in checker_data.photos],
    }


@router.get("/containers")
def list_pending(db: Session = Depends(get_db), session: UserSession = Depends(get_current_session)):
    """Containers inspected by Security and waiting for the Checker."""
    require_role(session, Role.CHECKER, Role.ADMIN)
    return success_resp("Pending containers fetched", report_service.pending_for_checker(db))


@router.get("/containers/{container_id}")
def get_container(container_id: int, db: Session = Depends(get_db), session: UserSession = Depends(get_current_session)):
    require_role(session, Role.CHECKER, Role.ADMIN)
    return success_resp("Container fetched", report_service.container_detail(db, container_id))


@router.post("/containers/{container_id}/check")
def submit_check(
    container_id: int,
    payload: str = Form(..., description="CheckerSubmit as JSON"),
    photos: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    body = parse_form_payload(CheckerSubmit, payload)
    checker_data = checker_service.submit_checker_data(
        db,
        session,
        store,
        container_id,
        utc_no=body.utc_no,
        inspector_name=body.inspector_name,
        photos=read_uploads(photos),
        remarks=body.remarks,
    )
    return success_resp("Checker data submitted successfully", _checker_data(checker_data), 201)


@router.put("/checks/{checker_data_id}")
def update_check(
    checker_data_id: int,
    payload: str = Form(..., description="CheckerUpdate as JSON"),
    photos: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    body = parse_form_payload(CheckerUpdate, payload)
    checker_data = checker_service.update_checker_data(
        db,
        session,
        store,
        checker_data_id,
        utc_no=body.utc_no,
        inspector_name=body.inspector_name,
        deleted_photo_ids=body.deleted_photo_ids,
        new_photos=read_uploads(photos),
        remarks=body.remarks,
    )
    return success_resp("Checker data updated successfully", _checker_data(checker_data))


@router.delete("/checks/{checker_data_id}")
def delete_check(
    checker_data_id: int,
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    container_id = checker_service.delete_checker_data(db, session, store, checker_data_id)
    return success_resp("Checker data deleted successfully", {"container_id": container_id})


@router.delete("/photos/{photo_id}")
def delete_photo(
    photo_id: int,
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    checker_service.delete_checker_photo(db, session, store, photo_id)
    return success_resp("Photo deleted successfully", {"photo_id": photo_id})


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), session: UserSession = Depends(get_current_session)):
    require_role(session, Role.CHECKER)
    return success_resp("Dashboard fetched", report_service.dashboard_stats(db, Role.CHECKER, user_id=session.user_id))
