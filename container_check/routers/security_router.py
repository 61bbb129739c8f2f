from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from container_check.database import get_db
from container_check.routers.auth_router import get_current_session
from container_check.schemas.inspection import InspectionCreate, InspectionUpdate
from container_check.services import inspection_service, report_service
from container_check.services.blob_store import get_blob_store
from container_check.services.completion import state_of
from container_check.services.session import Role, UserSession, require_role
from container_check.utils import parse_form_payload, read_uploads, success_resp

router = APIRouter(prefix="/api/security", tags=["security"])


def _created_data(security_check) -> dict:
    return {
        "security_check_id": security_check.id,
        "container_id": security_check.container_id,
        "container_no": security_check.container.container_no,
        "state": state_of(security_check.container).value,
        "photos": [p.as_dict for p in security_check.photos],
    }


@router.post("/inspections")
def create_inspection(
    payload: str = Form(..., description="InspectionCreate as JSON"),
    photos: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    """
    Submit a Security inspection. ``payload`` carries the container fields and
    checklist answers; ``photos`` are the inspection pictures.
    """
    body = parse_form_payload(InspectionCreate, payload)
    security_check = inspection_service.create_inspection(
        db,
        session,
        store,
        container_fields=body.container,
        inspector_name=body.inspector_name,
        answers=body.answers(),
        photos=read_uploads(photos),
        remarks=body.remarks,
    )
    return success_resp("Inspection created successfully", _created_data(security_check), 201)


@router.get("/inspections")
def list_my_inspections(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    require_role(session, Role.SECURITY)
    containers = report_service.query_containers(
        db, date_from=date_from, date_to=date_to, search=search, security_user_id=session.user_id
    )
    return success_resp("Inspections fetched", [report_service.container_summary(c) for c in containers])


@router.get("/inspections/{security_check_id}")
def get_inspection(
    security_check_id: int,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    require_role(session, Role.SECURITY, Role.ADMIN)
    security_check = inspection_service.get_security_check(db, security_check_id)
    return success_resp("Inspection fetched", report_service.container_detail(db, security_check.container_id))


@router.put("/inspections/{security_check_id}")
def update_inspection(
    security_check_id: int,
    payload: str = Form(..., description="InspectionUpdate as JSON"),
    photos: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    body = parse_form_payload(InspectionUpdate, payload)
    security_check = inspection_service.update_inspection(
        db,
        session,
        store,
        security_check_id,
        container_fields=body.container,
        inspector_name=body.inspector_name,
        answers=body.answers(),
        deleted_photo_ids=body.deleted_photo_ids,
        new_photos=read_uploads(photos),
        remarks=body.remarks,
    )
    return success_resp("Inspection updated successfully", _created_data(security_check))


@router.delete("/containers/{container_id}")
def delete_container(
    container_id: int,
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    result = inspection_service.delete_inspection(db, session, store, container_id)
    return success_resp("Container deleted successfully", asdict(result))


@router.delete("/photos/{photo_id}")
def delete_photo(
    photo_id: int,
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    session: UserSession = Depends(get_current_session),
):
    inspection_service.delete_photo(db, session, store, photo_id)
    return success_resp("Photo deleted successfully", {"photo_id": photo_id})


@router.get("/dashboard")
def dashboard(
    on_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    require_role(session, Role.SECURITY)
    return success_resp(
        "Dashboard fetched", report_service.dashboard_stats(db, Role.SECURITY, on_date, user_id=session.user_id)
    )
