from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from container_check.database import get_db
from container_check.routers.auth_router import get_current_session
from container_check.services import inspection_service, report_service
from container_check.services.blob_store import get_blob_store
from container_check.services.completion import InspectionState
from container_check.services.session import Role, UserSession, require_role
from container_check.utils import success_resp

router = APIRouter(prefix="/api/admin", tags=["admin"])


def require_admin(session: UserSession = Depends(get_current_session)) -> UserSession:
    return require_role(session, Role.ADMIN)


@router.get("/dashboard")
def dashboard(
    on_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    admin: UserSession = Depends(require_admin),
):
    return success_resp("Dashboard fetched", report_service.dashboard_stats(db, Role.ADMIN, on_date))


@router.get("/reports")
def reports(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    state: Optional[InspectionState] = Query(None),
    db: Session = Depends(get_db),
    admin: UserSession = Depends(require_admin),
):
    containers = report_service.query_containers(db, date_from=date_from, date_to=date_to, search=search, state=state)
    return success_resp("Report fetched", [report_service.container_summary(c) for c in containers])


@router.get("/reports/export")
def export_reports(
    fmt: str = Query("xlsx", alias="format"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    state: Optional[InspectionState] = Query(None),
    db: Session = Depends(get_db),
    admin: UserSession = Depends(require_admin),
):
    """Download the filtered report as an Excel workbook or CSV file."""
    containers = report_service.query_containers(db, date_from=date_from, date_to=date_to, search=search, state=state)
    content, media_type, filename = report_service.export_report(containers, fmt)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/containers/{container_id}")
def get_container(container_id: int, db: Session = Depends(get_db), admin: UserSession = Depends(require_admin)):
    return success_resp("Container fetched", report_service.container_detail(db, container_id))


@router.delete("/containers/{container_id}")
def delete_container(
    container_id: int,
    db: Session = Depends(get_db),
    store=Depends(get_blob_store),
    admin: UserSession = Depends(require_admin),
):
    result = inspection_service.delete_inspection(db, admin, store, container_id)
    return success_resp("Container deleted successfully", asdict(result))
