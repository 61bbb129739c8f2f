from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from container_check.database import get_db
from container_check.routers.auth_router import get_current_session
from container_check.services import catalog_service
from container_check.services.session import Role, UserSession
from container_check.utils import success_resp

router = APIRouter(prefix="/api/checklist", tags=["checklist"])


@router.get("")
def get_checklist(db: Session = Depends(get_db), session: UserSession = Depends(get_current_session)):
    """Security checklist and vehicle checklist, grouped by category."""
    return success_resp("Checklist fetched", catalog_service.checklist_template(db))


@router.get("/inspector-names")
def get_inspector_names(
    role: Role = Query(...),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return success_resp("Inspector names fetched", catalog_service.list_inspector_names(db, role.value))
