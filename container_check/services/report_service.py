"""
Read-side projections used by dashboards, reports and the export download.
Nothing here writes to the database.
"""
import csv
import io
import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session, selectinload

from container_check.errors import NotFound, ValidationFailed
from container_check.models import (
    CheckerData,
    Container,
    SecurityCheck,
    SecurityCheckResponse,
    User,
)
from container_check.services.completion import InspectionState, state_filter, state_of
from container_check.services.dashboard_cache import dashboard_cache

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv"

# (header, width)
REPORT_COLUMNS = [
    ("Container No", 15),
    ("UTC No", 15),
    ("Company", 25),
    ("Seal No", 15),
    ("Plate No", 15),
    ("Inspection Date", 18),
    ("Security Officer", 20),
    ("Security Check Date", 18),
    ("Checker", 20),
    ("Checker Date", 18),
    ("Security Status", 15),
    ("Checker Status", 15),
    ("Overall Status", 18),
    ("Security Remarks", 30),
    ("Checker Remarks", 30),
]

_OVERALL_LABELS = {
    InspectionState.COMPLETE: "Complete",
    InspectionState.PENDING_CHECKER: "Pending Checker",
    InspectionState.PENDING_SECURITY: "Pending Security",
}


def _iso(value):
    return value.isoformat() if value else None


def _container_options():
    return (
        selectinload(Container.security_check).selectinload(SecurityCheck.user),
        selectinload(Container.security_check).selectinload(SecurityCheck.photos),
        selectinload(Container.checker_data).selectinload(CheckerData.user),
        selectinload(Container.checker_data).selectinload(CheckerData.photos),
    )


# ---------------------------------------------------------
# Queries
# ---------------------------------------------------------
def query_containers(
    db: Session,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    state: Optional[InspectionState] = None,
    security_user_id: Optional[int] = None,
    checker_user_id: Optional[int] = None,
) -> List[Container]:
    """
    Containers matching the filters, newest inspection first.
    Both ends of the date range are whole days and inclusive.
    """
    if date_from and date_to and date_from > date_to:
        raise ValidationFailed("date_from", "date_from must not be after date_to")

    stmt = select(Container).options(*_container_options())

    if date_from:
        stmt = stmt.where(Container.inspection_date >= datetime.combine(date_from, time.min))
    if date_to:
        stmt = stmt.where(Container.inspection_date < datetime.combine(date_to + timedelta(days=1), time.min))

    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Container.container_no).like(pattern),
                func.lower(Container.company_name).like(pattern),
                func.lower(Container.plate_no).like(pattern),
                func.lower(Container.seal_no).like(pattern),
                exists().where(
                    CheckerData.container_id == Container.id,
                    func.lower(CheckerData.utc_no).like(pattern),
                ),
            )
        )

    if state is not None:
        stmt = stmt.where(state_filter(InspectionState(state)))
    if security_user_id is not None:
        stmt = stmt.where(
            exists().where(SecurityCheck.container_id == Container.id, SecurityCheck.user_id == security_user_id)
        )
    if checker_user_id is not None:
        stmt = stmt.where(
            exists().where(CheckerData.container_id == Container.id, CheckerData.user_id == checker_user_id)
        )

    stmt = stmt.order_by(Container.inspection_date.desc(), Container.id.desc())
    return list(db.scalars(stmt))


def pending_for_checker(db: Session) -> List[dict]:
    """Containers waiting for the Checker, with how many security items are still unchecked."""
    outstanding = (
        select(func.count())
        .select_from(SecurityCheckResponse)
        .where(
            SecurityCheckResponse.security_check_id == SecurityCheck.id,
            SecurityCheckResponse.checked.is_(False),
        )
        .scalar_subquery()
    )
    rows = db.execute(
        select(Container, outstanding)
        .join(SecurityCheck, SecurityCheck.container_id == Container.id)
        .where(state_filter(InspectionState.PENDING_CHECKER))
        .order_by(Container.inspection_date.desc(), Container.id.desc())
    ).all()
    return [
        {**container.as_dict, "outstanding_count": count, "ready": count == 0}
        for container, count in rows
    ]


# ---------------------------------------------------------
# Projections
# ---------------------------------------------------------
def _photo_list(photos):
    return [p.as_dict for p in photos]


def _group_responses(responses, vehicle: bool) -> List[dict]:
    grouped = OrderedDict()
    rows = []
    for r in responses:
        item = r.vehicle_inspection_item if vehicle else r.checklist_item
        if item is None:
            continue
        rows.append((item.category.order, item.order, item, r))
    for _, _, item, r in sorted(rows, key=lambda x: (x[0], x[1])):
        category = item.category
        block = grouped.get(category.id)
        if block is None:
            block = grouped[category.id] = {"id": category.id, "name": category.name, "order": category.order, "items": []}
        block["items"].append({
            "response_id": r.id,
            "item_id": item.id,
            "item_text": item.item_text,
            "order": item.order,
            "checked": r.checked,
            "notes": r.notes,
            "history": [h.as_dict for h in r.history],
        })
    return list(grouped.values())


def _security_block(sc: SecurityCheck) -> dict:
    checklist = [r for r in sc.responses if r.checklist_item_id is not None]
    vehicle = [r for r in sc.responses if r.vehicle_inspection_item_id is not None]
    return {
        "id": sc.id,
        "user_id": sc.user_id,
        "user_name": sc.user.name if sc.user else None,
        "inspector_name": sc.inspector_name,
        "remarks": sc.remarks,
        "inspection_date": _iso(sc.inspection_date),
        "created_at": _iso(sc.created_at),
        "updated_at": _iso(sc.updated_at),
        "unchecked_count": sc.unchecked_count,
        "checklist": _group_responses(checklist, vehicle=False),
        "vehicle": _group_responses(vehicle, vehicle=True),
        "photos": _photo_list(sc.photos),
    }


def _checker_block(cd: CheckerData) -> dict:
    return {
        "id": cd.id,
        "user_id": cd.user_id,
        "user_name": cd.user.name if cd.user else None,
        "utc_no": cd.utc_no,
        "inspector_name": cd.inspector_name,
        "remarks": cd.remarks,
        "created_at": _iso(cd.created_at),
        "updated_at": _iso(cd.updated_at),
        "photos": _photo_list(cd.photos),
    }


def container_summary(container: Container) -> dict:
    sc, cd = container.security_check, container.checker_data
    return {
        **container.as_dict,
        "state": state_of(container).value,
        "security_check_id": sc.id if sc else None,
        "security_user": sc.user.name if sc and sc.user else None,
        "checker_data_id": cd.id if cd else None,
        "utc_no": cd.utc_no if cd else None,
        "checker_user": cd.user.name if cd and cd.user else None,
    }


def container_detail(db: Session, container_id: int) -> dict:
    """Full nested view of one container including response history, newest first."""
    container = db.scalar(
        select(Container)
        .where(Container.id == container_id)
        .options(
            *_container_options(),
            selectinload(Container.security_check)
            .selectinload(SecurityCheck.responses)
            .selectinload(SecurityCheckResponse.history),
        )
    )
    if container is None:
        raise NotFound("Container", container_id)

    sc, cd = container.security_check, container.checker_data
    return {
        **container.as_dict,
        "state": state_of(container).value,
        "security_check": _security_block(sc) if sc else None,
        "checker_data": _checker_block(cd) if cd else None,
    }


def dashboard_stats(db: Session, role, on_date: Optional[date] = None, user_id: Optional[int] = None) -> dict:
    """
    Totals per completion state plus the most recent containers.
    Cached per (role, day, user); mutations invalidate by role.
    """
    on_date = on_date or date.today()
    key = (role, on_date, user_id)
    cached = dashboard_cache.get(key)
    if cached is not None:
        return cached

    def count(*criteria):
        return db.scalar(select(func.count()).select_from(Container).where(*criteria))

    day_start = datetime.combine(on_date, time.min)
    day_end = day_start + timedelta(days=1)
    stats = {
        "date": on_date.isoformat(),
        "total_containers": count(),
        "completed": count(state_filter(InspectionState.COMPLETE)),
        "pending_checker": count(state_filter(InspectionState.PENDING_CHECKER)),
        "pending_security": count(state_filter(InspectionState.PENDING_SECURITY)),
        "inspected_on_date": count(Container.inspection_date >= day_start, Container.inspection_date < day_end),
        "total_users": db.scalar(select(func.count()).select_from(User)),
    }

    stmt = select(Container).options(*_container_options())
    role_value = getattr(role, "value", role)
    if user_id is not None and role_value == "SECURITY":
        stmt = stmt.where(exists().where(SecurityCheck.container_id == Container.id, SecurityCheck.user_id == user_id))
    elif user_id is not None and role_value == "CHECKER":
        stmt = stmt.where(exists().where(CheckerData.container_id == Container.id, CheckerData.user_id == user_id))
    recent = db.scalars(stmt.order_by(Container.created_at.desc(), Container.id.desc()).limit(RECENT_LIMIT))
    stats["recent"] = [container_summary(c) for c in recent]

    dashboard_cache.set(key, stats)
    return stats


# ---------------------------------------------------------
# Export
# ---------------------------------------------------------
def _fmt_date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def report_row(container: Container) -> list:
    sc, cd = container.security_check, container.checker_data
    return [
        container.container_no,
        cd.utc_no if cd else "-",
        container.company_name,
        container.seal_no,
        container.plate_no,
        _fmt_date(container.inspection_date),
        sc.user.name if sc and sc.user else "-",
        _fmt_date(sc.inspection_date) if sc else "-",
        cd.user.name if cd and cd.user else "-",
        _fmt_date(cd.created_at) if cd else "-",
        "Done" if sc else "Pending",
        "Done" if cd else "Pending",
        _OVERALL_LABELS[state_of(container)],
        (sc.remarks if sc and sc.remarks else "-"),
        (cd.remarks if cd and cd.remarks else "-"),
    ]


def _export_xlsx(containers: List[Container]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Container Report"

    headers = [h for h, _ in REPORT_COLUMNS]
    ws.append(headers)

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for container in containers:
        ws.append(report_row(container))

    for i, (_, width) in enumerate(REPORT_COLUMNS, 1):
        ws.column_dimensions[openpyxl.utils.get_column_letter(i)].width = width

    for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=1, max_col=len(headers)):
        for cell in row:
            cell.alignment = Alignment(horizontal="left", vertical="center", wrap_text=True)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def _export_csv(containers: List[Container]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([h for h, _ in REPORT_COLUMNS])
    for container in containers:
        writer.writerow(report_row(container))
    return output.getvalue().encode("utf-8")


def export_report(containers: List[Container], fmt: str = "xlsx") -> Tuple[bytes, str, str]:
    """Render containers as a downloadable report. Returns (content, media_type, filename)."""
    fmt = (fmt or "xlsx").lower()
    stamp = date.today().isoformat()
    if fmt in ("xlsx", "excel"):
        content = _export_xlsx(containers)
        logger.info("Exported %d container(s) to xlsx", len(containers))
        return content, XLSX_MEDIA_TYPE, f"container-report-{stamp}.xlsx"
    if fmt == "csv":
        content = _export_csv(containers)
        logger.info("Exported %d container(s) to csv", len(containers))
        return content, CSV_MEDIA_TYPE, f"container-report-{stamp}.csv"
    raise ValidationFailed("format", f"Unsupported export format: {fmt}")
