from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from container_check.models import (
    ChecklistCategory,
    ChecklistItem,
    InspectorName,
    VehicleInspectionCategory,
    VehicleInspectionItem,
)


def list_active_checklist_items(db: Session) -> List[ChecklistItem]:
    stmt = (
        select(ChecklistItem)
        .join(ChecklistItem.category)
        .where(ChecklistItem.is_active.is_(True))
        .order_by(ChecklistCategory.order, ChecklistItem.order)
    )
    return list(db.scalars(stmt))


def list_active_vehicle_items(db: Session) -> List[VehicleInspectionItem]:
    stmt = (
        select(VehicleInspectionItem)
        .join(VehicleInspectionItem.category)
        .where(VehicleInspectionItem.is_active.is_(True))
        .order_by(VehicleInspectionCategory.order, VehicleInspectionItem.order)
    )
    return list(db.scalars(stmt))


def _category_block(category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "order": category.order,
        "items": [
            {"id": i.id, "item_text": i.item_text, "description": i.description, "order": i.order}
            for i in category.items
            if i.is_active
        ],
    }


def checklist_template(db: Session) -> dict:
    """Ordered categories with their active items, for both checklists."""
    security = db.scalars(
        select(ChecklistCategory).options(selectinload(ChecklistCategory.items)).order_by(ChecklistCategory.order)
    ).all()
    vehicle = db.scalars(
        select(VehicleInspectionCategory)
        .options(selectinload(VehicleInspectionCategory.items))
        .order_by(VehicleInspectionCategory.order)
    ).all()
    return {
        "checklist": [_category_block(c) for c in security],
        "vehicle": [_category_block(c) for c in vehicle],
    }


def list_inspector_names(db: Session, role: str) -> List[dict]:
    rows = db.scalars(
        select(InspectorName)
        .where(InspectorName.role == role, InspectorName.is_active.is_(True))
        .order_by(InspectorName.name)
    )
    return [{"id": r.id, "name": r.name} for r in rows]
