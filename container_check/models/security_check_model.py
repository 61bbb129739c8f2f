from dataclasses import dataclass

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship

from container_check.database import Base

CHECKLIST = "checklist"
VEHICLE = "vehicle"


@dataclass(frozen=True)
class ResponseTarget:
    """Which catalog item a response answers: a Security checklist item or a vehicle item."""
    kind: str
    item_id: int

    def __post_init__(self):
        if self.kind not in (CHECKLIST, VEHICLE):
            raise ValueError(f"unknown response target kind: {self.kind}")

    @classmethod
    def checklist(cls, item_id: int) -> "ResponseTarget":
        return cls(CHECKLIST, int(item_id))

    @classmethod
    def vehicle(cls, item_id: int) -> "ResponseTarget":
        return cls(VEHICLE, int(item_id))

    @property
    def is_vehicle(self) -> bool:
        return self.kind == VEHICLE


class SecurityCheck(Base):
    __tablename__ = "security_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    container_id = Column(
        Integer, ForeignKey("containers.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    # owner (the Security officer that submitted it)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    inspector_name = Column(String(100), nullable=False)
    remarks = Column(Text, nullable=True)
    inspection_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    container = relationship("Container", back_populates="security_check")
    user = relationship("User")
    responses = relationship(
        "SecurityCheckResponse", back_populates="security_check", cascade="all, delete-orphan"
    )
    photos = relationship(
        "Photo", back_populates="security_check", cascade="all, delete-orphan", order_by="Photo.id"
    )

    @property
    def unchecked_count(self) -> int:
        return sum(1 for r in self.responses if not r.checked)


class SecurityCheckResponse(Base):
    __tablename__ = "security_check_responses"
    __table_args__ = (
        CheckConstraint(
            "(checklist_item_id IS NULL) <> (vehicle_inspection_item_id IS NULL)",
            name="ck_response_single_target",
        ),
        UniqueConstraint("security_check_id", "checklist_item_id", name="uq_response_checklist_item"),
        UniqueConstraint("security_check_id", "vehicle_inspection_item_id", name="uq_response_vehicle_item"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    security_check_id = Column(
        Integer, ForeignKey("security_checks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    checklist_item_id = Column(Integer, ForeignKey("checklist_items.id"), nullable=True, index=True)
    vehicle_inspection_item_id = Column(
        Integer, ForeignKey("vehicle_inspection_items.id"), nullable=True, index=True
    )
    checked = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    security_check = relationship("SecurityCheck", back_populates="responses")
    checklist_item = relationship("ChecklistItem")
    vehicle_inspection_item = relationship("VehicleInspectionItem")
    history = relationship(
        "SecurityCheckResponseHistory",
        back_populates="response",
        cascade="all, delete-orphan",
        order_by=lambda: [
            SecurityCheckResponseHistory.changed_at.desc(),
            SecurityCheckResponseHistory.id.desc(),
        ],
    )

    @property
    def target(self) -> ResponseTarget:
        if self.checklist_item_id is not None:
            return ResponseTarget.checklist(self.checklist_item_id)
        return ResponseTarget.vehicle(self.vehicle_inspection_item_id)

    @target.setter
    def target(self, value: ResponseTarget):
        if value.is_vehicle:
            self.checklist_item_id = None
            self.vehicle_inspection_item_id = value.item_id
        else:
            self.checklist_item_id = value.item_id
            self.vehicle_inspection_item_id = None


class SecurityCheckResponseHistory(Base):
    """Append-only snapshot of a response's state before an edit."""
    __tablename__ = "security_check_response_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    response_id = Column(
        Integer, ForeignKey("security_check_responses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # denormalized for per-inspection history lookups
    security_check_id = Column(
        Integer, ForeignKey("security_checks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    checklist_item_id = Column(Integer, nullable=True, index=True)
    vehicle_inspection_item_id = Column(Integer, nullable=True, index=True)

    checked = Column(Boolean, nullable=False)
    notes = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_by_name = Column(String(100), nullable=True)

    response = relationship("SecurityCheckResponse", back_populates="history")

    @property
    def as_dict(self):
        return {
            "id": self.id,
            "checked": self.checked,
            "notes": self.notes,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
            "changed_by_id": self.changed_by_id,
            "changed_by_name": self.changed_by_name,
        }
