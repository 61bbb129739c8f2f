from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from container_check.database import Base


class ChecklistCategory(Base):
    __tablename__ = "checklist_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)

    items = relationship("ChecklistItem", back_populates="category", order_by="ChecklistItem.order")


class ChecklistItem(Base):
    __tablename__ = "checklist_items"
    __table_args__ = (UniqueConstraint("category_id", "order", name="uq_checklist_item_category_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("checklist_categories.id"), nullable=False, index=True)
    item_text = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("ChecklistCategory", back_populates="items")


class VehicleInspectionCategory(Base):
    __tablename__ = "vehicle_inspection_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)

    items = relationship("VehicleInspectionItem", back_populates="category", order_by="VehicleInspectionItem.order")


class VehicleInspectionItem(Base):
    __tablename__ = "vehicle_inspection_items"
    __table_args__ = (UniqueConstraint("category_id", "order", name="uq_vehicle_item_category_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("vehicle_inspection_categories.id"), nullable=False, index=True)
    item_text = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("VehicleInspectionCategory", back_populates="items")
