from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from container_check.database import Base


class InspectorName(Base):
    """Pick-list of inspector names offered per role on the inspection forms."""
    __tablename__ = "inspector_names"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now())
