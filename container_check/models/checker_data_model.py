from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from container_check.database import Base


class CheckerData(Base):
    __tablename__ = "checker_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    container_id = Column(
        Integer, ForeignKey("containers.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # UTC number: checker-assigned tracking code, not a timestamp
    utc_no = Column(String(100), nullable=False, unique=True, index=True)
    inspector_name = Column(String(100), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    container = relationship("Container", back_populates="checker_data")
    user = relationship("User")
    photos = relationship(
        "Photo", back_populates="checker_data", cascade="all, delete-orphan", order_by="Photo.id"
    )
