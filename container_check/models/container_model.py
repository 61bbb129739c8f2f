"""
SQLAlchemy model for the containers table.
One row per physical container inspection occasion; parent of the security
check and checker records, which are removed with it.
"""

from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship

from container_check.database import Base


class Container(Base):
    __tablename__ = "containers"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Business identifier (unique per record)
    container_no = Column(String(50), nullable=False, unique=True, index=True)
    company_name = Column(String(255), nullable=False)
    seal_no = Column(String(100), nullable=False, index=True)
    plate_no = Column(String(50), nullable=False, index=True)
    inspection_date = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    security_check = relationship(
        "SecurityCheck", back_populates="container", uselist=False, cascade="all, delete-orphan"
    )
    checker_data = relationship(
        "CheckerData", back_populates="container", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Container(id={self.id}, container_no='{self.container_no}')>"

    @property
    def as_dict(self):
        """Scalar fields only; nested records are projected by the report service."""
        return {
            "id": self.id,
            "container_no": self.container_no,
            "company_name": self.company_name,
            "seal_no": self.seal_no,
            "plate_no": self.plate_no,
            "inspection_date": self.inspection_date.isoformat() if self.inspection_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
