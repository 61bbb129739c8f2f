from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from container_check.database import Base


class Photo(Base):
    __tablename__ = "photos"
    __table_args__ = (
        CheckConstraint(
            "(security_check_id IS NULL) <> (checker_data_id IS NULL)",
            name="ck_photo_single_parent",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String(1024), nullable=False)
    filename = Column(String(255), nullable=False)
    # blob key inside the photo bucket, used for cleanup
    storage_path = Column(String(512), nullable=False)

    security_check_id = Column(
        Integer, ForeignKey("security_checks.id", ondelete="CASCADE"), nullable=True, index=True
    )
    checker_data_id = Column(
        Integer, ForeignKey("checker_data.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at = Column(DateTime, default=func.now())

    security_check = relationship("SecurityCheck", back_populates="photos")
    checker_data = relationship("CheckerData", back_populates="photos")

    @property
    def as_dict(self):
        return {"id": self.id, "url": self.url, "filename": self.filename}
