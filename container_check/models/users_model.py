from sqlalchemy import Column, Integer, String, DateTime, func
from container_check.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(150), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    # SECURITY / CHECKER / ADMIN
    role = Column(String(20), nullable=False, index=True)

    # Stored credentials
    password_hash = Column(String(255), nullable=False)
    password_salt = Column(String(64), nullable=False)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
