"""Admin user model for dashboard access."""
from sqlalchemy import Boolean, Column, DateTime, String

from jewelry_store.models.base import Base


class Admin(Base):
    """Dashboard operator. Passwords are stored as bcrypt hashes only."""

    __tablename__ = "admins"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="admin")
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Admin(id={self.id}, email={self.email})>"
