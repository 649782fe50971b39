"""Teacher model definitions."""

from sqlalchemy import Column, String

from backend.auth import permissions as perms
from backend.database import Base
from backend.models.identity import IdentityMixin


class Teacher(IdentityMixin, Base):
    """Represents a teaching staff account."""
    __tablename__ = "teachers"

    ROLE = perms.TEACHER

    employee_id = Column(String(20), unique=True, index=True)
    department = Column(String(100), nullable=True)
