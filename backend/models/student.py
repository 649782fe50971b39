"""Student model definitions."""

from sqlalchemy import Column, Integer, String

from backend.auth import permissions as perms
from backend.database import Base
from backend.models.identity import IdentityMixin


class Student(IdentityMixin, Base):
    """Represents a student account."""
    __tablename__ = "students"

    ROLE = perms.STUDENT

    full_name = Column(String(201), nullable=False, default='')
    student_id = Column(String(20), unique=True, index=True)
    year_level = Column(Integer, nullable=False, default=1)
