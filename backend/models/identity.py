"""Columns shared by the admin, teacher and student tables, plus the email claim table."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String

from backend.database import Base, utcnow


def new_identity_id() -> str:
    return str(uuid.uuid4())


class IdentityMixin:
    """Shape every identity record has. ``ROLE`` is fixed per table."""

    ROLE: str = ''

    id = Column(String(36), primary_key=True, default=new_identity_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    password_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def role(self) -> str:
        return self.ROLE

    @property
    def display_name(self) -> str:
        return f"{(self.first_name or '').strip()} {(self.last_name or '').strip()}".strip()


class EmailClaim(Base):
    """One row per registered email, across every identity table.

    Written in the same transaction as the identity row, so the primary key makes the
    address unique system-wide and a concurrent duplicate loses at commit time.
    """
    __tablename__ = "identity_emails"

    email = Column(String(255), primary_key=True)
    role = Column(String(20), nullable=False)
    identity_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
