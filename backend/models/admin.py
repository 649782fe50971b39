"""Admin model definitions."""

from sqlalchemy import JSON, Column, String
from sqlalchemy.orm import validates

from backend.auth import permissions as perms
from backend.core.exceptions import ValidationError
from backend.database import Base
from backend.models.identity import IdentityMixin


class Admin(IdentityMixin, Base):
    """Administrator account with a role type and granular permissions."""
    __tablename__ = "admins"

    ROLE = perms.ADMIN

    full_name = Column(String(201), nullable=False, default='')
    role_type = Column(String(20), nullable=False, default=perms.DEFAULT_ADMIN_ROLE_TYPE)
    permissions = Column(JSON, nullable=False, default=list)

    @validates('role_type')
    def validate_role_type(self, key, value):
        value = (value or perms.DEFAULT_ADMIN_ROLE_TYPE).strip().lower()
        if value not in perms.ADMIN_ROLE_TYPES:
            raise ValidationError(
                [{'field': 'roleType', 'message': f"Role type must be one of: {', '.join(perms.ADMIN_ROLE_TYPES)}"}]
            )
        return value

    @validates('permissions')
    def validate_permissions(self, key, value):
        # Runs on construction and on every assignment, so aliases are
        # normalized before anything is persisted.
        normalized = perms.normalize_permissions(value)
        unknown = perms.invalid_permissions(normalized)
        if unknown:
            raise ValidationError(
                [
                    {'field': 'permissions', 'message': f"'{item}' is not a valid permission"}
                    for item in unknown
                ]
            )
        return normalized
