"""Lookup and persistence for the three identity tables.

Each role has its own table (``admins``, ``teachers``, ``students``). ``IDENTITY_MODELS``
is the only place a role string is turned into a model class. Email addresses are
stored lower-cased and are unique across all three tables through ``identity_emails``.
"""

import logging
from datetime import datetime
from typing import Any, NamedTuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth import passwords
from backend.auth import permissions as perms
from backend.core.exceptions import BadRequestError, ConflictError, ForbiddenError, ValidationError
from backend.database import utcnow
from backend.models.admin import Admin
from backend.models.counter import next_counter_value
from backend.models.identity import EmailClaim
from backend.models.student import Student
from backend.models.teacher import Teacher

logger = logging.getLogger(__name__)

IDENTITY_MODELS = {
    perms.ADMIN: Admin,
    perms.TEACHER: Teacher,
    perms.STUDENT: Student,
}

ROLE_FIELDS = {
    perms.ADMIN: ('full_name', 'role_type', 'permissions'),
    perms.TEACHER: ('department',),
    perms.STUDENT: ('full_name', 'year_level'),
}

STUDENT_NUMBER_START = 100001
EMPLOYEE_NUMBER_START = 10001
YEAR_LEVELS = (1, 2, 3, 4)

Identity = Admin | Teacher | Student


class IdentityMatch(NamedTuple):
    identity: Identity
    role: str


def normalize_email(email: str | None) -> str:
    return (email or '').strip().lower()


def model_for_role(role: str):
    model = IDENTITY_MODELS.get(role)
    if model is None:
        raise BadRequestError('Invalid role specified')
    return model


def find_by_email(db: Session, email: str) -> IdentityMatch | None:
    """Probe admins, teachers, then students; the first table holding ``email`` wins."""
    normalized = normalize_email(email)
    if not normalized:
        return None

    for role, model in IDENTITY_MODELS.items():
        identity = db.execute(select(model).where(model.email == normalized)).scalar_one_or_none()
        if identity is not None:
            return IdentityMatch(identity, role)
    return None


def find_by_id(db: Session, identity_id: str | None, role: str | None) -> Identity | None:
    model = IDENTITY_MODELS.get(role)
    if model is None or not identity_id:
        return None
    return db.get(model, str(identity_id))


def count_identities(db: Session, role: str) -> int:
    model = model_for_role(role)
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _format_year(now: datetime) -> str:
    return now.strftime('%y')


def _assign_number(db: Session, identity: Identity) -> None:
    year = _format_year(utcnow())
    if isinstance(identity, Student) and not identity.student_id:
        number = next_counter_value(db, f'student:{year}', STUDENT_NUMBER_START)
        identity.student_id = f'{year}-{number:06d}'
    elif isinstance(identity, Teacher) and not identity.employee_id:
        number = next_counter_value(db, f'employee:{year}', EMPLOYEE_NUMBER_START)
        identity.employee_id = f'EMP-{year}-{number:05d}'


def _reserve_account_slot(db: Session, role: str, max_accounts: int) -> None:
    """Enforce ``max_accounts`` for ``role`` inside the current transaction.

    Bumping the role's counter row locks it until commit, so concurrent creators of the
    same role count one after another.
    """
    next_counter_value(db, f'{role}:accounts', 1)
    if count_identities(db, role) >= max_accounts:
        raise ForbiddenError(
            f'{role.capitalize()} registration limit reached. Only {max_accounts} {role}s are allowed.'
        )


def _role_attributes(role: str, first_name: str, last_name: str, extra: dict[str, Any]) -> dict[str, Any]:
    allowed = ROLE_FIELDS[role]
    attrs = {key: value for key, value in extra.items() if key in allowed and value is not None}
    ignored = sorted(set(extra) - set(allowed))
    if ignored:
        logger.debug('Ignoring fields %s for role %s', ignored, role)

    if 'full_name' in allowed and not (attrs.get('full_name') or '').strip():
        attrs['full_name'] = f'{first_name} {last_name}'.strip()

    if role == perms.ADMIN:
        role_type = (attrs.get('role_type') or perms.DEFAULT_ADMIN_ROLE_TYPE).strip().lower()
        attrs['role_type'] = role_type
        if 'permissions' not in attrs:
            attrs['permissions'] = perms.default_permissions(role_type)

    if role == perms.STUDENT and 'year_level' in attrs and attrs['year_level'] not in YEAR_LEVELS:
        raise ValidationError([{'field': 'yearLevel', 'message': 'Year level must be between 1 and 4'}])

    return attrs


def create_identity(
    db: Session,
    role: str,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    extra: dict[str, Any] | None = None,
    max_accounts: int | None = None,
) -> Identity:
    model = model_for_role(role)
    normalized = normalize_email(email)
    first_name = (first_name or '').strip()
    last_name = (last_name or '').strip()

    if find_by_email(db, normalized) is not None:
        raise ConflictError('User already exists with this email')

    attrs = _role_attributes(role, first_name, last_name, extra or {})
    identity = model(
        email=normalized,
        password_hash=passwords.hash_password(password),
        first_name=first_name,
        last_name=last_name,
        **attrs,
    )

    try:
        if max_accounts is not None:
            _reserve_account_slot(db, role, max_accounts)
        _assign_number(db, identity)
        db.add(identity)
        db.flush()
        db.add(EmailClaim(email=normalized, role=role, identity_id=identity.id))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info('Registration lost a race for %s (%s)', role, identity.id)
        raise ConflictError('User already exists with this email') from exc
    except ForbiddenError:
        db.rollback()
        raise

    db.refresh(identity)
    logger.info('Created %s account %s', role, identity.id)
    return identity


def verify_identity_password(identity: Identity, plaintext: str) -> bool:
    return passwords.verify_password(plaintext, identity.password_hash)


def set_password(identity: Identity, new_password: str) -> None:
    """Stage a password change without committing.

    ``new_password`` is always plaintext from the caller, even when it looks like a hash.
    """
    identity.password_hash = passwords.hash_password(new_password)
    identity.password_changed_at = utcnow()


def update_password(db: Session, identity: Identity, new_password: str) -> None:
    set_password(identity, new_password)
    db.commit()


def record_login(db: Session, identity: Identity) -> None:
    identity.last_login = utcnow()
    db.commit()


def update_admin_permissions(
    db: Session,
    admin: Admin,
    permissions: list[str] | None = None,
    role_type: str | None = None,
) -> Admin:
    """Change an admin's role type and/or permissions.

    Changing only the role type resets permissions to that type's defaults.
    """
    try:
        if role_type is not None:
            admin.role_type = role_type
            if permissions is None:
                admin.permissions = perms.default_permissions(admin.role_type)
        if permissions is not None:
            admin.permissions = permissions
    except ValidationError:
        db.rollback()
        raise

    db.commit()
    db.refresh(admin)
    logger.info('Updated permissions for admin %s: %s (%s)', admin.id, admin.permissions, admin.role_type)
    return admin
