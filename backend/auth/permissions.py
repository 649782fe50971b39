"""Roles, the role hierarchy and the admin permission set."""

from collections.abc import Iterable

ADMIN = 'admin'
TEACHER = 'teacher'
STUDENT = 'student'

ROLES = (ADMIN, TEACHER, STUDENT)

# Higher rank means more privileges.
ROLE_HIERARCHY = {
    ADMIN: 3,
    TEACHER: 2,
    STUDENT: 1,
}

SUPER_ADMIN = 'super_admin'
ACADEMIC_ADMIN = 'academic_admin'
SUPPORT_ADMIN = 'support_admin'
CUSTOM_ADMIN = 'custom'

ADMIN_ROLE_TYPES = (SUPER_ADMIN, ACADEMIC_ADMIN, SUPPORT_ADMIN, CUSTOM_ADMIN)
DEFAULT_ADMIN_ROLE_TYPE = ACADEMIC_ADMIN

MANAGE_USERS = 'manage_users'
MANAGE_ROLES = 'manage_roles'
MANAGE_COURSES = 'manage_courses'
MANAGE_SUBJECTS = 'manage_subjects'
MANAGE_GRADES = 'manage_grades'
MANAGE_SETTINGS = 'manage_settings'
VIEW_AUDIT_LOGS = 'view_audit_logs'
MANAGE_ANNOUNCEMENTS = 'manage_announcements'
MANAGE_RESOURCES = 'manage_resources'

ADMIN_PERMISSIONS = (
    MANAGE_USERS,
    MANAGE_ROLES,
    MANAGE_COURSES,
    MANAGE_SUBJECTS,
    MANAGE_GRADES,
    MANAGE_SETTINGS,
    VIEW_AUDIT_LOGS,
    MANAGE_ANNOUNCEMENTS,
    MANAGE_RESOURCES,
)

DEFAULT_ADMIN_PERMISSIONS = (
    MANAGE_USERS,
    MANAGE_COURSES,
    MANAGE_GRADES,
    MANAGE_SETTINGS,
)

PERMISSION_ALIASES = {
    'system_settings': MANAGE_SETTINGS,
    'settings': MANAGE_SETTINGS,
    'audit_logs': VIEW_AUDIT_LOGS,
    'users': MANAGE_USERS,
    'roles': MANAGE_ROLES,
    'courses': MANAGE_COURSES,
    'subjects': MANAGE_SUBJECTS,
    'grades': MANAGE_GRADES,
    'announcements': MANAGE_ANNOUNCEMENTS,
    'resources': MANAGE_RESOURCES,
}


def is_valid_role(role: str | None) -> bool:
    return role in ROLE_HIERARCHY


def role_rank(role: str | None) -> int:
    return ROLE_HIERARCHY.get(role, 0)


def normalize_permission(value: str) -> str:
    """Map a legacy alias to its canonical permission.

    Values that are neither canonical nor a known alias come back unchanged, so the
    caller's validation can report them instead of dropping them.
    """
    if not value:
        return value
    key = str(value).strip().lower()
    if key in ADMIN_PERMISSIONS:
        return key
    return PERMISSION_ALIASES.get(key, value)


def normalize_permissions(values: Iterable[str] | None) -> list[str]:
    if values is None:
        return []
    normalized: list[str] = []
    for value in values:
        permission = normalize_permission(value)
        if permission and permission not in normalized:
            normalized.append(permission)
    return normalized


def invalid_permissions(values: Iterable[str]) -> list[str]:
    return [value for value in values if value not in ADMIN_PERMISSIONS]


def default_permissions(role_type: str | None) -> list[str]:
    if role_type == SUPER_ADMIN:
        return list(ADMIN_PERMISSIONS)
    return list(DEFAULT_ADMIN_PERMISSIONS)


def has_permission(role: str, role_type: str | None, granted: Iterable[str] | None, required: str) -> bool:
    if role == ADMIN and role_type == SUPER_ADMIN:
        return True
    return required in set(granted or ())


def has_any_permission(
    role: str,
    role_type: str | None,
    granted: Iterable[str] | None,
    required: Iterable[str],
) -> bool:
    if role == ADMIN and role_type == SUPER_ADMIN:
        return True
    return bool(set(granted or ()) & set(required))
