import pytest

from backend.auth import passwords
from backend.auth import permissions as perms
from backend.core.exceptions import BadRequestError, ConflictError, ForbiddenError, ValidationError
from backend.models.admin import Admin
from backend.models.counter import Counter, next_counter_value
from backend.models.identity import EmailClaim
from backend.services import credential_store


def _create(db, role: str, email: str, password: str = 'secret123', **extra):
    return credential_store.create_identity(
        db,
        role,
        email=email,
        password=password,
        first_name='Ada',
        last_name='Lovelace',
        extra=extra,
    )


def test_create_identity_hashes_password_and_normalizes_email(db) -> None:
    student = _create(db, perms.STUDENT, '  Ada@Example.EDU ')

    assert student.email == 'ada@example.edu'
    assert student.password_hash != 'secret123'
    assert passwords.is_password_hash(student.password_hash)
    assert credential_store.verify_identity_password(student, 'secret123')
    assert student.role == 'student'
    assert student.full_name == 'Ada Lovelace'


def test_create_identity_rejects_unknown_role(db) -> None:
    with pytest.raises(BadRequestError):
        _create(db, 'principal', 'ada@example.edu')


def test_find_by_email_is_case_insensitive(db) -> None:
    teacher = _create(db, perms.TEACHER, 'ada@example.edu')

    match = credential_store.find_by_email(db, 'ADA@example.edu')

    assert match is not None
    assert match.identity.id == teacher.id
    assert match.role == 'teacher'
    assert credential_store.find_by_email(db, 'nobody@example.edu') is None


def test_find_by_id_uses_role_to_pick_the_table(db) -> None:
    teacher = _create(db, perms.TEACHER, 'ada@example.edu')

    assert credential_store.find_by_id(db, teacher.id, perms.TEACHER) is teacher
    assert credential_store.find_by_id(db, teacher.id, perms.STUDENT) is None
    assert credential_store.find_by_id(db, teacher.id, 'principal') is None


@pytest.mark.parametrize('second_role', perms.ROLES)
def test_email_is_unique_across_every_role(db, second_role: str) -> None:
    _create(db, perms.TEACHER, 'ada@example.edu')

    with pytest.raises(ConflictError):
        _create(db, second_role, 'ADA@example.edu')


def test_existing_email_claim_makes_insert_fail_with_conflict(db, session_factory) -> None:
    # A concurrent registration that already claimed the address but whose
    # identity row is not visible yet.
    other_session = session_factory()
    try:
        other_session.add(EmailClaim(email='ada@example.edu', role=perms.STUDENT, identity_id='pending'))
        other_session.commit()
    finally:
        other_session.close()

    with pytest.raises(ConflictError):
        _create(db, perms.TEACHER, 'ada@example.edu')

    assert credential_store.find_by_email(db, 'ada@example.edu') is None


def test_students_and_teachers_get_sequential_numbers(db) -> None:
    first = _create(db, perms.STUDENT, 's1@example.edu')
    second = _create(db, perms.STUDENT, 's2@example.edu')
    teacher = _create(db, perms.TEACHER, 't1@example.edu')

    year, number = first.student_id.split('-')
    assert len(year) == 2
    assert number == '100001'
    assert second.student_id == f'{year}-100002'
    assert teacher.employee_id == f'EMP-{year}-10001'


def test_next_counter_value_starts_then_increments(db) -> None:
    assert next_counter_value(db, 'demo', 5) == 5
    assert next_counter_value(db, 'demo', 5) == 6
    assert next_counter_value(db, 'other', 1) == 1
    db.commit()


def test_student_year_level_is_validated(db) -> None:
    assert _create(db, perms.STUDENT, 's1@example.edu', year_level=3).year_level == 3

    with pytest.raises(ValidationError):
        _create(db, perms.STUDENT, 's2@example.edu', year_level=7)


def test_admin_defaults_depend_on_role_type(db) -> None:
    academic = _create(db, perms.ADMIN, 'a1@example.edu')
    super_admin = _create(db, perms.ADMIN, 'a2@example.edu', role_type='super_admin')

    assert academic.role_type == 'academic_admin'
    assert academic.permissions == ['manage_users', 'manage_courses', 'manage_grades', 'manage_settings']
    assert super_admin.permissions == list(perms.ADMIN_PERMISSIONS)


def test_admin_permission_aliases_are_normalized_on_create(db) -> None:
    admin = _create(db, perms.ADMIN, 'a1@example.edu', permissions=['settings'])

    db.expire_all()
    reloaded = db.get(Admin, admin.id)
    assert reloaded.permissions == ['manage_settings']


def test_admin_unknown_permission_is_rejected_not_dropped(db) -> None:
    with pytest.raises(ValidationError) as exception_info:
        _create(db, perms.ADMIN, 'a1@example.edu', permissions=['settings', 'launch_rockets'])

    assert exception_info.value.errors == [
        {'field': 'permissions', 'message': "'launch_rockets' is not a valid permission"}
    ]


def test_admin_invalid_role_type_is_rejected(db) -> None:
    with pytest.raises(ValidationError):
        _create(db, perms.ADMIN, 'a1@example.edu', role_type='overlord')


def test_update_admin_permissions_normalizes_aliases(db) -> None:
    admin = _create(db, perms.ADMIN, 'a1@example.edu')

    credential_store.update_admin_permissions(db, admin, permissions=['audit_logs', 'roles'])

    assert admin.permissions == ['view_audit_logs', 'manage_roles']


def test_update_admin_role_type_alone_resets_permissions(db) -> None:
    admin = _create(db, perms.ADMIN, 'a1@example.edu', permissions=['roles'])

    credential_store.update_admin_permissions(db, admin, role_type='super_admin')

    assert admin.role_type == 'super_admin'
    assert admin.permissions == list(perms.ADMIN_PERMISSIONS)


def test_update_admin_permissions_rolls_back_invalid_values(db) -> None:
    admin = _create(db, perms.ADMIN, 'a1@example.edu')

    with pytest.raises(ValidationError):
        credential_store.update_admin_permissions(db, admin, permissions=['launch_rockets'])

    db.expire_all()
    assert db.get(Admin, admin.id).permissions == list(perms.DEFAULT_ADMIN_PERMISSIONS)


def test_resaving_identity_keeps_password_hash(db) -> None:
    teacher = _create(db, perms.TEACHER, 'ada@example.edu')
    original_hash = teacher.password_hash

    teacher.department = 'Mathematics'
    db.commit()
    db.refresh(teacher)

    assert teacher.password_hash == original_hash


def test_create_identity_hashes_hash_shaped_password(db) -> None:
    hash_shaped = passwords.hash_password('other-secret')

    student = _create(db, perms.STUDENT, 'ada@example.edu', password=hash_shaped)

    assert student.password_hash != hash_shaped
    assert credential_store.verify_identity_password(student, hash_shaped)
    assert not credential_store.verify_identity_password(student, 'other-secret')


def test_update_password_hashes_hash_shaped_password(db) -> None:
    teacher = _create(db, perms.TEACHER, 'ada@example.edu')
    hash_shaped = passwords.hash_password('newpass123')

    credential_store.update_password(db, teacher, hash_shaped)

    assert teacher.password_hash != hash_shaped
    assert credential_store.verify_identity_password(teacher, hash_shaped)
    assert not credential_store.verify_identity_password(teacher, 'newpass123')


def test_update_password_twice_with_same_value_gives_distinct_valid_hashes(db) -> None:
    student = _create(db, perms.STUDENT, 'ada@example.edu')

    credential_store.update_password(db, student, 'newpass123')
    first_hash = student.password_hash
    credential_store.update_password(db, student, 'newpass123')

    assert student.password_hash != first_hash
    assert passwords.verify_password('newpass123', first_hash)
    assert credential_store.verify_identity_password(student, 'newpass123')
    assert student.password_changed_at is not None


def test_count_identities(db) -> None:
    _create(db, perms.ADMIN, 'a1@example.edu')
    _create(db, perms.TEACHER, 't1@example.edu')

    assert credential_store.count_identities(db, perms.ADMIN) == 1
    assert credential_store.count_identities(db, perms.STUDENT) == 0


def _create_capped_admin(db, email: str):
    return credential_store.create_identity(
        db,
        perms.ADMIN,
        email=email,
        password='secret123',
        first_name='Ada',
        last_name='Lovelace',
        max_accounts=1,
    )


def test_create_identity_enforces_account_cap_in_transaction(db) -> None:
    _create_capped_admin(db, 'a1@example.edu')

    with pytest.raises(ForbiddenError) as exception_info:
        _create_capped_admin(db, 'a2@example.edu')

    assert exception_info.value.message == 'Admin registration limit reached. Only 1 admins are allowed.'
    assert credential_store.count_identities(db, perms.ADMIN) == 1
    assert db.get(EmailClaim, 'a2@example.edu') is None
    assert db.get(Counter, 'admin:accounts') is not None
    # Other roles are not capped.
    _create(db, perms.TEACHER, 't1@example.edu')
