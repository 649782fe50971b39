import re

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from backend.auth import permissions as perms
from backend.auth.dependencies import CurrentUser, get_current_user, require_permission, security
from backend.core.exceptions import NotFoundError, UnauthorizedError
from backend.database import get_db
from backend.models.admin import Admin
from backend.services import auth_service, credential_store, email_service
from backend.services.credential_store import Identity

router = APIRouter(tags=['auth'])

EMAIL_PATTERN = re.compile(r'^\S+@\S+\.\S+$')
MIN_PASSWORD_LENGTH = 6


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError('Please use a valid email address.')
    return normalized


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    first_name: str
    last_name: str
    role: str | None = None
    full_name: str | None = None
    role_type: str | None = None
    permissions: list[str] | None = None
    year_level: int | None = None
    department: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('role')
    @classmethod
    def normalize_role(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None

    def role_fields(self) -> dict:
        return self.model_dump(
            include={'full_name', 'role_type', 'permissions', 'year_level', 'department'},
            exclude_none=True,
        )


class LoginRequest(CamelModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class RefreshRequest(CamelModel):
    token: str | None = None


class ForgotPasswordRequest(CamelModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class ResetPasswordRequest(CamelModel):
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class UpdatePermissionsRequest(CamelModel):
    permissions: list[str] | None = None
    role_type: str | None = None


def serialize_user(identity: Identity, role: str) -> dict:
    return {
        'id': identity.id,
        'email': identity.email,
        'firstName': identity.first_name,
        'lastName': identity.last_name,
        'role': role,
    }


def serialize_profile(identity: Identity, role: str) -> dict:
    profile = serialize_user(identity, role)
    profile['fullName'] = getattr(identity, 'full_name', None) or identity.display_name
    profile['isActive'] = identity.is_active is not False

    optional_fields = {
        'studentId': getattr(identity, 'student_id', None),
        'employeeId': getattr(identity, 'employee_id', None),
        'yearLevel': getattr(identity, 'year_level', None),
        'department': getattr(identity, 'department', None),
        'roleType': getattr(identity, 'role_type', None),
    }
    profile.update({key: value for key, value in optional_fields.items() if value is not None})
    if isinstance(identity, Admin):
        profile['permissions'] = list(identity.permissions or [])
    return profile


def auth_payload(result: auth_service.AuthResult) -> dict:
    return {'user': serialize_user(result.identity, result.role), 'token': result.token}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get('x-forwarded-for')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else 'unknown'


@router.post('/register', status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    result = auth_service.register(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        extra=payload.role_fields(),
    )
    return {'success': True, 'message': 'User registered successfully', 'data': auth_payload(result)}


@router.post('/login')
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    result = auth_service.login(db, payload.email, payload.password)
    return {'success': True, 'message': 'Login successful', 'data': auth_payload(result)}


@router.post('/refresh')
def refresh(
    payload: RefreshRequest | None = None,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
):
    token = credentials.credentials if credentials else None
    if not token and payload is not None:
        token = payload.token
    if not token:
        raise UnauthorizedError('No token provided')

    result = auth_service.refresh_token(db, token)
    return {'success': True, 'message': 'Token refreshed successfully', 'data': auth_payload(result)}


@router.post('/logout')
def logout():
    # Session tokens are stateless; the client discards its copy.
    return {'success': True, 'message': 'Logged out successfully'}


@router.post('/forgot-password')
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    def send_reset_email(to_email: str, reset_url: str, role: str) -> None:
        background_tasks.add_task(email_service.send_password_reset_email, to_email, reset_url, role)

    auth_service.forgot_password(
        db,
        payload.email,
        ip_address=client_ip(request),
        user_agent=request.headers.get('user-agent', 'unknown'),
        send_reset_email=send_reset_email,
    )
    return {'success': True, 'message': 'Password reset email sent'}


@router.get('/reset-password/{token}')
def verify_reset_token(token: str, db: Session = Depends(get_db)):
    email = auth_service.verify_reset_token(db, token.strip())
    return {'success': True, 'message': 'Valid token', 'data': {'email': email}}


@router.post('/reset-password/{token}')
def reset_password(token: str, payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, token.strip(), payload.password)
    return {'success': True, 'message': 'Password reset successful'}


@router.put('/password')
def change_password(
    payload: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    auth_service.change_password(
        db,
        current_user.id,
        current_user.role,
        payload.current_password,
        payload.new_password,
    )
    return {'success': True, 'message': 'Password updated successfully'}


@router.get('/me')
def me(current_user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    identity = credential_store.find_by_id(db, current_user.id, current_user.role)
    if identity is None:
        raise NotFoundError('User not found')
    return {'success': True, 'data': serialize_profile(identity, current_user.role)}


@router.put('/admins/{admin_id}/permissions')
def update_admin_permissions(
    admin_id: str,
    payload: UpdatePermissionsRequest,
    _: CurrentUser = Depends(require_permission(perms.MANAGE_ROLES)),
    db: Session = Depends(get_db),
):
    admin = credential_store.find_by_id(db, admin_id, perms.ADMIN)
    if admin is None:
        raise NotFoundError('Admin not found')

    admin = credential_store.update_admin_permissions(
        db,
        admin,
        permissions=payload.permissions,
        role_type=payload.role_type,
    )
    return {'success': True, 'data': serialize_profile(admin, perms.ADMIN)}
