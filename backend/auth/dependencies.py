import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import permissions as perms
from backend.core.exceptions import (
    ForbiddenError,
    InvalidTokenError,
    NotFoundError,
    ServiceUnavailableError,
    TokenExpiredError,
    UnauthorizedError,
)
from backend.database import get_db
from backend.services import auth_service, credential_store

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    role_type: str | None = None
    permissions: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_super_admin(self) -> bool:
        return self.role == perms.ADMIN and self.role_type == perms.SUPER_ADMIN


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError('Not authorized to access this route - no token found')

    try:
        claims = auth_service.verify_session_token(credentials.credentials)
    except TokenExpiredError as exc:
        logger.info('Rejected expired token on %s %s', request.method, request.url.path)
        raise TokenExpiredError('Not authorized to access this route - token expired') from exc
    except InvalidTokenError as exc:
        logger.warning('Rejected invalid token on %s %s', request.method, request.url.path)
        raise InvalidTokenError('Not authorized to access this route - invalid token') from exc

    try:
        identity = credential_store.find_by_id(db, claims['sub'], claims['role'])
    except SQLAlchemyError as exc:
        logger.exception('Identity lookup failed')
        raise ServiceUnavailableError('Authentication service temporarily unavailable. Please try again.') from exc

    if identity is None:
        logger.warning('Token subject %s (%s) no longer exists', claims['sub'], claims['role'])
        raise UnauthorizedError('Not authorized to access this route - user not found')

    current_user = CurrentUser(
        id=identity.id,
        email=identity.email,
        first_name=identity.first_name,
        last_name=identity.last_name,
        role=claims['role'],
        role_type=getattr(identity, 'role_type', None),
        permissions=tuple(getattr(identity, 'permissions', None) or ()),
    )
    request.state.user = current_user
    return current_user


def require_role(*roles: str):
    allowed = set(roles)

    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise ForbiddenError(f"Role '{current_user.role}' is not authorized to access this route")
        return current_user

    return dependency


def require_min_role(min_role: str):
    if not perms.is_valid_role(min_role):
        raise ValueError(f'Unknown role: {min_role}')

    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if perms.role_rank(current_user.role) < perms.role_rank(min_role):
            raise ForbiddenError(f"Role '{current_user.role}' does not have sufficient privileges")
        return current_user

    return dependency


def require_permission(permission: str):
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not perms.has_permission(current_user.role, current_user.role_type, current_user.permissions, permission):
            raise ForbiddenError(f'Insufficient permissions. Required: {permission}')
        return current_user

    return dependency


def require_any_permission(*permissions: str):
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not perms.has_any_permission(
            current_user.role, current_user.role_type, current_user.permissions, permissions
        ):
            raise ForbiddenError(f"Insufficient permissions. Required one of: {', '.join(permissions)}")
        return current_user

    return dependency


def require_owner_or_admin(
    loader: Callable[[Session, str], Any],
    owner_field: str = 'owner_id',
    id_param: str = 'id',
):
    """Admins pass; everyone else must own the resource named by the ``id_param`` path parameter.

    ``loader(db, resource_id)`` returns the resource or ``None``.
    """

    def dependency(
        request: Request,
        current_user: CurrentUser = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> CurrentUser:
        if current_user.role == perms.ADMIN:
            return current_user

        resource = loader(db, request.path_params.get(id_param))
        if resource is None:
            raise NotFoundError('Resource not found')

        owner = getattr(resource, owner_field, None)
        if owner is None or str(owner) != current_user.id:
            raise ForbiddenError('Not authorized to access this resource')
        return current_user

    return dependency
