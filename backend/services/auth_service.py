"""
Registration, login and password lifecycle.

Everything here is a plain function over a SQLAlchemy session; no state is kept between
calls beyond the configuration constants. Failures are raised as the typed errors from
``backend.core.exceptions``.
"""

import logging
from collections.abc import Callable
from typing import Any, NamedTuple

from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth import permissions as perms
from backend.core import config
from backend.core.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from backend.services import credential_store, email_service, reset_token_store
from backend.services.credential_store import Identity

logger = logging.getLogger(__name__)

ResetEmailSender = Callable[[str, str, str], Any]


class AuthResult(NamedTuple):
    identity: Identity
    role: str
    token: str


def issue_session_token(identity: Identity, role: str) -> str:
    return jwt_handler.create_access_token(subject=identity.id, role=role)


def register(
    db: Session,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str,
    extra: dict[str, Any] | None = None,
) -> AuthResult:
    if not perms.is_valid_role(role):
        raise BadRequestError('Invalid role specified')

    identity = credential_store.create_identity(
        db,
        role,
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        extra=extra,
        max_accounts=config.MAX_ADMIN_ACCOUNTS if role == perms.ADMIN else None,
    )
    return AuthResult(identity, role, issue_session_token(identity, role))


def login(db: Session, email: str, password: str) -> AuthResult:
    match = credential_store.find_by_email(db, email)
    if match is None:
        logger.info('Login failed: no account for the given email')
        raise NotFoundError('Account not found')

    identity, role = match
    if not credential_store.verify_identity_password(identity, password):
        logger.warning('Login failed: wrong password for %s %s', role, identity.id)
        raise UnauthorizedError('Incorrect password')

    credential_store.record_login(db, identity)
    logger.info('Login succeeded for %s %s', role, identity.id)
    return AuthResult(identity, role, issue_session_token(identity, role))


def verify_session_token(token: str) -> dict:
    return jwt_handler.decode_access_token(token)


def change_password(
    db: Session,
    identity_id: str,
    role: str,
    current_password: str,
    new_password: str,
) -> None:
    identity = credential_store.find_by_id(db, identity_id, role)
    if identity is None:
        raise NotFoundError('User not found')

    if not credential_store.verify_identity_password(identity, current_password):
        raise BadRequestError('Current password is incorrect')

    credential_store.update_password(db, identity, new_password)
    logger.info('Password changed for %s %s', role, identity.id)


def forgot_password(
    db: Session,
    email: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    send_reset_email: ResetEmailSender,
) -> None:
    """Issue a reset token for ``email`` and hand the link to ``send_reset_email``.

    ``send_reset_email(to_email, reset_url, role)`` is called once, after the token is
    stored. Unknown addresses raise ``NotFoundError``.
    """
    match = credential_store.find_by_email(db, email)
    if match is None:
        raise NotFoundError('No user found with this email')

    identity, role = match
    reset_token_store.purge_stale_tokens(db)
    raw_token = reset_token_store.issue_token(
        db,
        owner_id=identity.id,
        owner_role=role,
        expires_minutes=config.RESET_TOKEN_EXPIRES_MINUTES,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    logger.info('Password reset requested for %s %s from %s', role, identity.id, ip_address)
    send_reset_email(identity.email, email_service.build_reset_url(raw_token), role)


def verify_reset_token(db: Session, raw_token: str) -> str:
    """Return the owner's email for a valid token without consuming it."""
    token = reset_token_store.find_valid_token(db, raw_token)
    if token is None:
        raise BadRequestError('Invalid or expired token')

    identity = credential_store.find_by_id(db, token.owner_id, token.owner_role)
    if identity is None:
        # Owner deleted after the token was issued.
        raise BadRequestError('Invalid or expired token')
    return identity.email


def reset_password(db: Session, raw_token: str, new_password: str) -> None:
    token = reset_token_store.consume_token(db, raw_token)
    if token is None:
        db.rollback()
        raise BadRequestError('Invalid or expired reset token')

    identity = credential_store.find_by_id(db, token.owner_id, token.owner_role)
    if identity is None:
        # Leave the token unspent; the owner may have been deleted mid-flight.
        db.rollback()
        raise NotFoundError('User not found')

    # Token mark and new hash commit together.
    credential_store.update_password(db, identity, new_password)
    logger.info('Password reset completed for %s %s', token.owner_role, identity.id)


def refresh_token(db: Session, old_token: str) -> AuthResult:
    """Issue a fresh session token. The old one stays valid until it expires."""
    claims = verify_session_token(old_token)
    role = claims['role']
    identity = credential_store.find_by_id(db, claims['sub'], role)
    if identity is None:
        raise NotFoundError('User not found')
    return AuthResult(identity, role, issue_session_token(identity, role))
